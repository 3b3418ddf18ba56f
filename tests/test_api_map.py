from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from api_case import ApiTestCase

TOKYO = (35.6812, 139.7671)
OSAKA = (34.6937, 135.5023)


def days_ago(n: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=n)).isoformat()


class TestMapPosts(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.uid, _ = self.make_user("hana")

    def seed(self, where: tuple[float, float], **row) -> dict:
        return self.db.seed("posts", user_id=self.uid, latitude=where[0], longitude=where[1], **row)

    def test_near_view_fans_out_stacked_pins(self) -> None:
        top = self.seed(TOKYO, content="top", like_count=9)
        self.seed(TOKYO, content="b", like_count=3)
        self.seed(TOKYO, content="c", like_count=1)
        self.seed(OSAKA, content="elsewhere")
        self.seed(TOKYO, content="hidden", is_public=False)

        r = self.client.get(
            "/api/v1/map/posts",
            params={"lat": TOKYO[0], "lng": TOKYO[1], "lat_delta": 0.005, "lng_delta": 0.005},
        )
        self.assertEqual(r.status_code, 200, r.text)
        view = r.json()
        self.assertEqual(view["display_mode"], "near")
        self.assertEqual(view["fetched"], 3)
        self.assertEqual(view["clusters"], [])

        pins = {p["content"]: p for p in view["pins"]}
        self.assertEqual(set(pins), {"top", "b", "c"})
        self.assertEqual(pins["top"]["id"], top["id"])
        self.assertEqual((pins["top"]["offset_x"], pins["top"]["offset_y"]), (0.0, 0.0))
        self.assertEqual(pins["b"]["offset_x"], 0.0)
        self.assertLess(pins["b"]["offset_y"], 0)
        self.assertLess(pins["c"]["offset_x"], 0)
        self.assertTrue(all(p["opacity"] == 1.0 for p in view["pins"]))

    def test_far_view_filters_by_likes_and_clusters(self) -> None:
        self.seed(TOKYO, content="fresh", like_count=0)
        self.seed(TOKYO, content="old quiet", like_count=3, created_at=days_ago(2))
        self.seed(OSAKA, content="old popular", like_count=20, created_at=days_ago(3))

        view = self.client.get(
            "/api/v1/map/posts",
            params={"lat": TOKYO[0], "lng": TOKYO[1], "lat_delta": 20, "lng_delta": 20},
        ).json()
        self.assertEqual(view["display_mode"], "far")
        self.assertEqual(view["fetched"], 3)
        self.assertEqual(sorted(p["content"] for p in view["pins"]), ["fresh", "old popular"])
        self.assertEqual(sorted(c["count"] for c in view["clusters"]), [1, 2])
        expired = next(p for p in view["pins"] if p["content"] == "old popular")
        self.assertEqual(expired["time_ago"], "expired")

    def test_rejects_empty_span(self) -> None:
        r = self.client.get("/api/v1/map/posts", params={"lat": 0, "lng": 0, "lat_delta": 0, "lng_delta": 1})
        self.assertEqual(r.status_code, 422)


if __name__ == "__main__":
    unittest.main()
