from __future__ import annotations

import base64
import io
import unittest

from PIL import Image

from api_case import ApiTestCase
from routers.auth import USERID_TAKEN

SPOT = {"latitude": 34.6937, "longitude": 135.5023}


class TestOwnProfile(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.uid, self.headers = self.make_user("hana", bio="hi")

    def test_get_me(self) -> None:
        body = self.client.get("/api/v1/profiles/me", headers=self.headers).json()
        self.assertEqual(body["id"], self.uid)
        self.assertEqual(body["userid"], "hana")

    def test_patch_validates_fields(self) -> None:
        r = self.client.patch(
            "/api/v1/profiles/me",
            json={"bio": "  street photos  ", "home_country": "fr"},
            headers=self.headers,
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["bio"], "street photos")
        self.assertEqual(r.json()["home_country"], "FR")

        bad = self.client.patch("/api/v1/profiles/me", json={"avatar_url": "http://x.com/a.png"}, headers=self.headers)
        self.assertEqual(bad.status_code, 400)

    def test_empty_patch_returns_profile(self) -> None:
        r = self.client.patch("/api/v1/profiles/me", json={}, headers=self.headers)
        self.assertEqual(r.json()["bio"], "hi")

    def test_change_userid(self) -> None:
        self.make_user("kai")
        taken = self.client.put("/api/v1/profiles/me/userid", json={"userid": "Kai"}, headers=self.headers)
        self.assertEqual(taken.status_code, 400)
        self.assertEqual(taken.json()["detail"], USERID_TAKEN)

        same = self.client.put("/api/v1/profiles/me/userid", json={"userid": "@hana"}, headers=self.headers)
        self.assertEqual(same.status_code, 200)

        r = self.client.put("/api/v1/profiles/me/userid", json={"userid": "hana_2"}, headers=self.headers)
        self.assertEqual(r.json()["userid"], "hana_2")

    def test_change_email(self) -> None:
        r = self.client.put("/api/v1/profiles/me/email", json={"email": "New@Example.com"}, headers=self.headers)
        self.assertEqual(r.json(), {"email": "new@example.com"})
        self.assertEqual(self.db.auth.users_by_id[self.uid]["email"], "new@example.com")

    def test_avatar_is_square(self) -> None:
        buf = io.BytesIO()
        Image.new("RGB", (300, 120), "navy").save(buf, format="PNG")
        payload = "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()

        r = self.client.post("/api/v1/profiles/me/avatar", json={"image_b64": payload}, headers=self.headers)
        self.assertEqual(r.status_code, 200, r.text)
        self.assertTrue(r.json()["avatar_url"].endswith(f"/avatars/{self.uid}/avatar.jpg"))
        stored = self.db.storage.buckets["avatars"][f"{self.uid}/avatar.jpg"]
        self.assertEqual(Image.open(io.BytesIO(stored)).size, (512, 512))

    def test_avatar_rejects_non_image(self) -> None:
        r = self.client.post(
            "/api/v1/profiles/me/avatar",
            json={"image_b64": "data:text/plain;base64,aGk="},
            headers=self.headers,
        )
        self.assertEqual(r.status_code, 422)


class TestLookup(ApiTestCase):
    def test_by_userid_and_search(self) -> None:
        self.make_user("sakura_t")
        self.make_user("kai", display_name="Sakura Fan")
        self.assertEqual(self.client.get("/api/v1/profiles/@Sakura_T").json()["userid"], "sakura_t")
        self.assertEqual(self.client.get("/api/v1/profiles/nobody").status_code, 404)

        found = self.client.get("/api/v1/profiles/search", params={"q": "sakura"}).json()
        self.assertEqual([p["userid"] for p in found], ["sakura_t", "kai"])
        self.assertEqual(self.client.get("/api/v1/profiles/search", params={"q": "%"}).json(), [])

    def test_search_treats_underscore_literally(self) -> None:
        self.make_user("a_b", display_name="Ab")
        self.make_user("axb", display_name="Axb")
        found = self.client.get("/api/v1/profiles/search", params={"q": "a_b"}).json()
        self.assertEqual([p["userid"] for p in found], ["a_b"])


class TestDeleteAccount(ApiTestCase):
    def test_cascade(self) -> None:
        uid, headers = self.make_user("hana")
        other, _ = self.make_user("kai")
        mine = self.db.seed("posts", user_id=uid, content="mine", **SPOT)
        theirs = self.db.seed("posts", user_id=other, content="theirs", **SPOT)
        self.db.seed("likes", user_id=other, post_id=mine["id"])
        self.db.seed("likes", user_id=uid, post_id=theirs["id"])
        self.db.seed("comments", user_id=uid, post_id=theirs["id"], content="hey")
        self.db.seed("follows", follower_id=uid, following_id=other)
        self.db.seed("follows", follower_id=other, following_id=uid)
        self.db.storage.from_("posts").upload(f"{uid}/post_1.jpg", b"x")
        self.db.storage.from_("posts").upload(f"{other}/post_2.jpg", b"y")

        r = self.client.delete("/api/v1/profiles/me", headers=headers)
        self.assertEqual(r.status_code, 200, r.text)
        deleted = r.json()["deleted"]
        self.assertEqual(deleted["post_images"], 1)
        self.assertEqual(deleted["likes_received"], 1)
        self.assertEqual(deleted["likes"], 1)
        self.assertEqual(deleted["followers"], 1)
        self.assertEqual(deleted["following"], 1)

        self.assertEqual([p["id"] for p in self.db.rows("posts")], [theirs["id"]])
        self.assertEqual(self.db.rows("likes"), [])
        self.assertEqual(self.db.rows("comments"), [])
        self.assertEqual(self.db.rows("follows"), [])
        self.assertEqual([p["id"] for p in self.db.rows("profiles")], [other])
        self.assertEqual(list(self.db.storage.buckets["posts"]), [f"{other}/post_2.jpg"])
        self.assertIn(("delete_user", uid), self.db.auth.admin.calls)


if __name__ == "__main__":
    unittest.main()
