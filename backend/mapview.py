"""
Map layout arithmetic: which pins to show for a viewport, how to fan out
pins that share a spot, how transparent crowded pins are, and how posts
cluster when zoomed far out.

Everything here is pure. Posts are plain row dicts as returned by Supabase
(`id`, `latitude`, `longitude`, `like_count`, `created_at`).
"""

import math
from datetime import datetime
from typing import Optional

from timefmt import is_new, parse_ts

EARTH_RADIUS_M = 6371000.0
METRES_PER_DEGREE = 111000.0
CROWD_RADIUS_M = 50.0
CLUSTER_RADIUS_DEG = 0.05

# (span lower bound, minimum likes) checked top-down
_DENSITY_BANDS = [
    (50.0, 30),
    (10.0, 15),
    (5.0, 10),
    (1.0, 5),
]


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine great-circle distance in metres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def round_half_away(value: float, digits: int) -> float:
    scale = 10 ** digits
    return math.copysign(math.floor(abs(value) * scale + 0.5) / scale, value)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# ── Viewport ──────────────────────────────────────────────────────────────

def display_mode(span: float) -> str:
    if span <= 0.01:
        return "near"
    if span <= 0.05:
        return "mid"
    return "far"


def bounding_box(lat: float, lng: float, lat_delta: float, lng_delta: float) -> dict:
    return {
        "min_lat": lat - lat_delta / 2,
        "max_lat": lat + lat_delta / 2,
        "min_lng": lng - lng_delta / 2,
        "max_lng": lng + lng_delta / 2,
    }


def fetch_limit(span: float) -> int:
    if span < 0.01:
        return 100
    if span < 0.1:
        return 500
    if span < 1:
        return 2000
    return 5000


# ── Density filter ────────────────────────────────────────────────────────

def min_likes_for_span(span: float) -> int:
    for lower, likes in _DENSITY_BANDS:
        if span > lower:
            return likes
    return 0


def filter_posts_for_span(posts: list[dict], span: float, now: Optional[datetime] = None) -> list[dict]:
    """
    Keep posts inside the new-post window unconditionally; older posts must
    clear the like threshold for the current span. Input order is preserved.
    """
    threshold = min_likes_for_span(span)
    return [
        p for p in posts
        if is_new(p["created_at"], now) or (p.get("like_count") or 0) >= threshold
    ]


# ── Collision layout ──────────────────────────────────────────────────────

def _grid_precision(span: float) -> int:
    if span < 0.02:
        return 4
    if span < 0.1:
        return 3
    if span < 0.5:
        return 2
    return 1


def grid_key(lat: float, lng: float, span: float) -> str:
    digits = _grid_precision(span)
    lon_r = round_half_away(lng, digits)
    lat_r = round_half_away(lat, digits)
    return f"{lon_r:.{digits}f}:{lat_r:.{digits}f}"


def _stack_order(post: dict) -> tuple:
    return (-(post.get("like_count") or 0), -parse_ts(post["created_at"]).timestamp(), str(post["id"]))


def pin_offsets(posts: list[dict], span: float) -> dict[str, tuple[float, float]]:
    """
    Screen-point offsets per post id so that pins on the same rounded
    coordinate fan out upwards in rings of three. The most liked post of
    each group stays in place.
    """
    offsets = {str(p["id"]): (0.0, 0.0) for p in posts}

    sf = _clamp(0.01 / max(span, 0.001), 0.8, 1.5)
    card_w = 96 * sf
    card_h = max(52.0, 60 * sf)
    zoom = _clamp((sf - 0.9) / 0.6, 0.0, 1.0)
    dx_step = max(12.0, card_w * 0.55) * zoom
    dy_step = max(12.0, card_h * 0.75) * zoom
    if dx_step < 1 and dy_step < 1:
        return offsets

    groups: dict[str, list[dict]] = {}
    for p in posts:
        groups.setdefault(grid_key(p["latitude"], p["longitude"], span), []).append(p)

    for group in groups.values():
        if len(group) < 2:
            continue
        for n, post in enumerate(sorted(group, key=_stack_order)):
            if n == 0:
                continue
            ring = (n + 2) // 3
            slot = (n - 1) % 3
            col = (0, -1, 1)[slot]
            offsets[str(post["id"])] = (col * dx_step, -ring * dy_step)
    return offsets


# ── Opacity and clusters ──────────────────────────────────────────────────

def crowd_opacity(neighbours: int) -> float:
    if neighbours <= 4:
        return 1.0
    if neighbours < 10:
        return 1.0 - (neighbours - 4) / 6.0
    return 0.0


class _CellIndex:
    """
    Buckets posts into lat/lng cells one search radius tall, so a radius
    lookup only compares against nearby cells. The longitude reach widens
    towards the poles, and near a pole whole rows are scanned.
    """

    def __init__(self, posts: list[dict], radius_m: float):
        self.cell = radius_m / METRES_PER_DEGREE
        self.columns = max(1, math.ceil(360.0 / self.cell))
        self.cells: dict[tuple[int, int], list[int]] = {}
        self.rows: dict[int, list[int]] = {}
        for i, p in enumerate(posts):
            row, col = self._key(p)
            self.cells.setdefault((row, col), []).append(i)
            self.rows.setdefault(row, []).append(i)

    def _key(self, post: dict) -> tuple[int, int]:
        row = math.floor((post["latitude"] + 90.0) / self.cell)
        col = math.floor((post["longitude"] + 180.0) / self.cell) % self.columns
        return row, col

    def candidates(self, post: dict):
        """Indices of every post that could lie within the radius (a superset)."""
        row, col = self._key(post)
        widest = min(90.0, abs(post["latitude"]) + self.cell)
        cos_lat = math.cos(math.radians(widest))
        reach = math.ceil(1.01 / cos_lat) + 1 if cos_lat > 0.01 else self.columns
        for r in (row - 1, row, row + 1):
            if 2 * reach + 1 >= self.columns:
                yield from self.rows.get(r, ())
                continue
            for d in range(-reach, reach + 1):
                yield from self.cells.get((r, (col + d) % self.columns), ())


def _within(p: dict, q: dict, radius_m: float) -> bool:
    return distance_m(p["latitude"], p["longitude"], q["latitude"], q["longitude"]) <= radius_m


def pin_opacities(posts: list[dict]) -> dict[str, float]:
    index = _CellIndex(posts, CROWD_RADIUS_M)
    result = {}
    for i, p in enumerate(posts):
        neighbours = sum(1 for j in index.candidates(p) if j != i and _within(p, posts[j], CROWD_RADIUS_M))
        result[str(p["id"])] = crowd_opacity(neighbours)
    return result


def cluster_posts(posts: list[dict], radius_deg: float = CLUSTER_RADIUS_DEG) -> list[dict]:
    """Greedy clustering: each unclaimed post seeds a cluster and absorbs its neighbours."""
    radius_m = radius_deg * METRES_PER_DEGREE
    index = _CellIndex(posts, radius_m)
    claimed = [False] * len(posts)
    clusters = []
    for i, seed in enumerate(posts):
        if claimed[i]:
            continue
        claimed[i] = True
        near = sorted(j for j in index.candidates(seed) if not claimed[j] and _within(seed, posts[j], radius_m))
        for j in near:
            claimed[j] = True
        members = [seed] + [posts[j] for j in near]
        clusters.append({
            "latitude": sum(m["latitude"] for m in members) / len(members),
            "longitude": sum(m["longitude"] for m in members) / len(members),
            "count": len(members),
            "post_ids": [str(m["id"]) for m in members],
        })
    return clusters
