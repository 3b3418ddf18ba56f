"""
Map viewport: fetch posts inside the visible region, thin them out for the
zoom level, fan out pins sharing a spot, and cluster when zoomed far out.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from supabase import Client

from database import get_supabase
from models.map import BoundingBox, MapCluster, MapPin, MapResponse
from routers.posts import enrich_posts
import mapview

router = APIRouter(prefix="/map", tags=["Map"])


@router.get("/posts", response_model=MapResponse)
async def map_posts(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    lat_delta: float = Query(..., gt=0, le=180),
    lng_delta: float = Query(..., gt=0, le=360),
    db: Client = Depends(get_supabase),
):
    span = lat_delta
    box = mapview.bounding_box(lat, lng, lat_delta, lng_delta)
    rows = (
        db.table("posts").select("*")
        .eq("is_public", True)
        .gte("latitude", box["min_lat"])
        .lte("latitude", box["max_lat"])
        .gte("longitude", box["min_lng"])
        .lte("longitude", box["max_lng"])
        .order("like_count", desc=True)
        .limit(mapview.fetch_limit(span))
        .execute()
    ).data

    now = datetime.now(timezone.utc)
    visible = mapview.filter_posts_for_span(rows, span, now)
    offsets = mapview.pin_offsets(visible, span)
    opacities = mapview.pin_opacities(visible)

    pins = []
    for post in enrich_posts(db, visible, now):
        key = str(post.id)
        dx, dy = offsets[key]
        pins.append(MapPin(**post.model_dump(), offset_x=dx, offset_y=dy, opacity=opacities[key]))

    mode = mapview.display_mode(span)
    clusters = [MapCluster(**c) for c in mapview.cluster_posts(rows)] if mode == "far" else []
    return MapResponse(
        display_mode=mode,
        span=span,
        bbox=BoundingBox(**box),
        fetched=len(rows),
        pins=pins,
        clusters=clusters,
    )
