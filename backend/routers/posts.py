"""
Posts: create (JSON or multipart), list, delete, and like toggling.
Images are compressed and stored in the posts bucket.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from supabase import Client

from auth import get_current_user, get_optional_user
from config import get_settings
from database import get_supabase
from models.post import CreatePostRequest, LikeStatusResponse, PostResponse
from routers.follows import is_following
from timefmt import is_new, time_ago_label
import storage
import validators

router = APIRouter(prefix="/posts", tags=["Posts"])
logger = logging.getLogger("globe")
settings = get_settings()

ANONYMOUS = "anonymous"


# ── Helpers ────────────────────────────────────────────────────────────────

def fetch_profiles(db: Client, user_ids) -> dict:
    """Bulk-load profiles keyed by id."""
    ids = sorted({str(u) for u in user_ids if u})
    if not ids:
        return {}
    rows = db.table("profiles").select("id, userid, display_name, avatar_url").in_("id", ids).execute().data
    return {str(r["id"]): r for r in rows}


def can_view(db: Client, post: dict, user: Optional[dict]) -> bool:
    """Public posts are open to all; private ones to the owner and their followers."""
    if post.get("is_public", True):
        return True
    if user is None:
        return False
    owner = str(post["user_id"])
    return owner == user["id"] or is_following(db, user["id"], owner)


def visible_post(db: Client, post_id: str, user: Optional[dict]) -> dict:
    """Load a post the caller may see. Hidden posts 404 like missing ones."""
    post = db.table("posts").select("*").eq("id", post_id).single().execute().data
    if not can_view(db, post, user):
        raise HTTPException(status_code=404, detail="Not found")
    return post


def to_post_response(post: dict, authors: dict, now: Optional[datetime] = None) -> PostResponse:
    """Attach author and age fields; anonymous posts hide who wrote them."""
    now = now or datetime.now(timezone.utc)
    fields = {k: post.get(k) for k in (
        "id", "content", "image_url", "location_name", "latitude", "longitude", "created_at",
    )}
    fields["is_public"] = post.get("is_public", True)
    fields["like_count"] = post.get("like_count") or 0
    fields["comment_count"] = post.get("comment_count") or 0
    fields["is_new"] = is_new(post["created_at"], now)
    fields["time_ago"] = time_ago_label(post["created_at"], now)

    if post.get("is_anonymous"):
        return PostResponse(**fields, user_id=ANONYMOUS, is_anonymous=True)
    author = authors.get(str(post["user_id"]), {})
    return PostResponse(
        **fields,
        user_id=str(post["user_id"]),
        is_anonymous=False,
        author_userid=author.get("userid"),
        author_display_name=author.get("display_name"),
        author_avatar_url=author.get("avatar_url"),
    )


def enrich_posts(db: Client, posts: list[dict], now: Optional[datetime] = None) -> list[PostResponse]:
    authors = fetch_profiles(db, (p["user_id"] for p in posts if not p.get("is_anonymous")))
    return [to_post_response(p, authors, now) for p in posts]


def _create_post(
    db: Client,
    user: dict,
    content: Optional[str],
    image: Optional[tuple[bytes, str]],
    latitude: float,
    longitude: float,
    location_name: Optional[str],
    is_public: bool,
    is_anonymous: bool,
) -> PostResponse:
    try:
        validators.validate_location(latitude, longitude)
        text = validators.validate_post_content(
            content, max_length=settings.post_max_length, has_image=image is not None
        )
    except validators.ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    image_url = None
    if image is not None:
        image_url = storage.upload_post_image(db, image[0], image[1], user["id"])

    row = {
        "user_id": user["id"],
        "content": text,
        "image_url": image_url,
        "location_name": validators.sanitize_location_name(location_name),
        "latitude": latitude,
        "longitude": longitude,
        "is_public": is_public,
        "is_anonymous": is_anonymous,
    }
    post = db.table("posts").insert(row).execute().data[0]
    logger.info("User %s created post %s", user["id"], post["id"])
    return enrich_posts(db, [post])[0]


def _like_count(db: Client, post_id: str) -> int:
    res = db.table("likes").select("id", count="exact").eq("post_id", post_id).execute()
    return res.count or 0


# ── Create ─────────────────────────────────────────────────────────────────

@router.post("", response_model=PostResponse, status_code=201)
async def create_post(
    payload: CreatePostRequest,
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    image = None
    if payload.image_base64:
        try:
            image = storage.decode_image_payload(payload.image_base64)
        except storage.ImagePayloadError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
    return _create_post(
        db, user, payload.content, image, payload.latitude, payload.longitude,
        payload.location_name, payload.is_public, payload.is_anonymous,
    )


@router.post("/upload", response_model=PostResponse, status_code=201)
async def create_post_file(
    latitude: float = Form(...),
    longitude: float = Form(...),
    content: str = Form(None),
    location_name: str = Form(None),
    is_public: bool = Form(True),
    is_anonymous: bool = Form(False),
    file: UploadFile = File(None),
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    image = None
    if file is not None:
        data = await file.read()
        if data:
            image = (data, file.content_type or "image/jpeg")
    return _create_post(db, user, content, image, latitude, longitude, location_name, is_public, is_anonymous)


# ── Read ───────────────────────────────────────────────────────────────────

@router.get("", response_model=list[PostResponse])
async def recent_posts(limit: int = 50, db: Client = Depends(get_supabase)):
    limit = max(1, min(limit, 200))
    rows = (
        db.table("posts").select("*")
        .eq("is_public", True)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    ).data
    return enrich_posts(db, rows)


@router.get("/me", response_model=list[PostResponse])
async def my_posts(user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    rows = db.table("posts").select("*").eq("user_id", user["id"]).order("created_at", desc=True).execute().data
    return enrich_posts(db, rows)


@router.get("/user/{user_id}", response_model=list[PostResponse])
async def user_posts(
    user_id: str,
    user: Optional[dict] = Depends(get_optional_user),
    db: Client = Depends(get_supabase),
):
    """
    Non-anonymous posts by one user, newest first. Private posts are
    included for the owner and for their followers.
    """
    query = db.table("posts").select("*").eq("user_id", user_id).eq("is_anonymous", False)
    if not (user and (user["id"] == user_id or is_following(db, user["id"], user_id))):
        query = query.eq("is_public", True)
    rows = query.order("created_at", desc=True).execute().data
    return enrich_posts(db, rows)


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    user: Optional[dict] = Depends(get_optional_user),
    db: Client = Depends(get_supabase),
):
    post = visible_post(db, post_id, user)
    return enrich_posts(db, [post])[0]


# ── Delete ─────────────────────────────────────────────────────────────────

@router.delete("/{post_id}", status_code=204)
async def delete_post(post_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    post = db.table("posts").select("id, user_id, image_url").eq("id", post_id).single().execute().data
    if str(post["user_id"]) != user["id"]:
        raise HTTPException(status_code=403, detail="You can only delete your own posts")
    if post.get("image_url"):
        storage.delete_public_file(db, post["image_url"], settings.posts_bucket)
    db.table("likes").delete().eq("post_id", post_id).execute()
    db.table("comments").delete().eq("post_id", post_id).execute()
    db.table("posts").delete().eq("id", post_id).execute()
    logger.info("User %s deleted post %s", user["id"], post_id)


# ── Likes ──────────────────────────────────────────────────────────────────

@router.post("/{post_id}/like", response_model=LikeStatusResponse)
async def toggle_like(post_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    """Like if not yet liked, otherwise unlike."""
    visible_post(db, post_id, user)
    existing = (
        db.table("likes").select("id")
        .eq("user_id", user["id"]).eq("post_id", post_id)
        .execute()
    ).data
    if existing:
        db.table("likes").delete().eq("user_id", user["id"]).eq("post_id", post_id).execute()
        liked = False
    else:
        db.table("likes").insert({"user_id": user["id"], "post_id": post_id}).execute()
        liked = True
    return LikeStatusResponse(post_id=post_id, liked=liked, like_count=_like_count(db, post_id))


@router.get("/{post_id}/like", response_model=LikeStatusResponse)
async def like_status(post_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    visible_post(db, post_id, user)
    existing = (
        db.table("likes").select("id")
        .eq("user_id", user["id"]).eq("post_id", post_id)
        .execute()
    ).data
    return LikeStatusResponse(post_id=post_id, liked=bool(existing), like_count=_like_count(db, post_id))
