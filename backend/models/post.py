from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
import uuid


# ── Requests ───────────────────────────────────────────────────────────────

class CreatePostRequest(BaseModel):
    """
    Text, a photo, or both. `image_base64` is a data URI or raw base64;
    the backend compresses it and stores it in the posts bucket.
    Text longer than the post limit is truncated, not rejected.
    """
    content: Optional[str] = None
    image_base64: Optional[str] = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    location_name: Optional[str] = None
    is_public: bool = True
    is_anonymous: bool = False


# ── Responses ──────────────────────────────────────────────────────────────

class PostResponse(BaseModel):
    id: uuid.UUID
    user_id: str  # "anonymous" for anonymous posts
    content: Optional[str]
    image_url: Optional[str]
    location_name: Optional[str]
    latitude: float
    longitude: float
    is_public: bool = True
    is_anonymous: bool = False
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime
    author_userid: Optional[str] = None
    author_display_name: Optional[str] = None
    author_avatar_url: Optional[str] = None
    is_new: bool
    time_ago: str


class LikeStatusResponse(BaseModel):
    post_id: uuid.UUID
    liked: bool
    like_count: int
