from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
import uuid


# ── Requests ───────────────────────────────────────────────────────────────

class UpdateProfileRequest(BaseModel):
    display_name: Optional[str] = None
    bio: Optional[str] = None
    home_country: Optional[str] = None
    avatar_url: Optional[str] = None
    is_private: Optional[bool] = None


class AvatarUploadRequest(BaseModel):
    image_b64: str  # data:<mime>;base64,<data>  OR  raw base64 JPEG/PNG


class ChangeUseridRequest(BaseModel):
    userid: str = Field(..., min_length=1, max_length=64)


class ChangeEmailRequest(BaseModel):
    email: str


# ── Responses ──────────────────────────────────────────────────────────────

class ProfileResponse(BaseModel):
    id: uuid.UUID
    userid: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    home_country: Optional[str] = None
    is_private: bool = False
    post_count: int = 0
    follower_count: int = 0
    following_count: int = 0
    created_at: Optional[datetime] = None


class AccountDeletedResponse(BaseModel):
    user_id: str
    deleted: dict  # table/bucket -> rows or objects removed
