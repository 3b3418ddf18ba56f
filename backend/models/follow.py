from pydantic import BaseModel
import uuid


class FollowStatusResponse(BaseModel):
    user_id: uuid.UUID
    is_following: bool


class FollowCountsResponse(BaseModel):
    user_id: uuid.UUID
    followers: int
    following: int
