"""
Comments on posts. Only the author may delete a comment.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from auth import get_current_user, get_optional_user
from database import get_supabase
from models.comment import CommentResponse, CreateCommentRequest
from routers.posts import fetch_profiles, visible_post
from timefmt import short_time_ago
import validators

router = APIRouter(tags=["Comments"])
logger = logging.getLogger("globe")


def _enrich(db: Client, rows: list[dict]) -> list[CommentResponse]:
    authors = fetch_profiles(db, (r["user_id"] for r in rows))
    out = []
    for r in rows:
        author = authors.get(str(r["user_id"]), {})
        out.append(CommentResponse(
            **r,
            author_userid=author.get("userid"),
            author_display_name=author.get("display_name"),
            author_avatar_url=author.get("avatar_url"),
            time_ago=short_time_ago(r["created_at"]),
        ))
    return out


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: str,
    user: Optional[dict] = Depends(get_optional_user),
    db: Client = Depends(get_supabase),
):
    """Oldest first, so threads read top to bottom."""
    visible_post(db, post_id, user)
    rows = (
        db.table("comments").select("id, post_id, user_id, content, created_at")
        .eq("post_id", post_id)
        .order("created_at")
        .execute()
    ).data
    return _enrich(db, rows)


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    post_id: str,
    payload: CreateCommentRequest,
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    try:
        content = validators.validate_comment(payload.content)
    except validators.ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    visible_post(db, post_id, user)
    row = db.table("comments").insert({
        "post_id": post_id,
        "user_id": user["id"],
        "content": content,
    }).execute().data[0]
    return _enrich(db, [row])[0]


@router.delete("/comments/{comment_id}", status_code=204)
async def delete_comment(comment_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    comment = db.table("comments").select("id, user_id").eq("id", comment_id).single().execute().data
    if str(comment["user_id"]) != user["id"]:
        raise HTTPException(status_code=403, detail="You can only delete your own comments")
    db.table("comments").delete().eq("id", comment_id).execute()
    logger.info("User %s deleted comment %s", user["id"], comment_id)
