"""
Profiles: read and edit your own, change userid or email, upload an avatar,
search, and delete the whole account.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from auth import get_current_user
from config import get_settings
from database import get_supabase
from models.profile import (
    AccountDeletedResponse,
    AvatarUploadRequest,
    ChangeEmailRequest,
    ChangeUseridRequest,
    ProfileResponse,
    UpdateProfileRequest,
)
from routers.auth import USERID_TAKEN, userid_owner
import storage
import validators

router = APIRouter(prefix="/profiles", tags=["Profiles"])
logger = logging.getLogger("globe")
settings = get_settings()

SEARCH_LIMIT = 20


def _load(db: Client, user_id: str) -> dict:
    return db.table("profiles").select("*").eq("id", user_id).single().execute().data


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    return ProfileResponse(**_load(db, user["id"]))


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    payload: UpdateProfileRequest,
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    updates = {}
    try:
        if payload.display_name is not None:
            updates["display_name"] = validators.validate_display_name(payload.display_name)
        if payload.bio is not None:
            updates["bio"] = validators.validate_bio(payload.bio)
        if payload.home_country is not None:
            updates["home_country"] = validators.validate_home_country(payload.home_country)
        if payload.avatar_url is not None:
            updates["avatar_url"] = validators.validate_https_url(payload.avatar_url)
    except validators.ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if payload.is_private is not None:
        updates["is_private"] = payload.is_private

    if not updates:
        return ProfileResponse(**_load(db, user["id"]))
    res = db.table("profiles").update(updates).eq("id", user["id"]).execute()
    return ProfileResponse(**res.data[0])


@router.post("/me/avatar", response_model=ProfileResponse)
async def upload_avatar(
    payload: AvatarUploadRequest,
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    """Upload a profile picture; it is centre-cropped to a square JPEG."""
    try:
        data, mime = storage.decode_image_payload(payload.image_b64)
    except storage.ImagePayloadError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    public_url = storage.upload_avatar(db, data, mime, user["id"])
    res = db.table("profiles").update({"avatar_url": public_url}).eq("id", user["id"]).execute()
    return ProfileResponse(**res.data[0])


@router.put("/me/userid", response_model=ProfileResponse)
async def change_userid(
    payload: ChangeUseridRequest,
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    try:
        userid = validators.validate_userid(payload.userid)
    except validators.ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    owner = userid_owner(db, userid)
    if owner == user["id"]:
        return ProfileResponse(**_load(db, user["id"]))
    if owner:
        raise HTTPException(status_code=400, detail=USERID_TAKEN)
    res = db.table("profiles").update({"userid": userid}).eq("id", user["id"]).execute()
    logger.info("User %s changed userid", user["id"])
    return ProfileResponse(**res.data[0])


@router.put("/me/email")
async def change_email(
    payload: ChangeEmailRequest,
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    try:
        email = validators.validate_email(payload.email)
    except validators.ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    db.auth.admin.update_user_by_id(user["id"], {"email": email})
    logger.info("User %s changed email", user["id"])
    return {"email": email}


@router.delete("/me", response_model=AccountDeletedResponse)
async def delete_account(user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    """
    Remove everything the account owns, children first: stored images,
    likes and comments (given and received), follows in both directions,
    posts, the profile row, and finally the auth user.
    """
    uid = user["id"]
    deleted = {
        "post_images": storage.purge_user_folder(db, settings.posts_bucket, uid),
        "avatars": storage.purge_user_folder(db, settings.avatars_bucket, uid),
    }

    post_ids = [p["id"] for p in db.table("posts").select("id").eq("user_id", uid).execute().data]
    if post_ids:
        deleted["likes_received"] = len(db.table("likes").delete().in_("post_id", post_ids).execute().data)
        deleted["comments_received"] = len(db.table("comments").delete().in_("post_id", post_ids).execute().data)

    deleted["likes"] = len(db.table("likes").delete().eq("user_id", uid).execute().data)
    deleted["comments"] = len(db.table("comments").delete().eq("user_id", uid).execute().data)
    deleted["following"] = len(db.table("follows").delete().eq("follower_id", uid).execute().data)
    deleted["followers"] = len(db.table("follows").delete().eq("following_id", uid).execute().data)
    deleted["posts"] = len(db.table("posts").delete().eq("user_id", uid).execute().data)
    deleted["profiles"] = len(db.table("profiles").delete().eq("id", uid).execute().data)

    db.auth.admin.delete_user(uid)
    logger.info("Deleted account %s: %s", uid, deleted)
    return AccountDeletedResponse(user_id=uid, deleted=deleted)


@router.get("/search", response_model=list[ProfileResponse])
async def search_profiles(q: str, db: Client = Depends(get_supabase)):
    """Case-insensitive substring match on userid, then display name."""
    term = validators.sanitize_text(q, max_length=50)
    term = term.replace("\\", "").replace("%", "").replace(",", "")
    if not term:
        return []
    # `_` is a single-character wildcard in LIKE; match it literally.
    pattern = "%" + term.replace("_", r"\_") + "%"
    seen, results = set(), []
    for column in ("userid", "display_name"):
        rows = db.table("profiles").select("*").ilike(column, pattern).limit(SEARCH_LIMIT).execute().data
        for row in rows:
            if row["id"] not in seen:
                seen.add(row["id"])
                results.append(ProfileResponse(**row))
    return results[:SEARCH_LIMIT]


@router.get("/{userid}", response_model=ProfileResponse)
async def get_profile(userid: str, db: Client = Depends(get_supabase)):
    res = db.table("profiles").select("*").eq("userid", validators.normalize_userid(userid)).single().execute()
    return ProfileResponse(**res.data)
