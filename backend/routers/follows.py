"""
Follow graph: follow, unfollow, toggle, status, counts and lists.
"""

from fastapi import APIRouter, Depends, HTTPException
from supabase import Client

from auth import get_current_user
from database import get_supabase
from models.follow import FollowCountsResponse, FollowStatusResponse
from models.profile import ProfileResponse

router = APIRouter(prefix="/follows", tags=["Follows"])

LIST_LIMIT = 100


# ── Helpers ────────────────────────────────────────────────────────────────

def is_following(db: Client, follower_id: str, following_id: str) -> bool:
    res = (
        db.table("follows").select("id", count="exact")
        .eq("follower_id", follower_id)
        .eq("following_id", following_id)
        .execute()
    )
    return (res.count or 0) > 0


def _count(db: Client, column: str, user_id: str) -> int:
    res = db.table("follows").select("id", count="exact").eq(column, user_id).execute()
    return res.count or 0


def _check_target(db: Client, me: str, target: str) -> None:
    if me == target:
        raise HTTPException(status_code=400, detail="You cannot follow yourself")
    db.table("profiles").select("id").eq("id", target).single().execute()


def _follow(db: Client, me: str, target: str) -> None:
    if not is_following(db, me, target):
        db.table("follows").insert({"follower_id": me, "following_id": target}).execute()


def _unfollow(db: Client, me: str, target: str) -> None:
    db.table("follows").delete().eq("follower_id", me).eq("following_id", target).execute()


def _profiles(db: Client, ids: list[str]) -> list[ProfileResponse]:
    if not ids:
        return []
    rows = db.table("profiles").select("*").in_("id", ids).execute().data
    by_id = {str(r["id"]): r for r in rows}
    return [ProfileResponse(**by_id[i]) for i in ids if i in by_id]


# ── Endpoints ──────────────────────────────────────────────────────────────

@router.post("/{user_id}", response_model=FollowStatusResponse)
async def follow(user_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    _check_target(db, user["id"], user_id)
    _follow(db, user["id"], user_id)
    return FollowStatusResponse(user_id=user_id, is_following=True)


@router.delete("/{user_id}", response_model=FollowStatusResponse)
async def unfollow(user_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    _unfollow(db, user["id"], user_id)
    return FollowStatusResponse(user_id=user_id, is_following=False)


@router.post("/{user_id}/toggle", response_model=FollowStatusResponse)
async def toggle_follow(user_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    _check_target(db, user["id"], user_id)
    if is_following(db, user["id"], user_id):
        _unfollow(db, user["id"], user_id)
        return FollowStatusResponse(user_id=user_id, is_following=False)
    _follow(db, user["id"], user_id)
    return FollowStatusResponse(user_id=user_id, is_following=True)


@router.get("/{user_id}/status", response_model=FollowStatusResponse)
async def follow_status(user_id: str, user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    return FollowStatusResponse(user_id=user_id, is_following=is_following(db, user["id"], user_id))


@router.get("/{user_id}/counts", response_model=FollowCountsResponse)
async def follow_counts(user_id: str, db: Client = Depends(get_supabase)):
    return FollowCountsResponse(
        user_id=user_id,
        followers=_count(db, "following_id", user_id),
        following=_count(db, "follower_id", user_id),
    )


@router.get("/{user_id}/followers", response_model=list[ProfileResponse])
async def followers(user_id: str, db: Client = Depends(get_supabase)):
    rows = (
        db.table("follows").select("follower_id")
        .eq("following_id", user_id)
        .order("created_at", desc=True)
        .limit(LIST_LIMIT)
        .execute()
    ).data
    return _profiles(db, [str(r["follower_id"]) for r in rows])


@router.get("/{user_id}/following", response_model=list[ProfileResponse])
async def following(user_id: str, db: Client = Depends(get_supabase)):
    rows = (
        db.table("follows").select("following_id")
        .eq("follower_id", user_id)
        .order("created_at", desc=True)
        .limit(LIST_LIMIT)
        .execute()
    ).data
    return _profiles(db, [str(r["following_id"]) for r in rows])
