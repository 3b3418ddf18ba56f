"""
Bearer-token authentication for GLOBE users.

The client sends the Supabase access token it got at sign-in; the
dependency resolves it against Supabase Auth.
"""

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import AuthError, Client

from database import get_supabase

HTTP_BEARER = HTTPBearer(auto_error=False)


def _resolve(db: Client, token: str) -> dict:
    try:
        res = db.auth.get_user(token)
    except AuthError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired") from exc
    if not res or not res.user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return {"id": str(res.user.id), "email": res.user.email, "token": token}


async def get_current_user(
    token: Optional[HTTPAuthorizationCredentials] = Depends(HTTP_BEARER),
    db: Client = Depends(get_supabase),
) -> dict:
    """Resolve the Bearer token → {id, email, token}."""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Bearer token")
    return _resolve(db, token.credentials)


async def get_optional_user(
    token: Optional[HTTPAuthorizationCredentials] = Depends(HTTP_BEARER),
    db: Client = Depends(get_supabase),
) -> Optional[dict]:
    """Like `get_current_user`, but anonymous callers get None."""
    if not token:
        return None
    return _resolve(db, token.credentials)
