"""
Account sign-up and sign-in on top of Supabase Auth.

Three sign-up paths end in the same place, a session plus a profile row:
  - email + password in one call (`/signup`)
  - email OTP: `/otp/send` → `/otp/verify` → `/signup/complete`
  - Apple: `/apple/nonce` → `/apple` → `/signup/complete`
Sign-in calls go through a fresh anon-key client so no session is ever
attached to the shared service-role client.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from supabase import AuthError, Client

from auth import get_current_user, get_optional_user
from config import get_settings
from database import get_auth_client, get_supabase
from errors import ALREADY_REGISTERED
from limiter import limiter
from models.auth import (
    AppleSignInRequest,
    CompleteSignUpRequest,
    NonceResponse,
    OtpSendRequest,
    OtpVerifyRequest,
    PasswordResetRequest,
    RefreshRequest,
    SessionResponse,
    SessionStatusResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    UseridAvailabilityResponse,
)
from models.profile import ProfileResponse
from security import generate_nonce, sha256_hex
import validators

router = APIRouter(prefix="/auth", tags=["Auth"])
logger = logging.getLogger("globe.auth")
settings = get_settings()

USERID_CURRENT = "This is your current User ID"
USERID_AVAILABLE = "✓ This User ID is available"
USERID_TAKEN = "This User ID is already taken"


# ── Helpers ────────────────────────────────────────────────────────────────

def _validated(fn, value):
    try:
        return fn(value)
    except validators.ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


def _session_response(res) -> SessionResponse:
    if not res.session or not res.user:
        raise HTTPException(status_code=401, detail="No session was issued")
    return SessionResponse(
        access_token=res.session.access_token,
        refresh_token=res.session.refresh_token,
        expires_at=res.session.expires_at,
        user_id=str(res.user.id),
        email=res.user.email,
    )


def userid_owner(db: Client, userid: str) -> Optional[str]:
    """Return the profile id holding `userid`, or None."""
    res = db.table("profiles").select("id").eq("userid", userid).limit(1).execute()
    return str(res.data[0]["id"]) if res.data else None


def _ensure_userid_free(db: Client, userid: str, user_id: Optional[str] = None) -> None:
    owner = userid_owner(db, userid)
    if owner and owner != user_id:
        raise HTTPException(status_code=400, detail=USERID_TAKEN)


def _upsert_profile(db: Client, user_id: str, userid: str, display_name: str, home_country: Optional[str]) -> dict:
    row = {"id": user_id, "userid": userid, "display_name": display_name}
    if home_country:
        row["home_country"] = home_country
    res = db.table("profiles").upsert(row).execute()
    return res.data[0]


# ── Username availability ─────────────────────────────────────────────────

@router.get("/userid-available", response_model=UseridAvailabilityResponse)
async def userid_available(
    userid: str,
    user: Optional[dict] = Depends(get_optional_user),
    db: Client = Depends(get_supabase),
):
    """Availability check for live username fields; callers debounce on their side."""
    normalized = validators.normalize_userid(userid)
    try:
        validators.validate_userid(userid)
    except validators.ValidationError as exc:
        return UseridAvailabilityResponse(userid=normalized, available=False, message=str(exc))

    owner = userid_owner(db, normalized)
    if owner is None:
        return UseridAvailabilityResponse(userid=normalized, available=True, message=USERID_AVAILABLE)
    if user and owner == user["id"]:
        return UseridAvailabilityResponse(userid=normalized, available=True, message=USERID_CURRENT)
    return UseridAvailabilityResponse(userid=normalized, available=False, message=USERID_TAKEN)


# ── Email + password ──────────────────────────────────────────────────────

@router.post("/signup", response_model=SignUpResponse, status_code=201)
@limiter.limit(settings.rate_limit_signup)
async def signup(
    request: Request,
    payload: SignUpRequest,
    db: Client = Depends(get_supabase),
    anon: Client = Depends(get_auth_client),
):
    email = _validated(validators.validate_email, payload.email)
    password = _validated(validators.validate_password, payload.password)
    display_name = _validated(validators.validate_display_name, payload.display_name)
    userid = _validated(validators.validate_userid, payload.userid)
    home_country = _validated(validators.validate_home_country, payload.home_country) if payload.home_country else None

    _ensure_userid_free(db, userid)

    logger.info("Sign-up attempt for userid=%s", userid)
    res = anon.auth.sign_up({
        "email": email,
        "password": password,
        "options": {"data": {"display_name": display_name, "userid": userid}},
    })
    if not res.user:
        raise HTTPException(status_code=400, detail="Sign-up failed. Please try again.")
    # With email confirmation on, a taken address comes back as a stand-in user with no identities.
    if not res.user.identities:
        logger.info("Sign-up rejected for userid=%s: email already registered", userid)
        raise HTTPException(status_code=400, detail=ALREADY_REGISTERED)

    user_id = str(res.user.id)
    _upsert_profile(db, user_id, userid, display_name, home_country)
    logger.info("Sign-up succeeded for user %s", user_id)

    return SignUpResponse(
        user_id=user_id,
        email=res.user.email,
        confirmation_required=res.session is None,
        session=_session_response(res) if res.session else None,
    )


@router.post("/signin", response_model=SessionResponse)
@limiter.limit(settings.rate_limit_signin)
async def signin(
    request: Request,
    payload: SignInRequest,
    anon: Client = Depends(get_auth_client),
):
    email = _validated(validators.validate_email, payload.email)
    if not payload.password:
        raise HTTPException(status_code=400, detail="Password cannot be empty")
    try:
        res = anon.auth.sign_in_with_password({"email": email, "password": payload.password})
    except AuthError:
        logger.warning("Sign-in failed")
        raise
    logger.info("Sign-in succeeded for user %s", res.user.id if res.user else None)
    return _session_response(res)


# ── Email OTP ─────────────────────────────────────────────────────────────

@router.post("/otp/send", status_code=202)
@limiter.limit(settings.rate_limit_otp)
async def send_otp(
    request: Request,
    payload: OtpSendRequest,
    anon: Client = Depends(get_auth_client),
):
    email = _validated(validators.validate_email, payload.email)
    anon.auth.sign_in_with_otp({"email": email, "options": {"should_create_user": True}})
    logger.info("Verification code sent")
    return {"message": "A 6-digit verification code has been sent to your email."}


@router.post("/otp/verify", response_model=SessionResponse)
@limiter.limit(settings.rate_limit_otp)
async def verify_otp(
    request: Request,
    payload: OtpVerifyRequest,
    anon: Client = Depends(get_auth_client),
):
    email = _validated(validators.validate_email, payload.email)
    token = _validated(validators.validate_otp, payload.token)
    res = anon.auth.verify_otp({"email": email, "token": token, "type": "email"})
    logger.info("OTP verified for user %s", res.user.id if res.user else None)
    return _session_response(res)


# ── Apple ─────────────────────────────────────────────────────────────────

@router.get("/apple/nonce", response_model=NonceResponse)
async def apple_nonce():
    """Raw nonce for the client to keep, SHA-256 digest to hand to Apple."""
    nonce = generate_nonce()
    return NonceResponse(nonce=nonce, hashed_nonce=sha256_hex(nonce))


@router.post("/apple", response_model=SessionResponse)
@limiter.limit(settings.rate_limit_signin)
async def apple_signin(
    request: Request,
    payload: AppleSignInRequest,
    anon: Client = Depends(get_auth_client),
):
    res = anon.auth.sign_in_with_id_token({
        "provider": "apple",
        "token": payload.id_token,
        "nonce": payload.nonce,
    })
    logger.info("Apple sign-in succeeded for user %s", res.user.id if res.user else None)
    return _session_response(res)


# ── Wizard completion ─────────────────────────────────────────────────────

@router.post("/signup/complete", response_model=ProfileResponse)
async def complete_signup(
    payload: CompleteSignUpRequest,
    user: dict = Depends(get_current_user),
    db: Client = Depends(get_supabase),
):
    """Set password (optional for Apple), display name and userid for a fresh session."""
    display_name = _validated(validators.validate_display_name, payload.display_name)
    userid = _validated(validators.validate_userid, payload.userid)
    home_country = _validated(validators.validate_home_country, payload.home_country) if payload.home_country else None
    password = _validated(validators.validate_password, payload.password) if payload.password else None

    _ensure_userid_free(db, userid, user["id"])

    if password:
        db.auth.admin.update_user_by_id(user["id"], {"password": password})
    profile = _upsert_profile(db, user["id"], userid, display_name, home_country)
    logger.info("Sign-up completed for user %s", user["id"])
    return ProfileResponse(**profile)


# ── Session ───────────────────────────────────────────────────────────────

@router.post("/refresh", response_model=SessionResponse)
async def refresh(payload: RefreshRequest, anon: Client = Depends(get_auth_client)):
    res = anon.auth.refresh_session(payload.refresh_token)
    return _session_response(res)


@router.post("/signout", status_code=204)
async def signout(user: dict = Depends(get_current_user), db: Client = Depends(get_supabase)):
    db.auth.admin.sign_out(user["token"])
    logger.info("Signed out user %s", user["id"])


@router.get("/session", response_model=SessionStatusResponse)
async def session_status(request: Request, db: Client = Depends(get_supabase)):
    """Validity check for clients that poll their session."""
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith("bearer "):
        return SessionStatusResponse(valid=False)
    try:
        res = db.auth.get_user(header[7:].strip())
    except AuthError:
        return SessionStatusResponse(valid=False)
    if not res or not res.user:
        return SessionStatusResponse(valid=False)
    return SessionStatusResponse(valid=True, user_id=str(res.user.id), email=res.user.email)


@router.post("/password-reset", status_code=status.HTTP_202_ACCEPTED)
@limiter.limit(settings.rate_limit_otp)
async def password_reset(
    request: Request,
    payload: PasswordResetRequest,
    anon: Client = Depends(get_auth_client),
):
    email = _validated(validators.validate_email, payload.email)
    options = {"redirect_to": payload.redirect_to} if payload.redirect_to else {}
    anon.auth.reset_password_for_email(email, options)
    return {"message": "If an account exists for this email, a reset link has been sent."}
