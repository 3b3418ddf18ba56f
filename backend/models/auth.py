from pydantic import BaseModel, Field
from typing import Optional


# ── Requests ───────────────────────────────────────────────────────────────

class SignUpRequest(BaseModel):
    email: str
    password: str
    display_name: str
    userid: str
    home_country: Optional[str] = None


class SignInRequest(BaseModel):
    email: str
    password: str


class OtpSendRequest(BaseModel):
    email: str


class OtpVerifyRequest(BaseModel):
    email: str
    token: str = Field(..., description="6-digit code from the verification email")


class AppleSignInRequest(BaseModel):
    id_token: str
    nonce: str  # raw nonce; Apple received its SHA-256 digest


class CompleteSignUpRequest(BaseModel):
    """Second half of the OTP and Apple wizards, sent with the new session's token."""
    password: Optional[str] = None
    display_name: str
    userid: str
    home_country: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: str


class PasswordResetRequest(BaseModel):
    email: str
    redirect_to: Optional[str] = None


# ── Responses ──────────────────────────────────────────────────────────────

class SessionResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
    user_id: str
    email: Optional[str] = None


class SignUpResponse(BaseModel):
    user_id: str
    email: Optional[str]
    confirmation_required: bool
    session: Optional[SessionResponse] = None


class NonceResponse(BaseModel):
    nonce: str
    hashed_nonce: str


class UseridAvailabilityResponse(BaseModel):
    userid: str
    available: bool
    message: str


class SessionStatusResponse(BaseModel):
    valid: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
