"""
Map Supabase Auth failures onto an HTTP status and a message fit for users.
"""

from supabase import AuthError

INVALID_CREDENTIALS = "Email or password is incorrect."
EMAIL_NOT_CONFIRMED = "Please confirm your email address before signing in."
ALREADY_REGISTERED = "An account with this email already exists."
INVALID_CODE = "The verification code is invalid or has expired."
INVALID_INPUT = "The information you entered is invalid."
TOO_MANY_REQUESTS = "Too many attempts. Please wait a moment and try again."
GENERIC = "Authentication failed. Please try again."


def auth_error_detail(exc: AuthError) -> tuple[int, str]:
    message = (getattr(exc, "message", None) or str(exc)).lower()
    status = getattr(exc, "status", None)

    if "invalid login credentials" in message or "invalid credentials" in message:
        return 401, INVALID_CREDENTIALS
    if "email not confirmed" in message:
        return 403, EMAIL_NOT_CONFIRMED
    if "already registered" in message or "already been registered" in message:
        return 400, ALREADY_REGISTERED
    if "expired" in message or "invalid otp" in message or "token has" in message:
        return 400, INVALID_CODE
    if status == 429 or "rate limit" in message:
        return 429, TOO_MANY_REQUESTS
    if status == 422:
        return 422, INVALID_INPUT
    return 400, GENERIC
