"""
Input validation and sanitisation.

Every validator returns the cleaned value or raises `ValidationError` with a
message that can be shown to the user as-is. The checks are a UX layer only;
uniqueness and ownership are enforced by the database.
"""

import re
from typing import Optional
from urllib.parse import urlparse

from mapview import distance_m


class ValidationError(ValueError):
    pass


USERID_MIN = 3
USERID_MAX = 30
DISPLAY_NAME_MAX = 50
BIO_MAX = 160
COMMENT_MAX = 200
LOCATION_NAME_MAX = 100

_USERID_RE = re.compile(r"^[a-z0-9_]+$")
_EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}$")
_PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d@$!%*?&#]{8,}$")
_OTP_RE = re.compile(r"^\d{6}$")
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")

_DANGEROUS_HTML = [
    re.compile(p, re.IGNORECASE | re.DOTALL)
    for p in (
        r"<script[^>]*>.*?</script>",
        r"<iframe[^>]*>.*?</iframe>",
        r"<object[^>]*>.*?</object>",
        r"<embed[^>]*>.*?</embed>",
        r"<form[^>]*>.*?</form>",
        r"javascript:",
        r"vbscript:",
        r"\bdata:[\w.+-]+/[\w.+-]+[;,]",
    )
]
# Event-handler attributes are only stripped inside a tag.
_EVENT_ATTR = re.compile(r"(<[^<>]*?)\s+on\w+\s*=\s*(?:\"[^\"]*\"|'[^']*'|[^\s<>]+)(?=[^<>]*>)", re.IGNORECASE)
_DANGEROUS_SCHEMES = ("javascript:", "data:", "vbscript:")

SPAM_PATTERNS = (
    "buy now", "click here", "free money", "guaranteed",
    "limited time", "act now", "call now", "urgent",
    "無料", "今すぐ", "限定", "保証", "儲ける", "稼ぐ",
    "!!!!!!!", "??????", ">>>>>>>>",
    "http://bit.ly", "http://tinyurl", ".tk/", ".ml/",
    "follow me", "check out", "visit my", "subscribe",
    "フォローして", "チェック", "見て", "登録",
)

HARMFUL_PATTERNS = (
    "kill", "murder", "violence", "attack", "bomb",
    "殺す", "殺害", "暴力", "攻撃", "爆弾", "テロ",
    "hate", "racism", "discrimination",
    "差別", "憎悪", "ヘイト",
    "suicide", "self-harm", "cutting",
    "自殺", "自傷", "リストカット",
    "drugs", "illegal", "cocaine", "heroin",
    "薬物", "違法", "コカイン", "ヘロイン", "覚醒剤",
)

_CARD_RE = re.compile(r"\b[0-9]{4}[\s-]?[0-9]{4}[\s-]?[0-9]{4}[\s-]?[0-9]{4}\b")
_JP_PHONE_RE = re.compile(r"\b0[0-9]{1,3}-[0-9]{4}-[0-9]{4}\b")
_EMBEDDED_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
ADDRESS_TERMS = ("東京都", "大阪府", "愛知県", "神奈川県", "北海道", "番地", "丁目", "区", "市", "町", "村")

SHORTENER_HOSTS = ("bit.ly", "tinyurl.com", "t.co", "goo.gl", "ow.ly", "is.gd", "buff.ly", "adf.ly")
SUSPICIOUS_TLDS = (".tk", ".ml", ".ga", ".cf")
_PLAIN_HTTP_RE = re.compile(r"http://\S+")
BLOCKED_URL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0", "::1", "bit.ly", "tinyurl.com", "t.co"}

# (latitude, longitude, radius in metres)
RESTRICTED_ZONES = [
    (35.685175, 139.752799, 500.0),  # Imperial Palace, Tokyo
]


# ── Sanitisation ──────────────────────────────────────────────────────────

def sanitize_text(value: str, max_length: int = 1000) -> str:
    """Truncate, strip markup that can execute, drop control characters."""
    cleaned = value[:max_length]
    for pattern in _DANGEROUS_HTML:
        cleaned = pattern.sub("", cleaned)
    while True:
        stripped = _EVENT_ATTR.sub(r"\1", cleaned)
        if stripped == cleaned:
            break
        cleaned = stripped
    cleaned = "".join(ch for ch in cleaned if ch == "\n" or ch.isprintable())
    return cleaned.strip()


# ── Account fields ────────────────────────────────────────────────────────

def normalize_userid(raw: str) -> str:
    return raw.strip().replace("@", "").lower()


def validate_userid(raw: str) -> str:
    userid = normalize_userid(raw)
    if not userid:
        raise ValidationError("User ID cannot be empty")
    if not USERID_MIN <= len(userid) <= USERID_MAX:
        raise ValidationError(f"User ID must be {USERID_MIN}-{USERID_MAX} characters")
    if not _USERID_RE.match(userid):
        raise ValidationError("Only lowercase letters, numbers, and underscores allowed")
    return userid


def validate_email(raw: str) -> str:
    email = raw.strip()
    if not email:
        raise ValidationError("Email cannot be empty")
    if len(email) > 254 or not _EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address")
    lowered = email.lower()
    if any(scheme in lowered for scheme in _DANGEROUS_SCHEMES):
        raise ValidationError("Email contains dangerous content")
    return lowered


def validate_password(password: str) -> str:
    if not _PASSWORD_RE.match(password):
        raise ValidationError(
            "Password must be at least 8 characters long and contain at least one letter and one number."
        )
    return password


def validate_display_name(raw: str) -> str:
    name = sanitize_text(raw, max_length=DISPLAY_NAME_MAX + 1)
    if not name:
        raise ValidationError("Display name cannot be empty")
    if len(name) > DISPLAY_NAME_MAX:
        raise ValidationError(f"Display name must be 1-{DISPLAY_NAME_MAX} characters")
    return name


def validate_bio(raw: str) -> str:
    bio = sanitize_text(raw, max_length=BIO_MAX + 1)
    if len(bio) > BIO_MAX:
        raise ValidationError(f"Bio must be at most {BIO_MAX} characters")
    return bio


def validate_home_country(raw: str) -> str:
    code = raw.strip().upper()
    if not _COUNTRY_RE.match(code):
        raise ValidationError("Home country must be a two-letter country code")
    return code


def validate_otp(raw: str) -> str:
    code = raw.strip()
    if not _OTP_RE.match(code):
        raise ValidationError("Verification code must be 6 digits")
    return code


def validate_https_url(raw: str) -> str:
    url = sanitize_text(raw, max_length=2048)
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.hostname:
        raise ValidationError("Only HTTPS URLs are allowed")
    if parsed.hostname.lower() in BLOCKED_URL_HOSTS:
        raise ValidationError("Domain not allowed")
    return url


# ── Content ───────────────────────────────────────────────────────────────

def contains_spam(content: str) -> bool:
    lowered = content.lower()
    if any(p in lowered for p in SPAM_PATTERNS):
        return True
    uppercase = sum(1 for ch in content if ch.isupper())
    return len(content) > 10 and uppercase > len(content) // 2


def contains_harmful(content: str) -> bool:
    lowered = content.lower()
    return any(p in lowered for p in HARMFUL_PATTERNS)


def contains_personal_info(content: str) -> bool:
    if _CARD_RE.search(content) or _JP_PHONE_RE.search(content) or _EMBEDDED_EMAIL_RE.search(content):
        return True
    return sum(1 for term in ADDRESS_TERMS if term in content) >= 2


def contains_suspicious_links(content: str) -> bool:
    lowered = content.lower()
    if any(host in lowered for host in SHORTENER_HOSTS):
        return True
    if _PLAIN_HTTP_RE.search(content):
        return True
    return any(tld in lowered for tld in SUSPICIOUS_TLDS)


def _check_content(content: str) -> None:
    if contains_spam(content):
        raise ValidationError("Content appears to be spam")
    if contains_harmful(content):
        raise ValidationError("Content contains harmful material")
    if contains_personal_info(content):
        raise ValidationError("Content may contain personal information")
    if contains_suspicious_links(content):
        raise ValidationError("Content contains suspicious links")


def validate_post_content(raw: Optional[str], max_length: int = 30, has_image: bool = False) -> str:
    """
    Truncate to `max_length`, then sanitise and screen the text.
    A photo-only post may have empty text; otherwise text is required.
    """
    text = (raw or "")[:max_length]
    if not text.strip():
        if has_image:
            return ""
        raise ValidationError("A post needs text or a photo")
    content = sanitize_text(text, max_length=max_length)
    if not content:
        raise ValidationError("Post content cannot be empty")
    _check_content(content)
    return content


def validate_comment(raw: str) -> str:
    content = sanitize_text(raw, max_length=COMMENT_MAX)
    if not content:
        raise ValidationError("Comment cannot be empty")
    _check_content(content)
    return content


def sanitize_location_name(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    return sanitize_text(raw, max_length=LOCATION_NAME_MAX) or None


def validate_location(latitude: float, longitude: float) -> tuple[float, float]:
    if not -90 <= latitude <= 90:
        raise ValidationError("Invalid latitude value")
    if not -180 <= longitude <= 180:
        raise ValidationError("Invalid longitude value")
    for zone_lat, zone_lon, radius in RESTRICTED_ZONES:
        if distance_m(latitude, longitude, zone_lat, zone_lon) < radius:
            raise ValidationError("Location posting not allowed in this area")
    return latitude, longitude
