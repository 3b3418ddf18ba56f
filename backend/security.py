"""
App-version gating, Apple sign-in nonces, and security event reporting.
"""

import hashlib
import logging
import secrets
import string
from enum import Enum
from typing import Optional

logger = logging.getLogger("globe.security")

NONCE_CHARSET = string.digits + string.ascii_uppercase + string.ascii_lowercase + "-._"


class SecuritySeverity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


_LOG_LEVELS = {
    SecuritySeverity.low: logging.INFO,
    SecuritySeverity.medium: logging.WARNING,
    SecuritySeverity.high: logging.ERROR,
    SecuritySeverity.critical: logging.CRITICAL,
}


# ── Versions ──────────────────────────────────────────────────────────────

def parse_version(v: str) -> tuple:
    parts = []
    for piece in v.strip().split("."):
        parts.append(int(piece) if piece.isdigit() else 0)
    return tuple(parts)


def is_version_supported(current: str, minimum: str) -> bool:
    """Component-wise comparison; the shorter version is padded with zeros."""
    cur, low = parse_version(current), parse_version(minimum)
    width = max(len(cur), len(low))
    cur += (0,) * (width - len(cur))
    low += (0,) * (width - len(low))
    return cur >= low


# ── Apple sign-in ─────────────────────────────────────────────────────────

def generate_nonce(length: int = 32) -> str:
    return "".join(secrets.choice(NONCE_CHARSET) for _ in range(length))


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


# ── Events ────────────────────────────────────────────────────────────────

def report_security_event(
    event: str,
    severity: SecuritySeverity = SecuritySeverity.low,
    details: Optional[dict] = None,
    user_id: Optional[str] = None,
) -> dict:
    record = {
        "event": event,
        "severity": SecuritySeverity(severity).value,
        "details": details or {},
        "user_id": user_id,
    }
    logger.log(_LOG_LEVELS[SecuritySeverity(severity)], "Security event: %s", record)
    return record


def evaluate_device(
    app_version: Optional[str],
    jailbroken: bool,
    minimum_version: str,
    user_id: Optional[str] = None,
) -> list[dict]:
    """Turn a client's self-reported device state into security events."""
    events = []
    if jailbroken:
        events.append(report_security_event(
            "jailbreak_detected", SecuritySeverity.high,
            {"app_version": app_version}, user_id,
        ))
    if app_version and not is_version_supported(app_version, minimum_version):
        events.append(report_security_event(
            "outdated_app_version", SecuritySeverity.medium,
            {"app_version": app_version, "minimum_version": minimum_version}, user_id,
        ))
    return events
