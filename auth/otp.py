"""
auth/otp.py -- One-time password generation and expiry.

Codes are four digits (1000-9999) drawn from the secrets module. They are
short-lived (Settings.otp_ttl_seconds, five minutes by default) and
single-use; UserStore.mark_otp_used() enforces the latter.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

OTP_MIN = 1000
OTP_MAX = 9999
DEFAULT_OTP_TTL_SECONDS = 300


def generate_otp() -> int:
    """Return a random integer in [1000, 9999]."""
    return OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1)


def is_otp_expired(
    created_at: datetime,
    now: datetime | None = None,
    ttl_seconds: int = DEFAULT_OTP_TTL_SECONDS,
) -> bool:
    """Return True once `now` is strictly later than created_at + ttl.

    Naive datetimes are treated as UTC (that is how MongoDB stores them).
    """
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now > created_at + timedelta(seconds=ttl_seconds)
