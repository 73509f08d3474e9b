# checkin/verification.py
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from checkin.errors import NotFoundError, ValidationError
from checkin.models import Cadence, UserRecord

log = logging.getLogger("checkin.verification")

CADENCE_INTERVALS: dict[str, timedelta] = {
    Cadence.DAILY.value: timedelta(hours=24),
    Cadence.WEEKLY.value: timedelta(days=7),
    Cadence.BIWEEKLY.value: timedelta(days=14),
    Cadence.MONTHLY.value: timedelta(days=30),
}
DEFAULT_INTERVAL = CADENCE_INTERVALS[Cadence.WEEKLY.value]


def calculate_next_checkin(frequency: str | Cadence | None, now: datetime | None = None) -> datetime:
    """Next due time for a cadence, measured from ``now``. Unknown values count as weekly."""
    now = now or datetime.now(timezone.utc)
    key = frequency.value if isinstance(frequency, Cadence) else frequency
    return now + CADENCE_INTERVALS.get(key or "", DEFAULT_INTERVAL)


def verification_url(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/api/verify?token={token}"


class VerificationService:
    """Registration and one-time email confirmation."""

    def __init__(self, users, mailer, audit, *, base_url: str):
        self.users = users
        self.mailer = mailer
        self.audit = audit
        self.base_url = base_url

    def register(self, email: str, frequency: str | Cadence = Cadence.WEEKLY) -> UserRecord:
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required")
        try:
            cadence = Cadence(frequency)
        except ValueError:
            raise ValidationError(f"Unknown checkin_frequency: {frequency}")

        if self.users.find_by_email(email):
            raise ValidationError("Email is already registered")

        token = secrets.token_urlsafe(32)
        user = self.users.create(
            email=email,
            checkin_frequency=cadence.value,
            verification_token=token,
            next_checkin_due=calculate_next_checkin(cadence),
        )
        self.mailer.send_verification(email, verification_url(self.base_url, token))
        self.audit.success("user_registered", user.id, {"checkin_frequency": cadence.value})
        return user

    def verify(self, token: str) -> dict:
        if not token:
            raise ValidationError("Token required")
        user = self.users.find_by_token(token)
        if not user:
            raise NotFoundError("Invalid or expired verification token")
        if user.is_verified:
            return {"message": "Email already verified"}

        # clears the token as part of the same update, so a replay finds nothing
        self.users.mark_verified(user.id)
        self.audit.success("user_verified", user.id)
        return {"message": "Email verified successfully"}
