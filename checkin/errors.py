# checkin/errors.py
from __future__ import annotations


class CheckinError(Exception):
    """Base for every error the HTTP layer knows how to render."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CheckinError):
    status_code = 400


class AuthenticationError(CheckinError):
    """Bad or missing webhook signature. Never retried."""

    status_code = 401


class AttributionError(CheckinError):
    """Inbound sender is unknown or unverified; the message is not stored."""

    status_code = 403


class NotFoundError(CheckinError):
    status_code = 404


class ConflictError(CheckinError):
    """A review transition was attempted on a draft that is no longer pending."""

    status_code = 409

    def __init__(self, message: str, current_status: str):
        super().__init__(message)
        self.current_status = current_status


class TransientDependencyError(CheckinError):
    """Mailer, storage or analysis call failed (including timeouts)."""

    status_code = 502


class ServiceUnavailableError(CheckinError):
    status_code = 503
