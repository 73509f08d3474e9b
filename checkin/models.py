# checkin/models.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class Cadence(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class DraftStatus(str, Enum):
    PENDING_REVIEW = "pending_review"
    SENT = "sent"
    REJECTED = "rejected"


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INFO = "info"


# -----------------------------
# Records
# -----------------------------

class UserRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    is_verified: bool = False
    verification_token: str | None = None
    # kept as a plain string: unknown stored values fall back to weekly
    checkin_frequency: str = Cadence.WEEKLY.value
    next_checkin_due: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _str_id(cls, v: Any) -> str:
        return str(v)


class Campaign(BaseModel):
    id: str
    prompt_text: str
    is_active: bool = True
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _str_id(cls, v: Any) -> str:
        return str(v)


class Reply(BaseModel):
    id: str
    user_id: str
    campaign_id: str | None = None
    email_content_raw: str
    email_content_stripped: str
    received_at: datetime

    @field_validator("id", "user_id", "campaign_id", mode="before")
    @classmethod
    def _str_ids(cls, v: Any) -> str | None:
        return None if v is None else str(v)


class Submission(BaseModel):
    """Anything that can start a workflow: a stored reply or an inserted form row."""

    id: str
    user_id: str | None = None
    primary_goal: str | None = None
    additional_info: Any = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def _str_ids(cls, v: Any) -> str | None:
        return None if v is None else str(v)


class AIResponse(BaseModel):
    summary: str
    suggested_actions: list[str] = Field(default_factory=list)
    risk_profile: str = "moderate"


class Draft(BaseModel):
    id: str
    submission_id: str
    ai_response: dict[str, Any]
    status: DraftStatus = DraftStatus.PENDING_REVIEW
    reviewer_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("id", "submission_id", mode="before")
    @classmethod
    def _str_ids(cls, v: Any) -> str:
        return str(v)


class AuditLogEntry(BaseModel):
    action: str
    resource_id: str | None = None
    status: AuditStatus = AuditStatus.INFO
    details: Any = None
    timestamp: datetime


class WorkflowResult(BaseModel):
    success: bool = True
    draft_id: str
    status: DraftStatus


# -----------------------------
# Request bodies
# -----------------------------

class RegisterIn(BaseModel):
    email: EmailStr
    checkin_frequency: Cadence = Cadence.WEEKLY


class RejectIn(BaseModel):
    reason: str | None = None


class EditIn(BaseModel):
    ai_response: dict[str, Any]


class InboundEmailData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    from_: str = Field(default="", alias="from")
    to: list[str] = Field(default_factory=list)
    subject: str = ""
    text: str | None = None
    html: str | None = None

    @field_validator("to", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return list(v)


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    data: InboundEmailData = Field(default_factory=InboundEmailData)
