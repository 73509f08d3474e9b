# checkin/stores.py
"""
Postgres-backed collaborators: users, campaigns, replies, submissions,
drafts and the audit table. One pooled connection per call; the pool's
context manager commits on success and rolls back on error.
"""
from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime, date
from typing import Any, Iterator
from uuid import UUID

import psycopg
from psycopg.types.json import Json
from psycopg_pool import ConnectionPool, PoolTimeout

from checkin.errors import TransientDependencyError
from checkin.models import (
    AuditLogEntry,
    Campaign,
    Draft,
    DraftStatus,
    Reply,
    Submission,
    UserRecord,
)


def _json_dumps(obj: Any) -> str:
    """Safe JSON dump for psycopg Json(...), handling UUID/datetime, etc."""
    def _default(o: Any):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, UUID):
            return str(o)
        if isinstance(o, set):
            return list(o)
        return str(o)
    return json.dumps(obj, default=_default)


def _as_uuid(value: Any) -> UUID | None:
    """Parse a path or payload id for a uuid column; None when it cannot be one."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class PgStore:
    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    @contextmanager
    def _conn(self) -> Iterator[psycopg.Connection]:
        try:
            with self.pool.connection() as conn:
                yield conn
        except (psycopg.Error, PoolTimeout) as e:
            raise TransientDependencyError(f"storage error: {type(e).__name__}") from e


# -----------------------------
# Users
# -----------------------------

USER_COLUMNS = "id, email, is_verified, verification_token, checkin_frequency, next_checkin_due"


class PgUserDirectory(PgStore):
    def due_for_checkin(self, now: datetime) -> list[UserRecord]:
        with self._conn() as conn:
            rows = conn.execute(
                f"""
                SELECT {USER_COLUMNS}
                  FROM users
                 WHERE is_verified = TRUE
                   AND next_checkin_due <= %s
                 ORDER BY next_checkin_due ASC;
                """,
                (now,),
            ).fetchall()
        return [UserRecord.model_validate(r) for r in rows]

    def find_by_email(self, email: str) -> UserRecord | None:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE email = %s LIMIT 1;",
                (email.strip().lower(),),
            ).fetchone()
        return UserRecord.model_validate(row) if row else None

    def find_verified_by_email(self, email: str) -> UserRecord | None:
        user = self.find_by_email(email)
        return user if user and user.is_verified else None

    def find_by_token(self, token: str) -> UserRecord | None:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE verification_token = %s LIMIT 1;",
                (token,),
            ).fetchone()
        return UserRecord.model_validate(row) if row else None

    def create(
        self,
        *,
        email: str,
        checkin_frequency: str,
        verification_token: str,
        next_checkin_due: datetime,
    ) -> UserRecord:
        with self._conn() as conn:
            row = conn.execute(
                f"""
                INSERT INTO users (email, verification_token, checkin_frequency, next_checkin_due, is_verified)
                VALUES (%s, %s, %s, %s, FALSE)
                RETURNING {USER_COLUMNS};
                """,
                (email, verification_token, checkin_frequency, next_checkin_due),
            ).fetchone()
        return UserRecord.model_validate(row)

    def mark_verified(self, user_id: str) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                UPDATE users
                   SET is_verified = TRUE,
                       verification_token = NULL,
                       updated_at = NOW()
                 WHERE id = %s;
                """,
                (user_id,),
            )

    def reschedule(self, user_id: str, next_checkin_due: datetime) -> None:
        with self._conn() as conn:
            cur = conn.execute(
                "UPDATE users SET next_checkin_due = %s, updated_at = NOW() WHERE id = %s;",
                (next_checkin_due, user_id),
            )
            if cur.rowcount == 0:
                raise TransientDependencyError(f"user {user_id} vanished before reschedule")


# -----------------------------
# Campaigns
# -----------------------------

class PgCampaignStore(PgStore):
    def current(self) -> Campaign | None:
        """Most recently created active campaign; newest created_at wins."""
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT id, prompt_text, is_active, created_at
                  FROM campaigns
                 WHERE is_active = TRUE
                 ORDER BY created_at DESC
                 LIMIT 1;
                """
            ).fetchone()
        return Campaign.model_validate(row) if row else None


# -----------------------------
# Replies
# -----------------------------

class PgReplyStore(PgStore):
    def create(
        self,
        *,
        user_id: str,
        campaign_id: str | None,
        email_content_raw: str,
        email_content_stripped: str,
        received_at: datetime,
    ) -> Reply:
        with self._conn() as conn:
            row = conn.execute(
                """
                INSERT INTO replies (user_id, campaign_id, email_content_raw, email_content_stripped, received_at)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id, user_id, campaign_id, email_content_raw, email_content_stripped, received_at;
                """,
                (user_id, campaign_id, email_content_raw, email_content_stripped, received_at),
            ).fetchone()
        return Reply.model_validate(row)


# -----------------------------
# Form submissions (realtime source)
# -----------------------------

class PgSubmissionStore(PgStore):
    def get(self, submission_id: str) -> Submission | None:
        sid = _as_uuid(submission_id)
        if sid is None:
            return None
        with self._conn() as conn:
            row = conn.execute(
                "SELECT id, user_id, primary_goal, additional_info FROM form_submissions WHERE id = %s;",
                (sid,),
            ).fetchone()
        return Submission.model_validate(row) if row else None


# -----------------------------
# Drafts
# -----------------------------

DRAFT_COLUMNS = "id, submission_id, ai_response, status, reviewer_notes, created_at, updated_at"


class PgDraftStore(PgStore):
    def create(self, submission_id: str, ai_response: dict) -> Draft:
        with self._conn() as conn:
            row = conn.execute(
                f"""
                INSERT INTO ai_drafts (submission_id, ai_response, status)
                VALUES (%s, %s, %s)
                RETURNING {DRAFT_COLUMNS};
                """,
                (submission_id, Json(ai_response, dumps=_json_dumps), DraftStatus.PENDING_REVIEW.value),
            ).fetchone()
        return Draft.model_validate(row)

    def get(self, draft_id: str) -> Draft | None:
        did = _as_uuid(draft_id)
        if did is None:
            return None
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {DRAFT_COLUMNS} FROM ai_drafts WHERE id = %s;",
                (did,),
            ).fetchone()
        return Draft.model_validate(row) if row else None

    def list_by_status(self, status: DraftStatus) -> list[Draft]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {DRAFT_COLUMNS} FROM ai_drafts WHERE status = %s ORDER BY created_at DESC;",
                (DraftStatus(status).value,),
            ).fetchall()
        return [Draft.model_validate(r) for r in rows]

    def transition(
        self,
        draft_id: str,
        *,
        expected: DraftStatus,
        status: DraftStatus,
        reviewer_notes: str | None = None,
    ) -> Draft | None:
        """Move one draft between states; None when it is missing or not in ``expected``."""
        did = _as_uuid(draft_id)
        if did is None:
            return None
        with self._conn() as conn:
            row = conn.execute(
                f"""
                UPDATE ai_drafts
                   SET status = %s,
                       reviewer_notes = COALESCE(%s, reviewer_notes),
                       updated_at = NOW()
                 WHERE id = %s
                   AND status = %s
                RETURNING {DRAFT_COLUMNS};
                """,
                (status.value, reviewer_notes, did, expected.value),
            ).fetchone()
        return Draft.model_validate(row) if row else None

    def replace_response(self, draft_id: str, ai_response: dict, *, expected: DraftStatus) -> Draft | None:
        did = _as_uuid(draft_id)
        if did is None:
            return None
        with self._conn() as conn:
            row = conn.execute(
                f"""
                UPDATE ai_drafts
                   SET ai_response = %s,
                       updated_at = NOW()
                 WHERE id = %s
                   AND status = %s
                RETURNING {DRAFT_COLUMNS};
                """,
                (Json(ai_response, dumps=_json_dumps), did, expected.value),
            ).fetchone()
        return Draft.model_validate(row) if row else None


# -----------------------------
# Audit
# -----------------------------

class PgAuditStore(PgStore):
    def append(self, entry: AuditLogEntry) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO audit_logs (action, resource_id, status, details, created_at)
                VALUES (%s, %s, %s, %s, %s);
                """,
                (
                    entry.action,
                    entry.resource_id,
                    entry.status.value,
                    Json(entry.details, dumps=_json_dumps) if entry.details is not None else None,
                    entry.timestamp,
                ),
            )
