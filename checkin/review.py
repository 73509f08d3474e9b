# checkin/review.py
from __future__ import annotations

from typing import Any

from checkin.errors import ConflictError, NotFoundError, ValidationError
from checkin.models import Draft, DraftStatus

PENDING = DraftStatus.PENDING_REVIEW


class ReviewController:
    """
    Operator transitions over drafts. Every transition requires the draft to
    be ``pending_review`` at the moment of the (conditional) update; approving
    only flips the status, delivery of the approved content happens elsewhere.
    """

    def __init__(self, drafts, audit):
        self.drafts = drafts
        self.audit = audit

    def list_drafts(self, status: DraftStatus | str = PENDING) -> list[Draft]:
        try:
            status = DraftStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown draft status: {status}")
        return self.drafts.list_by_status(status)

    def _miss(self, draft_id: str) -> Exception:
        current = self.drafts.get(draft_id)
        if current is None:
            return NotFoundError("Draft not found")
        return ConflictError(f"Draft is already {current.status.value}", current.status.value)

    def approve(self, draft_id: str) -> Draft:
        draft = self.drafts.transition(draft_id, expected=PENDING, status=DraftStatus.SENT)
        if draft is None:
            raise self._miss(draft_id)
        self.audit.success("draft_approved_and_sent", draft_id)
        return draft

    def reject(self, draft_id: str, reason: str | None = None) -> Draft:
        draft = self.drafts.transition(
            draft_id, expected=PENDING, status=DraftStatus.REJECTED, reviewer_notes=reason
        )
        if draft is None:
            raise self._miss(draft_id)
        self.audit.info("draft_rejected", draft_id, {"reason": reason})
        return draft

    def edit(self, draft_id: str, ai_response: dict[str, Any]) -> Draft:
        if not ai_response:
            raise ValidationError("Missing ai_response")
        draft = self.drafts.replace_response(draft_id, ai_response, expected=PENDING)
        if draft is None:
            raise self._miss(draft_id)
        self.audit.info("draft_edited", draft_id)
        return draft
