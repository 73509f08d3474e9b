# checkin/workflow.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

from checkin.models import DraftStatus, Submission, WorkflowResult

log = logging.getLogger("checkin.workflow")


@dataclass(frozen=True)
class AdditionalInfo:
    """Free-form submission context: parsed JSON when possible, else the raw string."""

    kind: Literal["structured", "raw", "empty"]
    value: Any

    @property
    def structured(self) -> bool:
        return self.kind == "structured"


def parse_additional_info(value: Any) -> AdditionalInfo:
    if value is None:
        return AdditionalInfo("empty", None)
    if not isinstance(value, str):
        return AdditionalInfo("structured", value)
    try:
        return AdditionalInfo("structured", json.loads(value))
    except ValueError:
        return AdditionalInfo("raw", value)


class WorkflowEngine:
    """
    Turns a submission into a draft awaiting human review.

    Both ingress paths (webhook replies and the realtime feed) call
    ``process_submission``. Nothing is retried here: a failed analysis or a
    failed draft insert is audited and re-raised to the caller.
    """

    def __init__(self, drafts, analyzer, audit):
        self.drafts = drafts
        self.analyzer = analyzer
        self.audit = audit

    def process_submission(self, submission: Submission | dict) -> WorkflowResult:
        sid = None
        try:
            if not isinstance(submission, Submission):
                submission = Submission.model_validate(submission)
            sid = submission.id
            self.audit.info("workflow_start", sid, {"user_id": submission.user_id})

            info = parse_additional_info(submission.additional_info)
            log.info("processing workflow for submission %s (info=%s)", sid, info.kind)

            result = self.analyzer.analyze(submission.primary_goal, info.value)

            try:
                draft = self.drafts.create(sid, result.model_dump())
            except Exception as e:
                self.audit.failure("draft_save_failed", sid, {"error": str(e)})
                raise

            log.info("draft saved for review: %s", draft.id)
            self.audit.success(
                "draft_created",
                draft.id,
                {"submission_id": sid, "status": DraftStatus.PENDING_REVIEW.value},
            )
            self.audit.success("workflow_complete", sid, {"draft_id": draft.id})
            return WorkflowResult(draft_id=draft.id, status=draft.status)
        except Exception as e:
            self.audit.failure("workflow_failed", sid, {"error": str(e)})
            raise
