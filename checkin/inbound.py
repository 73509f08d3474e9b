# checkin/inbound.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping

from pydantic import ValidationError as PydanticValidationError

from checkin.email_parser import extract_email, strip_email_content
from checkin.errors import AttributionError, AuthenticationError, ValidationError
from checkin.models import Reply, Submission, WebhookEvent
from checkin.signatures import verify_webhook_signature

log = logging.getLogger("checkin.inbound")

# Svix-style headers sent by the mail provider
SIGNATURE_HEADER = "svix-signature"
TIMESTAMP_HEADER = "svix-timestamp"
DELIVERY_HEADER = "svix-id"

RECEIVED_EVENT = "email.received"


@dataclass
class InboundResult:
    reply: Reply
    submission: Submission


class WebhookIngestor:
    """Authenticate, attribute and store inbound email replies."""

    def __init__(self, users, campaigns, replies, workflow, audit, *, secret: str | None = None):
        self.users = users
        self.campaigns = campaigns
        self.replies = replies
        self.workflow = workflow
        self.audit = audit
        self.secret = secret or None

    def verify(self, payload: str, headers: Mapping[str, str]) -> None:
        if not self.secret:
            log.warning(
                "WEBHOOK_SECRET not set - skipping signature verification "
                "(INSECURE: local development only)"
            )
            return
        signature = headers.get(SIGNATURE_HEADER)
        timestamp = headers.get(TIMESTAMP_HEADER)
        if not signature or not timestamp:
            raise AuthenticationError("Missing webhook signature headers")
        if not verify_webhook_signature(payload, signature, timestamp, self.secret):
            self.audit.failure("webhook_signature_invalid", headers.get(DELIVERY_HEADER))
            raise AuthenticationError("Invalid webhook signature")

    def handle(self, payload: str, headers: Mapping[str, str]) -> InboundResult | None:
        """
        Process one provider delivery. Returns None for ignored event types.
        Raises AuthenticationError, AttributionError or ValidationError.
        """
        self.verify(payload, headers)
        delivery_id = headers.get(DELIVERY_HEADER)

        try:
            event = WebhookEvent.model_validate_json(payload)
        except PydanticValidationError:
            raise ValidationError("Malformed webhook payload")

        if event.type != RECEIVED_EVENT:
            log.info("Ignoring webhook type: %s", event.type)
            return None

        data = event.data
        sender = extract_email(data.from_)
        if not sender:
            raise ValidationError("Missing sender address")

        user = self.users.find_verified_by_email(sender)
        if user is None:
            log.info("No verified user found for email: %s", sender)
            self.audit.failure("reply_rejected", delivery_id, {"reason": "unknown or unverified sender"})
            raise AttributionError("User not found or not verified")

        raw = data.text or data.html or ""
        stripped = strip_email_content(raw)

        try:
            campaign = self.campaigns.current()
        except Exception as e:
            log.warning("Campaign lookup failed, storing reply untagged: %s", e)
            campaign = None

        reply = self.replies.create(
            user_id=user.id,
            campaign_id=campaign.id if campaign else None,
            email_content_raw=raw,
            email_content_stripped=stripped,
            received_at=datetime.now(timezone.utc),
        )
        log.info("Reply stored for user %s, reply ID: %s", user.id, reply.id)
        self.audit.success(
            "reply_received",
            reply.id,
            {"user_id": user.id, "campaign_id": reply.campaign_id, "delivery_id": delivery_id},
        )

        submission = Submission(
            id=reply.id,
            user_id=user.id,
            primary_goal=campaign.prompt_text if campaign else (data.subject or None),
            additional_info=stripped,
        )
        return InboundResult(reply=reply, submission=submission)

    def forward(self, submission: Submission) -> None:
        """Hand a stored reply to the workflow; failures stay out of the webhook response."""
        try:
            self.workflow.process_submission(submission)
        except Exception as e:
            log.error("Workflow failed for reply %s: %s", submission.id, e)
