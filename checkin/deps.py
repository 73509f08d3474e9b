# checkin/deps.py
from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from checkin import config
from checkin.audit import AuditSink
from checkin.errors import AuthenticationError, ServiceUnavailableError
from checkin.inbound import WebhookIngestor
from checkin.realtime import EventIngestor
from checkin.review import ReviewController
from checkin.scheduler import CheckInScheduler
from checkin.verification import VerificationService
from checkin.workflow import WorkflowEngine

log = logging.getLogger("checkin.deps")


@dataclass
class Services:
    """Process-wide components, built once at startup and shared by handlers."""

    audit: AuditSink
    workflow: WorkflowEngine
    review: ReviewController
    webhooks: WebhookIngestor
    scheduler: CheckInScheduler
    verification: VerificationService
    realtime: Optional[EventIngestor] = None
    admin_token: str = ""


def build_services(pool) -> Services:
    """Wire the Postgres/Resend/OpenAI implementations from environment config."""
    from checkin.ai import OpenAIAnalyzer, PlaceholderAnalyzer
    from checkin.db import augment_conninfo
    from checkin.mailer import QueuedMailer, ResendMailer
    from checkin.queue import get_queue, queue_enabled
    from checkin.realtime import PostgresChangeFeed
    from checkin.stores import (
        PgAuditStore,
        PgCampaignStore,
        PgDraftStore,
        PgReplyStore,
        PgSubmissionStore,
        PgUserDirectory,
    )

    audit = AuditSink(PgAuditStore(pool))
    users = PgUserDirectory(pool)
    campaigns = PgCampaignStore(pool)
    drafts = PgDraftStore(pool)

    if queue_enabled():
        mailer = QueuedMailer(get_queue())
        log.info("Outbound mail goes through queue %r", config.QUEUE_NAME)
    else:
        mailer = ResendMailer(
            config.RESEND_API_KEY,
            config.SENDER_EMAIL,
            reply_to=config.REPLY_TO_EMAIL or None,
            demo=config.DEMO_SEND,
        )

    if config.OPENAI_API_KEY:
        analyzer = OpenAIAnalyzer(config.OPENAI_API_KEY, model=config.OPENAI_MODEL, timeout=config.OPENAI_TIMEOUT)
    else:
        log.warning("OPENAI_API_KEY not set - drafts use the placeholder analysis")
        analyzer = PlaceholderAnalyzer()

    workflow = WorkflowEngine(drafts, analyzer, audit)
    realtime = None
    if config.ENABLE_REALTIME:
        feed = PostgresChangeFeed(augment_conninfo(config.DATABASE_URL), config.SUBMISSIONS_CHANNEL)
        realtime = EventIngestor(
            feed,
            PgSubmissionStore(pool),
            workflow,
            audit,
            reconnect_seconds=config.REALTIME_RECONNECT_SECONDS,
        )

    return Services(
        audit=audit,
        workflow=workflow,
        review=ReviewController(drafts, audit),
        webhooks=WebhookIngestor(users, campaigns, PgReplyStore(pool), workflow, audit, secret=config.WEBHOOK_SECRET),
        scheduler=CheckInScheduler(
            users,
            campaigns,
            mailer,
            audit,
            max_workers=config.CHECKIN_MAX_WORKERS,
            cron_minute=config.CHECKIN_CRON_MINUTE,
        ),
        verification=VerificationService(users, mailer, audit, base_url=config.VERIFICATION_BASE_URL),
        realtime=realtime,
        admin_token=config.ADMIN_API_TOKEN,
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise ServiceUnavailableError("Service is starting up")
    return services


def require_operator(request: Request, authorization: str | None = Header(default=None)) -> None:
    """Operator endpoints need ``Authorization: Bearer <ADMIN_API_TOKEN>``."""
    token = get_services(request).admin_token
    if not token:
        raise ServiceUnavailableError("Admin service unavailable (missing configuration)")
    scheme, _, supplied = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(supplied.strip().encode(), token.encode()):
        raise AuthenticationError("Operator credentials required")
