# checkin/jobs.py
"""RQ job functions for queued outbound mail. Run by worker.py."""
from __future__ import annotations

import logging
from typing import Any, Dict

from checkin import config
from checkin.mailer import ResendMailer

log = logging.getLogger("checkin.jobs")


def _mailer() -> ResendMailer:
    return ResendMailer(
        config.RESEND_API_KEY,
        config.SENDER_EMAIL,
        reply_to=config.REPLY_TO_EMAIL or None,
        demo=config.DEMO_SEND,
    )


def send_checkin_email(to_email: str, prompt_text: str, campaign_id: str) -> Dict[str, Any]:
    result = _mailer().send_checkin(to_email, prompt_text, campaign_id)
    log.info("[jobs] check-in sent to=%s campaign=%s", to_email, campaign_id)
    return result


def send_verification_email(to_email: str, url: str) -> Dict[str, Any]:
    result = _mailer().send_verification(to_email, url)
    log.info("[jobs] verification sent to=%s", to_email)
    return result
