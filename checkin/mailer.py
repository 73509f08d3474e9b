# checkin/mailer.py
from __future__ import annotations

import html as htmllib
import json
import logging
from typing import Any, Dict, Optional

import requests

from checkin.errors import TransientDependencyError

log = logging.getLogger("checkin.mailer")

RESEND_URL = "https://api.resend.com/emails"


def render_checkin(prompt_text: str) -> tuple[str, str]:
    """Return (text, html) bodies for a check-in prompt."""
    text = f"{prompt_text}\n\nSimply reply to this email to submit your response."
    safe = htmllib.escape(prompt_text).replace("\n", "<br>")
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h2>Your Check-In</h2>"
        '<div style="background-color: #f5f5f5; padding: 20px; border-radius: 5px; margin: 20px 0;">'
        f"{safe}"
        "</div>"
        "<p>Simply reply to this email to submit your response.</p>"
        '<hr style="margin: 30px 0; border: none; border-top: 1px solid #eee;">'
        '<p style="color: #666; font-size: 12px;">'
        "This is an automated check-in email. Reply to this message to submit your response."
        "</p></div>"
    )
    return text, html


def render_verification(url: str) -> tuple[str, str]:
    text = f"Welcome to Check-Ins!\n\nPlease verify your email address by visiting:\n{url}"
    safe = htmllib.escape(url, quote=True)
    html = (
        "<h2>Welcome to Check-Ins!</h2>"
        "<p>Please verify your email address by clicking the link below:</p>"
        f'<p><a href="{safe}">Verify Email</a></p>'
        "<p>Or copy and paste this URL into your browser:</p>"
        f"<p>{safe}</p>"
    )
    return text, html


class ResendMailer:
    """
    Send via the Resend HTTP API. Any transport error or non-2xx answer is a
    TransientDependencyError; callers decide whether that is fatal.
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        *,
        reply_to: Optional[str] = None,
        demo: bool = False,
        timeout: float = 20,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.reply_to = reply_to
        self.demo = demo
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(
        self,
        to_email: str,
        subject: str,
        body_text: str,
        body_html: Optional[str] = None,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        if self.demo:
            log.info("DEMO_SEND: skipped provider send to=%s subject=%r", to_email, subject)
            return {"demo": True}
        if not self.api_key:
            raise TransientDependencyError("mail provider is not configured (RESEND_API_KEY)")

        data: Dict[str, Any] = {
            "from": self.sender,
            "to": [to_email],
            "subject": subject,
            "text": body_text,
        }
        if body_html:
            data["html"] = body_html
        if self.reply_to:
            data["reply_to"] = self.reply_to
        if headers:
            data["headers"] = headers

        try:
            r = self.session.post(
                RESEND_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                data=json.dumps(data),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientDependencyError(f"mail send failed: {type(e).__name__}") from e

        if r.status_code >= 300:
            raise TransientDependencyError(f"mail provider answered {r.status_code}")
        try:
            return r.json()
        except ValueError:
            return {"status": r.status_code}

    def send_checkin(self, to_email: str, prompt_text: str, campaign_id: str) -> Dict[str, Any]:
        text, html = render_checkin(prompt_text)
        return self.send(
            to_email,
            "Your Check-In",
            text,
            html,
            headers={"X-Campaign-ID": str(campaign_id)},
        )

    def send_verification(self, to_email: str, url: str) -> Dict[str, Any]:
        text, html = render_verification(url)
        return self.send(to_email, "Verify Your Email Address", text, html)


class QueuedMailer:
    """Same interface as ResendMailer, but hands each send to an RQ worker."""

    def __init__(self, queue):
        self.queue = queue

    def _enqueue(self, func: str, *args) -> Dict[str, Any]:
        try:
            job = self.queue.enqueue(func, *args)
        except Exception as e:
            raise TransientDependencyError(f"enqueue failed: {type(e).__name__}") from e
        log.info("[queue] enqueued %s job_id=%s", func, job.id)
        return {"queued": True, "job_id": job.id}

    def send_checkin(self, to_email: str, prompt_text: str, campaign_id: str) -> Dict[str, Any]:
        return self._enqueue("checkin.jobs.send_checkin_email", to_email, prompt_text, str(campaign_id))

    def send_verification(self, to_email: str, url: str) -> Dict[str, Any]:
        return self._enqueue("checkin.jobs.send_verification_email", to_email, url)
