# checkin/scheduler.py
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from checkin.models import Campaign, UserRecord
from checkin.verification import calculate_next_checkin

log = logging.getLogger("checkin.scheduler")


@dataclass
class CycleSummary:
    due: int = 0
    sent: int = 0
    failed: list[str] = field(default_factory=list)
    skipped: bool = False
    aborted: bool = False


class CheckInScheduler:
    """
    Hourly check-in dispatch.

    A cycle finds verified users whose ``next_checkin_due`` has passed, sends
    each the current campaign prompt and pushes their due date forward by
    their cadence. Each user is its own error boundary. A cycle that starts
    while another is still running is skipped.
    """

    def __init__(
        self,
        users,
        campaigns,
        mailer,
        audit,
        *,
        max_workers: int = 4,
        cron_minute: str = "0",
        clock: Callable[[], datetime] | None = None,
    ):
        self.users = users
        self.campaigns = campaigns
        self.mailer = mailer
        self.audit = audit
        self.max_workers = max(1, max_workers)
        self.cron_minute = cron_minute
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._running = threading.Lock()
        self._scheduler: BackgroundScheduler | None = None

    # -----------------------------
    # Lifecycle
    # -----------------------------

    def start(self) -> None:
        """Start the hourly job and kick off one run immediately."""
        if self._scheduler is not None:
            return
        sched = BackgroundScheduler(timezone=timezone.utc)
        sched.add_job(
            self.run_cycle,
            CronTrigger(minute=self.cron_minute, timezone=timezone.utc),
            id="checkin_cycle",
            coalesce=True,
            max_instances=2,  # overlap is handled by run_cycle itself
        )
        sched.add_job(self.run_cycle, id="checkin_cycle_startup")  # no trigger -> run now
        sched.start()
        self._scheduler = sched
        log.info("Check-in scheduler started (minute=%s)", self.cron_minute)

    def shutdown(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

    # -----------------------------
    # One cycle
    # -----------------------------

    def run_cycle(self) -> CycleSummary:
        if not self._running.acquire(blocking=False):
            log.warning("Check-in cycle still in flight; skipping this tick")
            self.audit.info("checkin_cycle_skipped", None, {"reason": "previous run in flight"})
            return CycleSummary(skipped=True)
        try:
            return self._process_checkins()
        finally:
            self._running.release()

    def _process_checkins(self) -> CycleSummary:
        now = self.clock()
        summary = CycleSummary()
        log.info("Running check-in scheduler...")

        try:
            users = self.users.due_for_checkin(now)
        except Exception as e:
            log.error("Error fetching due users: %s", e)
            self.audit.failure("checkin_cycle_aborted", None, {"reason": "user query failed", "error": str(e)})
            summary.aborted = True
            return summary

        if not users:
            log.info("No users due for check-in")
            return summary
        summary.due = len(users)
        log.info("Found %d users due for check-in", len(users))

        try:
            campaign = self.campaigns.current()
        except Exception as e:
            campaign = None
            log.error("Error fetching active campaign: %s", e)
        if campaign is None:
            log.error("No active campaign found; aborting cycle")
            self.audit.failure("checkin_cycle_aborted", None, {"reason": "no active campaign", "due": len(users)})
            summary.aborted = True
            return summary

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(users))) as pool:
            outcomes = list(pool.map(lambda u: self._dispatch_one(u, campaign), users))

        for user, ok in zip(users, outcomes):
            if ok:
                summary.sent += 1
            else:
                summary.failed.append(user.id)

        self.audit.info(
            "checkin_cycle_complete",
            campaign.id,
            {"due": summary.due, "sent": summary.sent, "failed": len(summary.failed)},
        )
        return summary

    def _dispatch_one(self, user: UserRecord, campaign: Campaign) -> bool:
        try:
            self.mailer.send_checkin(user.email, campaign.prompt_text, campaign.id)
            next_due = calculate_next_checkin(user.checkin_frequency, self.clock())
            self.users.reschedule(user.id, next_due)
        except Exception as e:
            log.error("Error sending check-in to %s: %s", user.email, e)
            self.audit.failure("checkin_failed", user.id, {"campaign_id": campaign.id, "error": str(e)})
            return False
        self.audit.success(
            "checkin_sent",
            user.id,
            {"campaign_id": campaign.id, "next_checkin_due": next_due.isoformat()},
        )
        return True
