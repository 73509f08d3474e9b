# checkin/realtime.py
from __future__ import annotations

import logging
import queue
import threading
from typing import Iterator

import psycopg
from psycopg import sql

from checkin.models import Submission

log = logging.getLogger("checkin.realtime")

_STOP = object()


class PostgresChangeFeed:
    """
    LISTEN-based feed of newly inserted form submissions.

    An insert trigger publishes the new row id on ``channel`` (see schema.sql).
    The subscription only yields ids; rows are loaded on the consumer side.
    """

    def __init__(self, conninfo: str, channel: str):
        self.conninfo = conninfo
        self.channel = channel

    def connect(self) -> "PgSubscription":
        conn = psycopg.connect(self.conninfo, autocommit=True)
        conn.execute(sql.SQL("LISTEN {};").format(sql.Identifier(self.channel)))
        return PgSubscription(conn)


class PgSubscription:
    def __init__(self, conn: psycopg.Connection):
        self.conn = conn

    def __iter__(self) -> Iterator[str]:
        for notify in self.conn.notifies():
            sid = (notify.payload or "").strip()
            if sid:
                yield sid

    def close(self) -> None:
        self.conn.close()


class EventIngestor:
    """
    Feeds change-feed events into the workflow engine.

    A listener thread moves submission ids from the feed into an in-process
    queue and reconnects after a disconnect; a consumer thread drains the
    queue, loads each row through ``submissions`` and runs the workflow. Every
    event is handled inside its own error boundary, so neither a failed lookup
    nor a failed workflow can end the subscription or stop the consumer.
    """

    def __init__(self, feed, submissions, workflow, audit, *, reconnect_seconds: float = 5.0):
        self.feed = feed
        self.submissions = submissions
        self.workflow = workflow
        self.audit = audit
        self.reconnect_seconds = reconnect_seconds
        self.events: queue.Queue = queue.Queue()
        self.connected = False
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    # -----------------------------
    # Lifecycle
    # -----------------------------

    def start(self) -> None:
        log.info("Initializing realtime listener...")
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._listen_forever, name="realtime-listener", daemon=True),
            threading.Thread(target=self._consume_forever, name="realtime-consumer", daemon=True),
        ]
        for t in self._threads:
            t.start()

    def stop(self) -> None:
        self._stop.set()
        self.events.put(_STOP)

    # -----------------------------
    # Listener side
    # -----------------------------

    def listen_once(self) -> None:
        """Hold one subscription open until it ends, queueing every event."""
        try:
            sub = self.feed.connect()
        except Exception as e:
            self._disconnected("connect_failed", e)
            return

        self.connected = True
        self.audit.success("realtime_connected")
        try:
            for event in sub:
                self.events.put(event)
                if self._stop.is_set():
                    break
        except Exception as e:
            self._disconnected("channel_error", e)
            return
        finally:
            try:
                sub.close()
            except Exception as e:
                log.debug("subscription close failed: %s", e)
        self._disconnected("closed", None)

    def _disconnected(self, status: str, error: Exception | None) -> None:
        self.connected = False
        details = {"status": status}
        if error is not None:
            details["error"] = str(error)
        log.warning("Realtime status: %s %s", status, error or "")
        self.audit.failure("realtime_disconnected", None, details)

    def _listen_forever(self) -> None:
        while not self._stop.is_set():
            self.listen_once()
            self._stop.wait(self.reconnect_seconds)

    # -----------------------------
    # Consumer side
    # -----------------------------

    def _resolve(self, event: str | Submission | dict) -> Submission | dict | None:
        if isinstance(event, str):
            return self.submissions.get(event)
        return event

    def handle(self, event: str | Submission | dict) -> None:
        if isinstance(event, str):
            sid = event
        elif isinstance(event, Submission):
            sid = event.id
        else:
            sid = (event or {}).get("id")
        log.info("Received new submission event: %s", sid)
        self.audit.info("realtime_event_received", sid, {"table": "form_submissions"})

        try:
            submission = self._resolve(event)
        except Exception as e:
            log.error("Could not load submission %s: %s", sid, e)
            self.audit.failure("realtime_event_failed", sid, {"error": str(e)})
            return
        if submission is None:
            log.warning("Submission %s no longer exists; skipping", sid)
            self.audit.failure("realtime_submission_missing", sid, {"table": "form_submissions"})
            return

        try:
            self.workflow.process_submission(submission)
        except Exception as e:
            log.error("Error processing realtime event %s: %s", sid, e)

    def drain(self) -> int:
        """Process everything currently queued; returns the number handled."""
        handled = 0
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return handled
            if event is _STOP:
                return handled
            self.handle(event)
            handled += 1

    def _consume_forever(self) -> None:
        while True:
            event = self.events.get()
            if event is _STOP:
                return
            self.handle(event)
