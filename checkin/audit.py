# checkin/audit.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from checkin.models import AuditLogEntry, AuditStatus

log = logging.getLogger("checkin.audit")


class AuditSink:
    """
    Append-only event log.

    Every entry goes to the ``checkin.audit`` logger first, then (when a store
    is configured) to persistent storage. A storage failure is downgraded to a
    warning so that logging can never break the operation being audited.
    """

    def __init__(self, store=None):
        self.store = store
        if store is None:
            log.warning("AuditSink: no audit store configured, persistent logging disabled")

    def log(
        self,
        action: str,
        resource_id: str | None = None,
        status: AuditStatus | str = AuditStatus.INFO,
        details: Any = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            action=action,
            resource_id=None if resource_id is None else str(resource_id),
            status=AuditStatus(status),
            details=details,
            timestamp=datetime.now(timezone.utc),
        )

        level = logging.WARNING if entry.status is AuditStatus.FAILURE else logging.INFO
        log.log(
            level,
            "[AUDIT] [%s] %s%s %s",
            entry.status.value.upper(),
            action,
            f" ({entry.resource_id})" if entry.resource_id else "",
            details if details is not None else "",
        )

        if self.store is not None:
            try:
                self.store.append(entry)
            except Exception as e:
                log.warning("AuditSink: failed to persist %s: %s", action, e)
        return entry

    def success(self, action: str, resource_id: str | None = None, details: Any = None) -> AuditLogEntry:
        return self.log(action, resource_id, AuditStatus.SUCCESS, details)

    def failure(self, action: str, resource_id: str | None = None, details: Any = None) -> AuditLogEntry:
        return self.log(action, resource_id, AuditStatus.FAILURE, details)

    def info(self, action: str, resource_id: str | None = None, details: Any = None) -> AuditLogEntry:
        return self.log(action, resource_id, AuditStatus.INFO, details)
