import logging

from checkin.audit import AuditSink
from checkin.models import AuditStatus


class BrokenStore:
    def append(self, entry):
        raise RuntimeError("relation \"audit_logs\" does not exist")


def test_entries_reach_the_store(audit, audit_store):
    audit.success("user_verified", 42, {"email": "a@x.com"})
    audit.info("workflow_start", "sub-1")

    first, second = audit_store.entries
    assert first.action == "user_verified"
    assert first.resource_id == "42"
    assert first.status is AuditStatus.SUCCESS
    assert first.details == {"email": "a@x.com"}
    assert first.timestamp is not None
    assert second.status is AuditStatus.INFO


def test_store_failure_is_only_a_warning(caplog):
    sink = AuditSink(BrokenStore())
    with caplog.at_level(logging.WARNING, logger="checkin.audit"):
        entry = sink.failure("checkin_failed", "u-1", {"error": "boom"})
    assert entry.action == "checkin_failed"
    assert "failed to persist checkin_failed" in caplog.text


def test_sink_without_store_still_logs(caplog):
    with caplog.at_level(logging.INFO, logger="checkin.audit"):
        sink = AuditSink()
        sink.info("realtime_event_received", "sub-1", {"table": "form_submissions"})
    assert "[AUDIT] [INFO] realtime_event_received (sub-1)" in caplog.text
