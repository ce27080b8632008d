"""
Audit Trail Contract Tests
"""

import logging

from bridge.contracts.events import AuditEventType
from bridge.observability import AuditTrail, setup_logging


class TestAuditTrail:

    def test_record_builds_entry(self):
        trail = AuditTrail(layer_name="engine")
        entry = trail.record(AuditEventType.EVENT_FORWARDED, "forwarded", "abc", kind=1)
        assert entry.layer == "engine"
        assert entry.entity_id == "abc"
        assert entry.metadata == (("kind", "1"),)
        assert trail.entry_count == 1

    def test_filters(self):
        trail = AuditTrail()
        trail.record(AuditEventType.EVENT_FORWARDED, "forwarded", "a")
        trail.record(AuditEventType.EVENT_REJECTED, "too_old", "b")
        trail.record(AuditEventType.EVENT_DUPLICATE, "already_forwarded", "a")

        assert [e.action for e in trail.get_entries(entity_id="a")] == ["forwarded", "already_forwarded"]
        assert len(trail.get_entries(AuditEventType.EVENT_REJECTED)) == 1
        assert trail.count(AuditEventType.EVENT_FORWARDED) == 1

    def test_retention_is_bounded_but_counts_are_not(self):
        trail = AuditTrail(max_entries=2)
        for i in range(5):
            trail.record(AuditEventType.CURSOR_ADVANCED, "advance", after=i)

        assert len(trail.get_entries()) == 2
        assert trail.count(AuditEventType.CURSOR_ADVANCED) == 5
        assert trail.entry_count == 5

    def test_summary(self):
        trail = AuditTrail()
        trail.record(AuditEventType.RATE_LIMITED, "rate_limited", "x", retry_after=2.0)
        summary = trail.summary(recent=5)

        assert summary['total'] == 1
        assert summary['counts']['rate_limited'] == 1
        assert summary['counts']['event_forwarded'] == 0
        recent = summary['recent'][0]
        assert recent['type'] == "rate_limited"
        assert recent['retry_after'] == "2.0"


class TestLogging:

    def test_setup_logging_levels(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(debug=False)
            assert root.level == logging.INFO
            assert logging.getLogger("websockets").level == logging.WARNING

            setup_logging(debug=True)
            assert root.level == logging.DEBUG
            assert logging.getLogger("httpx").level == logging.INFO
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
            logging.getLogger("websockets").setLevel(logging.NOTSET)
            logging.getLogger("httpx").setLevel(logging.NOTSET)
