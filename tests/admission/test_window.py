"""
Admission Window Tests

Rule order: TOO_OLD, then LIKELY_DUPLICATE_PRE_CURSOR, then admit.
"""

import pytest

from bridge.admission.window import AdmissionWindow, AdmissionWindowFilter
from bridge.contracts.base import RejectReason

from ..fixtures import NOW, make_event


@pytest.fixture
def window():
    return AdmissionWindowFilter(AdmissionWindow(stale_window_seconds=3600, recent_grace_seconds=300))


class TestStaleRule:

    def test_two_hour_old_event_is_too_old(self, window):
        verdict = window.admit(make_event(created_at=NOW - 7200), NOW)
        assert verdict.reason == RejectReason.TOO_OLD

    def test_edge_of_window_is_admitted(self, window):
        assert window.admit(make_event(created_at=NOW - 3600), NOW)

    def test_one_second_past_window_is_too_old(self, window):
        verdict = window.admit(make_event(created_at=NOW - 3601), NOW)
        assert verdict.reason == RejectReason.TOO_OLD

    def test_stale_rule_wins_over_cursor_rule(self, window):
        verdict = window.admit(make_event(created_at=NOW - 4000), NOW, last_seen=NOW - 100)
        assert verdict.reason == RejectReason.TOO_OLD


class TestCursorRule:

    def test_cold_cursor_never_applies(self, window):
        assert window.admit(make_event(created_at=NOW - 3000), NOW, last_seen=0)

    def test_far_behind_warm_cursor_is_likely_duplicate(self, window):
        verdict = window.admit(make_event(created_at=NOW - 1000), NOW, last_seen=NOW - 100)
        assert verdict.reason == RejectReason.LIKELY_DUPLICATE_PRE_CURSOR

    def test_within_grace_of_cursor_is_admitted(self, window):
        assert window.admit(make_event(created_at=NOW - 350), NOW, last_seen=NOW - 100)

    def test_at_cursor_is_admitted(self, window):
        assert window.admit(make_event(created_at=NOW - 100), NOW, last_seen=NOW - 100)

    def test_after_cursor_is_admitted(self, window):
        assert window.admit(make_event(created_at=NOW - 10), NOW, last_seen=NOW - 100)

    def test_lookback_does_not_change_decision(self, window):
        event = make_event(created_at=NOW - 1000)
        a = window.admit(event, NOW, NOW - 100, lookback_seconds=60)
        b = window.admit(event, NOW, NOW - 100, lookback_seconds=86400)
        assert a.reason == b.reason == RejectReason.LIKELY_DUPLICATE_PRE_CURSOR


class TestWindowConfiguration:

    def test_grace_must_be_shorter_than_stale(self):
        with pytest.raises(ValueError):
            AdmissionWindow(stale_window_seconds=300, recent_grace_seconds=300)

    def test_stale_must_be_positive(self):
        with pytest.raises(ValueError):
            AdmissionWindow(stale_window_seconds=0, recent_grace_seconds=0)

    def test_defaults(self):
        window = AdmissionWindowFilter().window
        assert window.stale_window_seconds == 3600
        assert window.recent_grace_seconds == 300
