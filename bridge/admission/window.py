"""
Admission Window Filter

Stateless time gate evaluated before the ledger.

RULES (first match wins):
=========================
1. created_at older than now - stale_window          -> TOO_OLD
2. cursor is warm and created_at falls behind it by more than the
   grace period but inside the stale window          -> LIKELY_DUPLICATE_PRE_CURSOR
3. otherwise                                         -> admit

Rule 2 protects against re-fetching a window that overlaps a prior poll
after a restart wiped the ledger. The ledger stays the ground truth for
exact-identity dedup; this filter never consults it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from ..contracts.base import RejectReason, Verdict
from ..contracts.events import NostrEvent


@dataclass(frozen=True)
class AdmissionWindow:
    """Window widths in seconds."""
    stale_window_seconds: int = 3600
    recent_grace_seconds: int = 300

    def __post_init__(self):
        if self.stale_window_seconds <= 0:
            raise ValueError("stale_window_seconds must be positive")
        if not 0 <= self.recent_grace_seconds < self.stale_window_seconds:
            raise ValueError("recent_grace_seconds must be within the stale window")


class AdmissionWindowFilter:

    def __init__(self, window: Optional[AdmissionWindow] = None):
        self._window = window or AdmissionWindow()

    @property
    def window(self) -> AdmissionWindow:
        return self._window

    def admit(
        self,
        event: NostrEvent,
        now: int,
        last_seen: int = 0,
        lookback_seconds: Optional[int] = None
    ) -> Verdict:
        """
        Decide whether `event` is fresh enough to forward.

        `lookback_seconds` is the window the cursor was seeded with; it is
        accepted so poll and push callers share one call shape, but the
        rules depend only on the stale and grace widths.
        """
        stale = self._window.stale_window_seconds
        grace = self._window.recent_grace_seconds
        created = event.created_at

        if created < now - stale:
            return Verdict.reject(
                RejectReason.TOO_OLD,
                f"{now - created}s old exceeds {stale}s window"
            )

        if last_seen > 0 and last_seen - stale < created < last_seen - grace:
            return Verdict.reject(
                RejectReason.LIKELY_DUPLICATE_PRE_CURSOR,
                f"{last_seen - created}s behind cursor {last_seen}"
            )

        return Verdict.ok()
