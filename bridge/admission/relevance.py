"""
Relevance Filter

Keeps only events the bridge is configured to relay: a monitored kind,
authored by the monitored account, or (for zap receipts) addressed to it.
"""

from __future__ import annotations
from typing import Iterable, Optional

from ..contracts.base import RejectReason, Verdict
from ..contracts.events import EventKind, NostrEvent


class RelevanceFilter:

    def __init__(self, monitored_kinds: Iterable[int], pubkey: Optional[str] = None):
        self._kinds = frozenset(monitored_kinds)
        self._pubkey = pubkey or None

    def admit(self, event: NostrEvent) -> Verdict:
        if event.kind not in self._kinds:
            return Verdict.reject(RejectReason.UNMONITORED_KIND, f"kind {event.kind}")

        if self._pubkey is None:
            return Verdict.ok()

        if event.kind == EventKind.ZAP_RECEIPT:
            # Receipts are signed by the lightning service; the recipient is the p tag
            if self._pubkey in event.tag_values('p'):
                return Verdict.ok()
            return Verdict.reject(RejectReason.UNMONITORED_AUTHOR, "zap not addressed to monitored key")

        if event.pubkey != self._pubkey:
            return Verdict.reject(RejectReason.UNMONITORED_AUTHOR, f"author {event.pubkey[:8]}...")
        return Verdict.ok()

    @property
    def monitored_kinds(self) -> frozenset:
        return self._kinds
