"""
Admission Layer

RESPONSIBILITY: Decide which candidate events are authentic, fresh and new
ALLOWED INPUTS: NostrEvent, current time, cursor position
OUTPUTS: Verdict

WHAT THIS LAYER MUST NOT DO:
============================
- Perform I/O of any kind
- Deliver or format messages
- Advance the progress cursor
"""

from .validator import EventValidator, compute_event_id, serialize_event, schnorr_verify
from .window import AdmissionWindow, AdmissionWindowFilter
from .ledger import DedupLedger, DEFAULT_CAPACITY
from .relevance import RelevanceFilter

__all__ = [
    'EventValidator', 'compute_event_id', 'serialize_event', 'schnorr_verify',
    'AdmissionWindow', 'AdmissionWindowFilter',
    'DedupLedger', 'DEFAULT_CAPACITY',
    'RelevanceFilter',
]
