"""
Relay Ingestion Layer

RESPONSIBILITY: Read candidate events from Nostr relays
ALLOWED INPUTS: Relay URLs, subscription filters
OUTPUTS: FetchResult / FetchBatch, merged event batches, live event streams

WHAT THIS LAYER MUST NOT DO:
============================
- Validate signatures or decide admission
- Drop events for being old or already forwarded
- Touch the ledger or the cursor directly
"""

from .contracts import (
    RelayRole, RelaySource, FetchStatus, FetchResult, FetchBatch,
    EventFilter, StreamMarker, account_filters,
)
from .registry import RelayRegistry
from .fetcher import RelayFetcher
from .merger import FanInMerger
from .subscription import RelaySubscription

__all__ = [
    'RelayRole', 'RelaySource', 'FetchStatus', 'FetchResult', 'FetchBatch',
    'EventFilter', 'StreamMarker', 'account_filters',
    'RelayRegistry', 'RelayFetcher', 'FanInMerger', 'RelaySubscription',
]
