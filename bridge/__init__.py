"""
Nostr Discord Bridge

Relays signed Nostr events to a Discord webhook, forwarding each
qualifying event exactly once across restarts and redundant relays.

LAYERS:
=======
- contracts:     immutable types shared by every layer
- admission:     validator, relevance filter, admission window, dedup ledger
- temporal:      logical clock and progress cursor
- delivery:      key codec, viewer links, formatter, context, webhook sink
- observability: logging setup and audit trail
- engine:        the sequential pipeline that owns ledger and cursor

Relay I/O lives in the separate `ingestion` package.
"""

from .config import BridgeConfig, IngestionConfig, AdmissionConfig, PipelineConfig
from .engine import BridgeEngine

__version__ = "0.1.0"

__all__ = [
    'BridgeConfig', 'IngestionConfig', 'AdmissionConfig', 'PipelineConfig',
    'BridgeEngine',
]
