"""
Delivery Layer

RESPONSIBILITY: Render admitted events and hand them to the sink
ALLOWED INPUTS: Admitted NostrEvent, EventContext
OUTPUTS: Discord payloads, DeliveryResult

WHAT THIS LAYER MUST NOT DO:
============================
- Decide admission (validation, window, dedup)
- Touch the ledger or the cursor
- Retry rate-limited deliveries
"""

from .keys import (
    npub_encode, npub_decode, normalize_pubkey, note_encode, note_decode,
    nevent_encode, try_npub, key_report,
)
from .links import viewer_links, ViewerLinks, LINK_STYLES
from .formatter import DiscordFormatter, parse_zap, bolt11_sats, reply_field
from .context import ContextResolver, EventLookup
from .sink import DiscordWebhookSink, DeliveryResult, DeliveryStatus

__all__ = [
    'npub_encode', 'npub_decode', 'normalize_pubkey', 'note_encode', 'note_decode',
    'nevent_encode', 'try_npub', 'key_report',
    'viewer_links', 'ViewerLinks', 'LINK_STYLES',
    'DiscordFormatter', 'parse_zap', 'bolt11_sats', 'reply_field',
    'ContextResolver', 'EventLookup',
    'DiscordWebhookSink', 'DeliveryResult', 'DeliveryStatus',
]
