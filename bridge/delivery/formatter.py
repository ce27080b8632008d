"""
Discord Message Formatter

Turns an admitted event plus its display context into a Discord webhook
payload (username, avatar and one embed).

GUARANTEES:
- Pure function of (event, context, settings): no I/O
- Never raises for missing context; falls back to defaults
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import json
import logging
import re

from ..contracts.events import EventContext, EventKind, NostrEvent, Profile
from .keys import note_encode, try_npub
from .links import viewer_links

logger = logging.getLogger(__name__)


DEFAULT_USERNAME = "Nostr User"
DEFAULT_AVATAR = "https://nostr.com/img/nostr-logo.png"

# Embed colours
COLOR_NOTE = 3447003        # blue
COLOR_REPLY = 15105570      # orange
COLOR_REACTION = 16776960   # yellow
COLOR_ZAP = 16753920        # orange
COLOR_REPOST = 3066993      # green
COLOR_GENERIC = 9936031     # purple

REPLY_PREVIEW_LIMIT = 100
GENERIC_PREVIEW_LIMIT = 200

_BOLT11_AMOUNT = re.compile(r'lnbc(\d+)([munp]?)')

# Millisatoshi per unit of the bolt11 human-readable amount
_BOLT11_MSAT = {
    'm': 100_000_000,
    'u': 100_000,
    'n': 100,
    '': 100_000_000_000,
}


class DiscordFormatter:
    """
    Per-kind embed rendering.

    Settings:
    - link_style: which viewer client(s) to link
    - reply_context: whether to render the "Reply to" field
    """

    def __init__(self, link_style: str = 'all', reply_context: bool = True):
        self.link_style = link_style
        self.reply_context = reply_context

    def format(self, event: NostrEvent, context: Optional[EventContext] = None) -> Dict[str, Any]:
        context = context or EventContext()

        if event.kind == EventKind.TEXT_NOTE:
            embed = self._text_note(event, context)
        elif event.kind == EventKind.REACTION:
            embed = self._reaction(event)
        elif event.kind == EventKind.ZAP_RECEIPT:
            embed = self._zap(event)
        elif event.kind == EventKind.REPOST:
            embed = self._repost(event)
        else:
            embed = self._generic(event)

        timestamp = _iso(event.created_at)
        if timestamp:
            embed['timestamp'] = timestamp
        return {
            'username': _username(context.author),
            'avatar_url': _avatar(context.author),
            'embeds': [embed],
        }

    # -------------------------------------------------------------------------
    # Per-kind embeds
    # -------------------------------------------------------------------------

    def _text_note(self, event: NostrEvent, context: EventContext) -> Dict[str, Any]:
        links = viewer_links(event.id, self.link_style)
        fields: List[Dict[str, str]] = [{'name': "Links", 'value': links.links_text}]
        embed: Dict[str, Any] = {
            'description': event.content or "",
            'color': COLOR_NOTE,
            'footer': {'text': "📝 New Post"},
            'fields': fields,
        }

        if self.reply_context and event.is_reply and context.parent is not None:
            fields.insert(0, reply_field(context.parent, context.parent_author))
            embed['color'] = COLOR_REPLY
        return embed

    def _reaction(self, event: NostrEvent) -> Dict[str, Any]:
        content = event.content or "👍"
        return {
            'description': f"Reacted with **{content}** to: {_referenced(event)}",
            'color': COLOR_REACTION,
            'footer': {'text': "⚡ Reaction"},
        }

    def _repost(self, event: NostrEvent) -> Dict[str, Any]:
        return {
            'description': f"🔄 Reposted: {_referenced(event)}",
            'color': COLOR_REPOST,
            'footer': {'text': "🔄 Repost"},
        }

    def _zap(self, event: NostrEvent) -> Dict[str, Any]:
        zap = parse_zap(event)
        description = f"⚡ **{zap['amount']}** received from {zap['sender']}"
        if zap['note']:
            description += f"\n\n💬 \"{zap['note']}\""
        return {
            'description': description,
            'color': COLOR_ZAP,
            'footer': {'text': "⚡ Zap Sent"},
        }

    def _generic(self, event: NostrEvent) -> Dict[str, Any]:
        preview = (event.content or "")[:GENERIC_PREVIEW_LIMIT] or "No content"
        return {
            'description': f"Event kind {event.kind}: {preview}",
            'color': COLOR_GENERIC,
            'footer': {'text': f"📊 Event Kind {event.kind}"},
        }


# =============================================================================
# HELPERS
# =============================================================================

def reply_field(parent: NostrEvent, parent_author: Optional[Profile]) -> Dict[str, str]:
    """Embed field quoting the post being replied to."""
    if parent_author is not None and parent_author.label:
        name = parent_author.label
    elif parent.pubkey:
        name = f"{parent.pubkey[:8]}..."
    else:
        name = "Unknown User"

    content = parent.content or ""
    if len(content) > REPLY_PREVIEW_LIMIT:
        content = content[:REPLY_PREVIEW_LIMIT - 3] + "..."

    return {'name': f"💬 Reply to post by {name}", 'value': content or "(empty post)"}


def parse_zap(event: NostrEvent) -> Dict[str, str]:
    """
    Amount, sender and note of a zap receipt.

    Amount comes from the embedded zap request's `amount` tag, falling back
    to the bolt11 invoice prefix.
    """
    amount = "Unknown amount"
    sender = "Anonymous"
    note = ""

    request = _zap_request(event)
    if request is not None:
        for tag in request.get('tags') or ():
            if isinstance(tag, list) and len(tag) > 1 and tag[0] == 'amount':
                try:
                    amount = f"{int(tag[1]) // 1000} sats"
                except (TypeError, ValueError):
                    pass
                break
        content = request.get('content')
        note = content if isinstance(content, str) else ""
        sender = try_npub(request.get('pubkey')) or sender

    if amount == "Unknown amount":
        sats = bolt11_sats(event.first_tag_value('bolt11'))
        if sats:
            amount = f"{sats} sats"

    return {'amount': amount, 'sender': sender, 'note': note}


def bolt11_sats(invoice: Optional[str]) -> Optional[int]:
    """Satoshi amount from a bolt11 invoice prefix, None when absent."""
    if not invoice:
        return None
    match = _BOLT11_AMOUNT.search(invoice.lower())
    if not match:
        return None
    digits, unit = match.groups()
    if unit == 'p':
        msat = int(digits) // 10
    else:
        msat = int(digits) * _BOLT11_MSAT[unit]
    sats = msat // 1000
    return sats if sats > 0 else None


def _zap_request(event: NostrEvent) -> Optional[Dict[str, Any]]:
    raw = event.first_tag_value('description')
    if not raw:
        return None
    try:
        request = json.loads(raw)
    except ValueError:
        logger.debug(f"Could not parse zap request on {event.short_id}")
        return None
    return request if isinstance(request, dict) else None


def _referenced(event: NostrEvent) -> str:
    target = event.first_tag_value('e')
    if not target:
        return "Unknown post"
    try:
        return f"nostr:{note_encode(target)}"
    except ValueError:
        return "Unknown post"


def _username(profile: Optional[Profile]) -> str:
    return (profile.label if profile else None) or DEFAULT_USERNAME


def _avatar(profile: Optional[Profile]) -> str:
    return (profile.picture if profile else None) or DEFAULT_AVATAR


def _iso(created_at: Optional[int]) -> Optional[str]:
    if not isinstance(created_at, int):
        return None
    try:
        return datetime.fromtimestamp(created_at, tz=timezone.utc).isoformat()
    except (ValueError, OverflowError, OSError):
        # Outside the range datetime can represent
        return None
