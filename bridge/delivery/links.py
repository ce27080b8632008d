"""
Viewer Links

Builds "view this post" links for the configured web client.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple
import logging

from .keys import nevent_encode, note_encode
from ..contracts.base import KeyDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewerClient:
    key: str
    label: str
    template: str
    identifier: str  # 'note', 'nevent' or 'hex'


# Display order for the combined "all" rendering
CLIENTS: Tuple[ViewerClient, ...] = (
    ViewerClient('nostria', 'Nostria', 'https://nostria.app/e/{}', 'nevent'),
    ViewerClient('primal', 'Primal', 'https://primal.net/e/{}', 'note'),
    ViewerClient('yakihonne', 'YakiHonne', 'https://yakihonne.com/article/{}', 'note'),
    ViewerClient('nostr_at', 'nostr.at', 'https://nostr.at/{}', 'note'),
    ViewerClient('notes', 'Blockcore Notes', 'https://notes.blockcore.net/e/{}', 'hex'),
    ViewerClient('njump', 'njump', 'https://njump.me/{}', 'note'),
)

CLIENTS_BY_KEY: Dict[str, ViewerClient] = {c.key: c for c in CLIENTS}

LINK_STYLES = ('all',) + tuple(CLIENTS_BY_KEY)


@dataclass(frozen=True)
class ViewerLinks:
    links_text: str
    preferred_link: str


def _identifier(event_id: str, kind: str, note_id: str) -> str:
    if kind == 'hex':
        return event_id
    if kind == 'nevent':
        try:
            return nevent_encode(event_id)
        except KeyDecodeError as e:
            logger.warning(f"Could not build nevent for {event_id[:8]}...: {e}")
            return note_id
    return note_id


def viewer_links(event_id: str, style: str = 'all') -> ViewerLinks:
    """
    Links for one event.

    A single-client style yields "🔗 View on X: url"; anything else
    (including 'all' and unknown styles) lists every client, Nostria first.
    """
    note_id = note_encode(event_id)

    client = CLIENTS_BY_KEY.get(style)
    if client is not None:
        url = client.template.format(_identifier(event_id, client.identifier, note_id))
        return ViewerLinks(links_text=f"🔗 View on {client.label}: {url}", preferred_link=url)

    urls = [
        (c.label, c.template.format(_identifier(event_id, c.identifier, note_id)))
        for c in CLIENTS
    ]
    joined = " | ".join(f"[{label}]({url})" for label, url in urls)
    return ViewerLinks(links_text=f"🔗 View on: {joined}", preferred_link=urls[0][1])
