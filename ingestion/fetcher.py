"""
Relay Fetcher

One-shot queries against Nostr relays: send REQ, collect EVENTs until EOSE
or the deadline, send CLOSE.

PRINCIPLES:
===========
1. Failed queries are first-class results
2. A relay that stays silent past the deadline is "no data", not an error
3. Events are parsed with maximum tolerance; the validator judges them
4. Relay queries run concurrently, never the pipeline behind them
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence, Tuple
import asyncio
import json
import logging
import uuid

import websockets
from websockets.exceptions import WebSocketException

from bridge.contracts.events import NostrEvent
from .contracts import EventFilter, FetchBatch, FetchResult, FetchStatus, RelaySource

logger = logging.getLogger(__name__)


# websockets.connect-compatible factory: connect(url, **kwargs) -> async context manager
ConnectFactory = Callable[..., Any]


def subscription_id(prefix: str = "bridge") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def parse_relay_message(raw: Any) -> Optional[list]:
    """Decode one relay frame. None for anything that is not a JSON array."""
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8', errors='replace')
    try:
        message = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, list) or not message or not isinstance(message[0], str):
        return None
    return message


class RelayFetcher:
    """
    Queries relays over websockets.

    GUARANTEES:
    ===========
    1. query() always returns a FetchResult, never raises for relay failures
    2. Events received before a timeout or disconnect are kept
    3. Connection and response waits are bounded
    """

    def __init__(
        self,
        query_timeout: float = 5.0,
        connect_timeout: float = 5.0,
        connect: Optional[ConnectFactory] = None,
    ):
        self._query_timeout = query_timeout
        self._connect_timeout = connect_timeout
        self._connect = connect or websockets.connect

    async def query(self, source: RelaySource, filters: Sequence[EventFilter]) -> FetchResult:
        """Fetch stored events matching `filters` from one relay."""
        attempted_at = datetime.now(timezone.utc)
        sub_id = subscription_id()
        events: List[NostrEvent] = []
        notices: List[str] = []

        try:
            async with self._connect(source.url, open_timeout=self._connect_timeout) as ws:
                await ws.send(json.dumps(["REQ", sub_id] + [f.to_dict() for f in filters]))
                status, message = await self._collect(ws, sub_id, events, notices)
                if status != FetchStatus.CLOSED:
                    await ws.send(json.dumps(["CLOSE", sub_id]))

        except asyncio.TimeoutError:
            status, message = FetchStatus.NETWORK_ERROR, "Connection timed out"

        except (OSError, WebSocketException) as e:
            status, message = FetchStatus.NETWORK_ERROR, str(e) or type(e).__name__

        if status.responded:
            logger.debug(f"{source.source_id}: {len(events)} events ({status.value})")
        else:
            logger.warning(f"Relay {source.url} failed: {status.value} {message or ''}".rstrip())

        return FetchResult(
            source=source,
            status=status,
            attempted_at=attempted_at,
            completed_at=datetime.now(timezone.utc),
            events=tuple(events),
            error_message=message,
            notices=tuple(notices),
        )

    async def query_many(
        self,
        sources: Sequence[RelaySource],
        filters: Sequence[EventFilter],
    ) -> FetchBatch:
        """Query every source concurrently."""
        started_at = datetime.now(timezone.utc)
        results = await asyncio.gather(*(self.query(s, filters) for s in sources))
        return FetchBatch(
            batch_id=f"batch_{started_at.strftime('%Y%m%d%H%M%S')}",
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            results=tuple(results),
        )

    async def _collect(
        self,
        ws,
        sub_id: str,
        events: List[NostrEvent],
        notices: List[str],
    ) -> Tuple[FetchStatus, Optional[str]]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._query_timeout

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return FetchStatus.TIMEOUT, "No EOSE before deadline"
            try:
                raw = await asyncio.wait_for(ws.recv(), timeout=remaining)
            except asyncio.TimeoutError:
                return FetchStatus.TIMEOUT, "No EOSE before deadline"

            message = parse_relay_message(raw)
            if message is None:
                continue

            verb = message[0]
            if verb == "EVENT" and len(message) >= 3 and message[1] == sub_id:
                if isinstance(message[2], dict):
                    events.append(NostrEvent.from_dict(message[2]))
            elif verb == "EOSE" and message[1:2] == [sub_id]:
                return FetchStatus.SUCCESS, None
            elif verb == "CLOSED" and message[1:2] == [sub_id]:
                reason = str(message[2]) if len(message) > 2 else "closed by relay"
                return FetchStatus.CLOSED, reason
            elif verb == "NOTICE" and len(message) > 1:
                notices.append(str(message[1]))
                logger.info(f"Relay notice: {message[1]}")

    @property
    def query_timeout(self) -> float:
        return self._query_timeout
