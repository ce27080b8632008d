"""
Live Relay Subscription

Keeps a REQ open on every relay and exposes the combined stream as an
async iterator:

    stored events ... BACKLOG_EXHAUSTED, live event, live event, ...

The marker is yielded exactly once, when every relay has sent EOSE, has
failed, or the EOSE wait has run out.
"""

from __future__ import annotations
from typing import AsyncIterator, Optional, Sequence, Union
import asyncio
import json
import logging

import websockets
from websockets.exceptions import WebSocketException

from bridge.contracts.events import NostrEvent
from .contracts import EventFilter, RelaySource, StreamMarker
from .fetcher import ConnectFactory, parse_relay_message, subscription_id

logger = logging.getLogger(__name__)


StreamItem = Union[NostrEvent, StreamMarker]

# Control signals put on the internal queue as (signal, source)
_EOSE = "eose"
_DONE = "done"


class RelaySubscription:
    """
    Multi-relay live subscription.

    The stream ends when every relay connection has closed; callers
    reconnect by iterating a fresh stream.
    """

    def __init__(
        self,
        sources: Sequence[RelaySource],
        filters: Sequence[EventFilter],
        eose_timeout: float = 10.0,
        connect_timeout: float = 5.0,
        connect: Optional[ConnectFactory] = None,
    ):
        self._sources = tuple(sources)
        self._filters = tuple(filters)
        self._eose_timeout = eose_timeout
        self._connect_timeout = connect_timeout
        self._connect = connect or websockets.connect

    async def stream(self) -> AsyncIterator[StreamItem]:
        queue: asyncio.Queue = asyncio.Queue()
        tasks = [asyncio.create_task(self._pump(s, queue)) for s in self._sources]

        awaiting_eose = set(self._sources)
        running = set(self._sources)
        backlog_open = True
        loop = asyncio.get_running_loop()
        eose_deadline = loop.time() + self._eose_timeout

        try:
            while running:
                timeout = max(0.0, eose_deadline - loop.time()) if backlog_open else None
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=timeout)
                except asyncio.TimeoutError:
                    logger.info("EOSE wait elapsed, treating backlog as exhausted")
                    backlog_open = False
                    yield StreamMarker.BACKLOG_EXHAUSTED
                    continue

                if isinstance(item, NostrEvent):
                    yield item
                    continue

                signal, source = item
                awaiting_eose.discard(source)
                if signal == _DONE:
                    running.discard(source)
                if backlog_open and not awaiting_eose:
                    backlog_open = False
                    yield StreamMarker.BACKLOG_EXHAUSTED

            if backlog_open:
                yield StreamMarker.BACKLOG_EXHAUSTED
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _pump(self, source: RelaySource, queue: asyncio.Queue):
        """Forward one relay's frames to the queue, always ending with _DONE."""
        sub_id = subscription_id("live")
        try:
            async with self._connect(source.url, open_timeout=self._connect_timeout) as ws:
                await ws.send(json.dumps(["REQ", sub_id] + [f.to_dict() for f in self._filters]))
                logger.info(f"Subscribed on {source.url}")

                async for raw in ws:
                    message = parse_relay_message(raw)
                    if message is None:
                        continue
                    verb = message[0]
                    if verb == "EVENT" and len(message) >= 3 and message[1] == sub_id:
                        if isinstance(message[2], dict):
                            queue.put_nowait(NostrEvent.from_dict(message[2]))
                    elif verb == "EOSE" and message[1:2] == [sub_id]:
                        queue.put_nowait((_EOSE, source))
                    elif verb == "CLOSED" and message[1:2] == [sub_id]:
                        logger.warning(f"Relay {source.url} closed subscription: {message[2:]}")
                        break
                    elif verb == "NOTICE" and len(message) > 1:
                        logger.info(f"Relay notice from {source.url}: {message[1]}")

        except asyncio.TimeoutError:
            logger.warning(f"Connection to {source.url} timed out")
        except (OSError, WebSocketException) as e:
            logger.warning(f"Relay {source.url} disconnected: {e}")
        finally:
            queue.put_nowait((_DONE, source))

    @property
    def sources(self) -> tuple:
        return self._sources
