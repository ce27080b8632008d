"""
Shared Test Fixtures

Deterministic keys, signed events and fakes for the delivery and relay
boundaries. All fixtures are explicit - no random generation.
"""

from dataclasses import replace
from typing import Iterable, List, Optional, Sequence
import asyncio
import json

from coincurve import PrivateKey, PublicKeyXOnly

from bridge.admission.validator import compute_event_id
from bridge.config import AdmissionConfig, BridgeConfig, IngestionConfig, PipelineConfig
from bridge.contracts.events import NostrEvent
from bridge.delivery.sink import DeliveryResult
from bridge.engine import BridgeEngine
from bridge.temporal import LogicalClock


# =============================================================================
# FIXED TIME AND KEYS
# =============================================================================

NOW = 1_700_000_000  # 2023-11-14T22:13:20Z

SECRET_A = bytes.fromhex("11" * 32)
SECRET_B = bytes.fromhex("22" * 32)
SECRET_ZAPPER = bytes.fromhex("33" * 32)

WEBHOOK_URL = "https://discord.test/api/webhooks/1/token"


def pubkey_of(secret: bytes) -> str:
    return PublicKeyXOnly.from_secret(secret).format().hex()


PUBKEY_A = pubkey_of(SECRET_A)
PUBKEY_B = pubkey_of(SECRET_B)


# =============================================================================
# EVENTS
# =============================================================================

def make_event(
    secret: bytes = SECRET_A,
    created_at: int = NOW - 60,
    kind: int = 1,
    content: str = "gm",
    tags: Iterable[Sequence[str]] = (),
) -> NostrEvent:
    """A correctly hashed and signed event."""
    pubkey = pubkey_of(secret)
    tags = tuple(tuple(t) for t in tags)
    event_id = compute_event_id(pubkey, created_at, kind, tags, content)
    sig = PrivateKey(secret).sign_schnorr(bytes.fromhex(event_id)).hex()
    return NostrEvent(
        id=event_id,
        pubkey=pubkey,
        created_at=created_at,
        kind=kind,
        tags=tags,
        content=content,
        sig=sig,
    )


def forge(event: NostrEvent, **changes) -> NostrEvent:
    """Copy of `event` with fields replaced and id/sig left as they were."""
    return replace(event, **changes)


def resign_with(event: NostrEvent, secret: bytes) -> NostrEvent:
    """Keep the id but sign it with the wrong key."""
    sig = PrivateKey(secret).sign_schnorr(bytes.fromhex(event.id)).hex()
    return replace(event, sig=sig)


def metadata_event(secret: bytes, created_at: int = NOW - 86400, **profile) -> NostrEvent:
    return make_event(secret, created_at=created_at, kind=0, content=json.dumps(profile))


# =============================================================================
# CONFIG AND ENGINE
# =============================================================================

def make_config(
    kinds=(1,),
    relays=("wss://primary-1.test", "wss://primary-2.test"),
    fallback_relays=("wss://fallback.test",),
    ledger_capacity: int = 200,
    link_style: str = 'all',
    reply_context: bool = True,
    timeout: float = 0.2,
) -> BridgeConfig:
    return BridgeConfig(
        pubkey=PUBKEY_A,
        webhook_url=WEBHOOK_URL,
        ingestion=IngestionConfig(
            relays=tuple(relays),
            fallback_relays=tuple(fallback_relays),
            query_timeout_seconds=timeout,
            eose_timeout_seconds=timeout,
        ),
        admission=AdmissionConfig(ledger_capacity=ledger_capacity),
        pipeline=PipelineConfig(
            monitored_kinds=tuple(kinds),
            reply_context=reply_context,
            link_style=link_style,
        ),
    ).validate()


def make_engine(sink=None, config: Optional[BridgeConfig] = None, now: int = NOW, **kwargs) -> BridgeEngine:
    return BridgeEngine(
        config or make_config(),
        sink=sink if sink is not None else RecordingSink(),
        clock=LogicalClock.fixed(now),
        **kwargs,
    )


class RecordingSink:
    """Webhook sink fake: records payloads, answers from a script."""

    def __init__(self, results: Iterable[DeliveryResult] = (), default: Optional[DeliveryResult] = None):
        self.messages: List[dict] = []
        self._results = list(results)
        self._default = default or DeliveryResult.ok()

    async def deliver(self, message: dict) -> DeliveryResult:
        self.messages.append(message)
        if self._results:
            return self._results.pop(0)
        return self._default

    @property
    def calls(self) -> int:
        return len(self.messages)


# =============================================================================
# FAKE RELAYS (websockets.connect stand-in)
# =============================================================================

CLOSE_CONNECTION = object()


def stored(*events: NostrEvent, eose: bool = True, live: Sequence[NostrEvent] = (), close: bool = True):
    """Relay script: stored events, EOSE, optional live events, then close."""
    def script(sub_id: str) -> list:
        frames = [["EVENT", sub_id, e.to_dict()] for e in events]
        if eose:
            frames.append(["EOSE", sub_id])
        frames.extend(["EVENT", sub_id, e.to_dict()] for e in live)
        if close:
            frames.append(CLOSE_CONNECTION)
        return frames
    return script


def refused(reason: str = "blocked: not allowed"):
    def script(sub_id: str) -> list:
        return [["CLOSED", sub_id, reason]]
    return script


def silent():
    """Relay that accepts the REQ and never answers."""
    def script(sub_id: str) -> list:
        return []
    return script


class FakeSocket:
    """Replays a scripted relay conversation after the first REQ."""

    def __init__(self, script):
        self._script = script
        self._inbox: asyncio.Queue = asyncio.Queue()
        self.sent: List[list] = []

    async def send(self, data: str):
        message = json.loads(data)
        self.sent.append(message)
        if message[0] == "REQ":
            for frame in self._script(message[1]):
                self._inbox.put_nowait(frame if frame is CLOSE_CONNECTION else json.dumps(frame))

    async def recv(self):
        frame = await self._inbox.get()
        if frame is CLOSE_CONNECTION:
            raise ConnectionResetError("relay closed the connection")
        return frame

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self._inbox.get()
        if frame is CLOSE_CONNECTION:
            raise StopAsyncIteration
        return frame


class _FakeConnection:

    def __init__(self, relays: 'FakeRelays', url: str):
        self._relays = relays
        self._url = url

    async def __aenter__(self) -> FakeSocket:
        behaviour = self._relays.scripts.get(self._url)
        if behaviour is None:
            raise OSError(f"Connect call failed: {self._url}")
        if isinstance(behaviour, BaseException):
            raise behaviour
        socket = FakeSocket(behaviour)
        self._relays.sockets.setdefault(self._url, []).append(socket)
        return socket

    async def __aexit__(self, *exc_info):
        return False


class FakeRelays:
    """
    Connect factory keyed by relay URL.

    A URL maps to a script (see stored/refused/silent) or an exception
    raised on connect. Unknown URLs refuse the connection.
    """

    def __init__(self):
        self.scripts = {}
        self.calls: List[str] = []
        self.sockets = {}

    def add(self, url: str, behaviour) -> 'FakeRelays':
        self.scripts[url] = behaviour
        return self

    def __call__(self, url: str, **kwargs) -> _FakeConnection:
        self.calls.append(url)
        return _FakeConnection(self, url)

    def sent_to(self, url: str) -> List[list]:
        return [m for s in self.sockets.get(url, []) for m in s.sent]
