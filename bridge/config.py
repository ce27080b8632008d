"""
Bridge Configuration

One configuration object composed of per-layer sub-configs. Sub-configs
are frozen; BridgeConfig fills in defaults for any that are omitted.

Environment variables (a .env file is honoured):
    NOSTR_PUBKEY            hex or npub of the monitored account (required)
    DISCORD_WEBHOOK_URL     webhook to post to (required)
    NOSTR_RELAYS            comma-separated primary relays
    NOSTR_FALLBACK_RELAYS   comma-separated relays queried when primaries are empty
    PREFERRED_CLIENT        link style: all, nostria, primal, yakihonne, nostr_at, notes, njump
    LOOKBACK_SECONDS        cold-start lookback (default 3600)
    MONITORED_EVENT_KINDS   comma-separated kinds (default 1)
    REPLY_CONTEXT           true/false (default true)
    POLL_INTERVAL_SECONDS   pause between polls (default 300)
    LEDGER_CAPACITY         forwarded ids remembered (default 200)
    DEBUG                   true enables debug logging
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple
import os

from dotenv import load_dotenv

from .contracts.base import ConfigError, KeyDecodeError
from .contracts.events import EventKind
from .delivery.keys import normalize_pubkey
from .delivery.links import LINK_STYLES


DEFAULT_RELAYS: Tuple[str, ...] = (
    'wss://relay.damus.io',
    'wss://relay.nostr.band',
)

DEFAULT_FALLBACK_RELAYS: Tuple[str, ...] = (
    'wss://nos.lol',
    'wss://relay.primal.net',
    'wss://relay.snort.social',
)


@dataclass(frozen=True)
class IngestionConfig:
    """Relay sets and query timing."""
    relays: Tuple[str, ...] = DEFAULT_RELAYS
    fallback_relays: Tuple[str, ...] = DEFAULT_FALLBACK_RELAYS
    query_timeout_seconds: float = 5.0
    eose_timeout_seconds: float = 10.0
    lookback_seconds: int = 3600
    poll_interval_seconds: int = 300


@dataclass(frozen=True)
class AdmissionConfig:
    """Window, ledger and backpressure settings."""
    stale_window_seconds: int = 3600
    recent_grace_seconds: int = 300
    ledger_capacity: int = 200
    rate_limit_hold_cycles: int = 3


@dataclass(frozen=True)
class PipelineConfig:
    """What gets forwarded and how it is rendered."""
    monitored_kinds: Tuple[int, ...] = (EventKind.TEXT_NOTE,)
    reply_context: bool = True
    link_style: str = 'all'


@dataclass
class BridgeConfig:
    """Unified configuration for the entire bridge."""
    pubkey: str = ""
    webhook_url: str = ""
    ingestion: IngestionConfig = None
    admission: AdmissionConfig = None
    pipeline: PipelineConfig = None
    debug: bool = False
    sink_timeout_seconds: float = 10.0

    def __post_init__(self):
        self.ingestion = self.ingestion or IngestionConfig()
        self.admission = self.admission or AdmissionConfig()
        self.pipeline = self.pipeline or PipelineConfig()

    # -------------------------------------------------------------------------

    def validate(self) -> 'BridgeConfig':
        """
        Check required settings and normalize the pubkey to hex.

        Raises ConfigError on the first problem found.
        """
        if not self.pubkey:
            raise ConfigError("NOSTR_PUBKEY is not set")
        if not self.webhook_url:
            raise ConfigError("DISCORD_WEBHOOK_URL is not set")
        if not self.webhook_url.startswith(('http://', 'https://')):
            raise ConfigError("DISCORD_WEBHOOK_URL must be an http(s) URL")
        try:
            self.pubkey = normalize_pubkey(self.pubkey)
        except KeyDecodeError as e:
            raise ConfigError(f"NOSTR_PUBKEY is invalid: {e}") from e

        if not self.ingestion.relays and not self.ingestion.fallback_relays:
            raise ConfigError("No relays configured")
        if self.pipeline.link_style not in LINK_STYLES:
            raise ConfigError(
                f"PREFERRED_CLIENT must be one of {', '.join(LINK_STYLES)}"
            )
        if not self.pipeline.monitored_kinds:
            raise ConfigError("MONITORED_EVENT_KINDS is empty")
        if self.admission.ledger_capacity <= 0:
            raise ConfigError("LEDGER_CAPACITY must be positive")
        if self.admission.recent_grace_seconds >= self.admission.stale_window_seconds:
            raise ConfigError("Recent grace must be shorter than the stale window")
        return self

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> 'BridgeConfig':
        """
        Build from environment variables.

        Does not validate; call validate() before running.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        ingestion = IngestionConfig()
        ingestion = replace(
            ingestion,
            relays=_csv(environ.get('NOSTR_RELAYS')) or ingestion.relays,
            fallback_relays=_csv(environ.get('NOSTR_FALLBACK_RELAYS')) or ingestion.fallback_relays,
            lookback_seconds=_int(environ, 'LOOKBACK_SECONDS', ingestion.lookback_seconds),
            poll_interval_seconds=_int(environ, 'POLL_INTERVAL_SECONDS', ingestion.poll_interval_seconds),
        )

        admission = AdmissionConfig()
        admission = replace(
            admission,
            ledger_capacity=_int(environ, 'LEDGER_CAPACITY', admission.ledger_capacity),
        )

        kinds = _csv(environ.get('MONITORED_EVENT_KINDS'))
        pipeline = PipelineConfig(
            monitored_kinds=tuple(_kind(k) for k in kinds) if kinds else PipelineConfig.monitored_kinds,
            reply_context=_bool(environ.get('REPLY_CONTEXT'), True),
            link_style=(environ.get('PREFERRED_CLIENT') or 'all').strip().lower(),
        )

        return cls(
            pubkey=(environ.get('NOSTR_PUBKEY') or '').strip(),
            webhook_url=(environ.get('DISCORD_WEBHOOK_URL') or '').strip(),
            ingestion=ingestion,
            admission=admission,
            pipeline=pipeline,
            debug=_bool(environ.get('DEBUG'), False),
        )

    def summary(self) -> dict:
        """Redacted view for status output and startup logs."""
        return {
            'pubkey': self.pubkey,
            'webhook': 'CONFIGURED' if self.webhook_url else 'NOT SET',
            'relays': list(self.ingestion.relays),
            'fallback_relays': list(self.ingestion.fallback_relays),
            'monitored_kinds': list(self.pipeline.monitored_kinds),
            'link_style': self.pipeline.link_style,
            'reply_context': self.pipeline.reply_context,
            'lookback_seconds': self.ingestion.lookback_seconds,
            'ledger_capacity': self.admission.ledger_capacity,
        }


# =============================================================================
# PARSING HELPERS
# =============================================================================

def _csv(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(',') if part.strip())


def _int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def _kind(value: str) -> int:
    try:
        kind = int(value)
    except ValueError:
        raise ConfigError(f"MONITORED_EVENT_KINDS contains a non-integer: {value!r}")
    if not 0 <= kind <= 65535:
        raise ConfigError(f"Event kind out of range: {kind}")
    return kind


def _bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')
