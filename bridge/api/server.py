"""
Nostr Bridge: HTTP API Server
=============================

Trigger and inspect the bridge over HTTP, for schedulers and webhooks.

Endpoints:
- GET  /health  -> Liveness
- GET  /status  -> Cursor, ledger, last cycle and audit counts
- POST /poll    -> Run one poll cycle (200, 429 with Retry-After, 503)
- POST /events  -> Push one signed event through the pipeline
- GET  /diagnostics/relays -> Connectivity check of every configured relay

Usage:
    uvicorn bridge.api.server:app
"""
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Callable, List, Optional
import asyncio
import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import BridgeConfig
from ..contracts.base import RejectReason
from ..contracts.events import CycleReport, CycleStatus, EventDisposition, NostrEvent
from ..observability import setup_logging

logger = logging.getLogger(__name__)


# Rejections that mean the submitted event itself is invalid
_INVALID_EVENT = {RejectReason.MALFORMED, RejectReason.HASH_MISMATCH, RejectReason.BAD_SIGNATURE}


class EventPayload(BaseModel):
    """Signed Nostr event as posted by a webhook caller."""
    id: Optional[str] = None
    pubkey: Optional[str] = None
    created_at: Optional[int] = None
    kind: Optional[int] = None
    tags: Optional[List[List[str]]] = None
    content: Optional[str] = None
    sig: Optional[str] = None


def _runtime_from_env():
    # Imported lazily: the ingestion layer depends on this package
    from ingestion.service import create_runtime

    config = BridgeConfig.from_env().validate()
    setup_logging(config.debug)
    return create_runtime(config)


def create_app(
    runtime_factory: Optional[Callable[[], object]] = None,
    background_poll: bool = False,
) -> FastAPI:
    """
    Build the API app.

    `runtime_factory` returns a BridgeRuntime; by default one is created
    from environment variables at startup.
    """
    factory = runtime_factory or _runtime_from_env

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize the bridge runtime on startup."""
        runtime = factory()
        app.state.runtime = runtime
        logger.info(f"Bridge runtime ready: {runtime.config.summary()}")

        stop = asyncio.Event()
        poller = None
        if background_poll:
            poller = asyncio.create_task(runtime.polling.run_forever(stop))

        yield

        stop.set()
        if poller is not None:
            await poller
        app.state.runtime = None
        logger.info("Bridge runtime shut down")

    app = FastAPI(
        title="Nostr Discord Bridge API",
        version="0.1.0",
        description="Relays signed Nostr events to a Discord webhook",
        lifespan=lifespan,
    )
    app.state.runtime = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    def runtime():
        current = app.state.runtime
        if current is None:
            raise HTTPException(status_code=503, detail="Bridge not initialized")
        return current

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health")
    async def health_check():
        """System status."""
        runtime()
        return {"status": "online"}

    @app.get("/status")
    async def status():
        current = runtime()
        return {
            **current.engine.status(),
            'config': current.config.summary(),
            'relays': current.registry.stats(),
        }

    @app.get("/diagnostics/relays")
    async def check_relays():
        """Query each relay for one event; 503 when none responds."""
        batch = await runtime().check_relays()
        body = {
            'ok': batch.ok_count,
            'failed': batch.failed_count,
            'relays': [
                {
                    'url': r.source.url,
                    'role': r.source.role.value,
                    'status': r.status.value,
                    'events': len(r.events),
                    'duration_ms': r.duration_ms,
                    'error': r.error_message,
                    'notices': list(r.notices),
                }
                for r in batch.results
            ],
        }
        return JSONResponse(status_code=503 if batch.all_failed else 200, content=body)

    @app.post("/poll")
    async def poll():
        """Run one poll cycle now."""
        report = await runtime().polling.poll_once()
        return _cycle_response(report)

    @app.post("/events")
    async def push_event(payload: EventPayload):
        """Process one pushed event."""
        event = NostrEvent.from_dict(payload.model_dump())
        report = await runtime().engine.process_event(event)
        outcome = report.outcomes[0]

        if outcome.disposition == EventDisposition.REJECTED and outcome.reason in _INVALID_EVENT:
            raise HTTPException(status_code=400, detail=outcome.to_dict())
        if outcome.disposition == EventDisposition.DELIVERY_FAILED:
            return JSONResponse(status_code=502, content=report.to_dict())
        return _cycle_response(report)

    return app


def _cycle_response(report: CycleReport) -> JSONResponse:
    body = report.to_dict()
    if report.status == CycleStatus.RATE_LIMITED:
        retry_after = report.retry_after or 0
        return JSONResponse(
            status_code=429,
            content=body,
            headers={'Retry-After': str(int(retry_after + 0.999))},
        )
    if report.status == CycleStatus.FAILED:
        return JSONResponse(status_code=503, content=body)
    return JSONResponse(status_code=200, content=body)


app = create_app()
