"""
Nostr Bridge CLI

Commands:
    poll [--once]     Poll relays on the configured interval (or once)
    listen            Hold a live relay subscription
    serve             Run the HTTP API (optionally polling in the background)
    key [KEY]         Convert a public key between npub and hex

Configuration comes from environment variables or a .env file.
"""

from __future__ import annotations
from typing import List, Optional
import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

from .config import BridgeConfig
from .contracts.base import ConfigError, KeyDecodeError
from .contracts.events import CycleStatus
from .delivery.keys import key_report
from .observability import setup_logging


def _load_config() -> BridgeConfig:
    config = BridgeConfig.from_env().validate()
    setup_logging(config.debug)
    return config


def cmd_poll(args) -> int:
    from ingestion.service import create_runtime

    runtime = create_runtime(_load_config())
    print("=== NOSTR BRIDGE POLLER ===")
    print(f"[*] Pubkey: {runtime.config.pubkey}")
    print(f"[*] Relays: {', '.join(s.url for s in runtime.registry.all_sources())}")

    if args.once:
        report = asyncio.run(runtime.polling.poll_once())
        print(json.dumps(report.to_dict(), indent=2))
        return 0 if report.status != CycleStatus.FAILED else 1

    try:
        asyncio.run(runtime.polling.run_forever())
    except KeyboardInterrupt:
        print("[*] Stopped.")
    return 0


def cmd_listen(args) -> int:
    from ingestion.service import create_runtime

    runtime = create_runtime(_load_config())
    print("=== NOSTR BRIDGE LISTENER ===")
    print(f"[*] Monitoring event kinds: {', '.join(map(str, runtime.config.pipeline.monitored_kinds))}")
    try:
        asyncio.run(runtime.live.run_forever())
    except KeyboardInterrupt:
        print("[*] Stopped.")
    return 0


def cmd_serve(args) -> int:
    import uvicorn
    from .api.server import create_app

    _load_config()
    print("Starting Nostr Bridge API Server...")
    print(f"Docs available at: http://{args.host}:{args.port}/docs")
    uvicorn.run(create_app(background_poll=args.poll), host=args.host, port=args.port)
    return 0


def cmd_key(args) -> int:
    """Convert between npub and hex, the way NOSTR_PUBKEY accepts either."""
    load_dotenv()
    key = args.key or os.environ.get('NOSTR_PUBKEY')
    if not key:
        print("[FAIL] No key given and NOSTR_PUBKEY is not set")
        return 1
    try:
        hex_key, npub = key_report(key)
    except KeyDecodeError as e:
        print(f"[FAIL] Error processing key: {e}")
        print("Make sure the key is in valid hex or npub format")
        return 1

    print(f"Hex format:  {hex_key}")
    print(f"npub format: {npub}")
    print("\nUpdate your .env file with:")
    print(f"NOSTR_PUBKEY={hex_key}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nostr-bridge", description="Nostr to Discord bridge")
    subparsers = parser.add_subparsers(dest="command")

    poll_parser = subparsers.add_parser("poll", help="Poll relays for new events")
    poll_parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")

    subparsers.add_parser("listen", help="Hold a live relay subscription")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--poll", action="store_true", help="Also poll in the background")

    key_parser = subparsers.add_parser("key", help="Convert a public key between npub and hex")
    key_parser.add_argument("key", nargs="?", help="npub or hex key (defaults to NOSTR_PUBKEY)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "poll": cmd_poll,
        "listen": cmd_listen,
        "serve": cmd_serve,
        "key": cmd_key,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return handler(args)
    except ConfigError as e:
        print(f"[FAIL] Configuration error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
