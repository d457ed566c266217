"""Command line entry-point: run one sync or serve the Flask API."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from dotenv import load_dotenv

from . import create_app
from .config import SyncConfig
from .errors import ConfigError, LiveSyncError
from .jobs.sync_run import build_orchestrator
from .logging_setup import setup_logging

LOGGER = logging.getLogger(__name__)


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _cmd_sync(args: argparse.Namespace) -> int:
    config = SyncConfig.from_env()
    orchestrator = build_orchestrator(config)
    try:
        summary = orchestrator.run(force=args.force)
    finally:
        orchestrator.store.close()
    print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    return 0 if summary.ok else 1


def _cmd_serve(args: argparse.Namespace) -> int:
    app = create_app()
    host = args.host or os.getenv("BACKEND_HOST", "0.0.0.0")
    port = args.port or int(os.getenv("BACKEND_PORT", "5050"))
    reload_enabled = _env_flag("BACKEND_RELOAD")
    LOGGER.info("Starting Flask server on %s:%s (reload=%s)", host, port, reload_enabled)
    app.run(host=host, port=port, debug=reload_enabled, use_reloader=reload_enabled)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livesync", description="Keep live channel links fresh.")
    sub = parser.add_subparsers(dest="command", required=True)

    sync_parser = sub.add_parser("sync", help="Run one sync and print the summary as JSON")
    sync_parser.add_argument("--force", action="store_true", help="Ignore the minimum re-sync interval")
    sync_parser.set_defaults(func=_cmd_sync)

    serve_parser = sub.add_parser("serve", help="Serve the HTTP API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.set_defaults(func=_cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(console=True)
    try:
        return args.func(args)
    except ConfigError as exc:
        LOGGER.error("Configuration error: %s", exc)
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2
    except LiveSyncError as exc:
        LOGGER.error("Sync could not start: %s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
