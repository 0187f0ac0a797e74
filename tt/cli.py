"""
Command line entry point.

    tt server [--url host:port] [--cert path] [--key path] [--logfile path] [--syslog]
    tt initdb [--drop]

Options override the matching TT_* environment settings.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional, Sequence

import pydantic
import structlog
import uvicorn

from tt.core.config import Settings, load_settings
from tt.core.exceptions import TTError
from tt.core.logging import configure_logging
from tt.main import create_app
from tt.services.store import SQLThingStore

log = structlog.get_logger("tt.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tt", description="Temporary things tracker.")
    sub = parser.add_subparsers(dest="command", required=True)

    server = sub.add_parser("server", help="Run the HTTP server.")
    server.add_argument("--url", help="host:port to listen on (TT_SERVER_URL)")
    server.add_argument("--cert", help="TLS certificate file (TT_SERVER_CERT)")
    server.add_argument("--key", help="TLS private key file (TT_SERVER_KEY)")
    server.add_argument("--logfile", help="write logs to this file (TT_LOG_FILE)")
    server.add_argument("--syslog", action="store_true", default=None, help="log to syslog (TT_LOG_SYSLOG)")

    initdb = sub.add_parser("initdb", help="Create the database tables.")
    initdb.add_argument("--drop", action="store_true", help="drop existing tables first (destroys all data)")

    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "server_url": getattr(args, "url", None),
        "server_cert": getattr(args, "cert", None),
        "server_key": getattr(args, "key", None),
        "log_file": getattr(args, "logfile", None),
        "log_syslog": getattr(args, "syslog", None),
    }
    return load_settings(**{k: v for k, v in overrides.items() if v is not None})


def serve(settings: Settings) -> None:
    """Run uvicorn until SIGINT or SIGTERM, then shut down gracefully."""
    host, port = settings.bind
    app = create_app(settings)

    ssl = {}
    if settings.server_cert and settings.server_key:
        ssl = {"ssl_certfile": settings.server_cert, "ssl_keyfile": settings.server_key}

    log.info("server.starting", host=host, port=port, tls=bool(ssl))
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_config=None,
        access_log=False,
        timeout_graceful_shutdown=settings.stop_timeout,
        **ssl,
    )
    log.info("server.stopped")


async def initdb(settings: Settings, drop: bool = False) -> None:
    store = SQLThingStore.from_settings(settings)
    try:
        await store.init_schema(drop=drop)
    finally:
        await store.close()
    log.info("db.initialised", dropped=drop)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = settings_from_args(args)
        configure_logging(
            level=settings.log_level,
            fmt=settings.log_format,
            log_file=settings.log_file or None,
            syslog=settings.log_syslog,
        )

        if args.command == "server":
            serve(settings)
        elif args.command == "initdb":
            asyncio.run(initdb(settings, drop=args.drop))
    except TTError as exc:
        log.error("command.failed", command=args.command, code=exc.code, error=exc.message, **exc.details)
        return 1
    except pydantic.ValidationError as exc:
        log.error("config.invalid", command=args.command, errors=exc.errors(include_url=False))
        return 1

    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
