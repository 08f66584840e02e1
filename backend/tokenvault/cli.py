"""Command-line entry point for tokenvault.

Usage:
    tokenvault generate-key [--secret]
    tokenvault init-db
    tokenvault sweep
    tokenvault run-sweeper
    tokenvault serve [--host 0.0.0.0] [--port 8000]
"""

import argparse
import asyncio
import secrets
import sys

from tokenvault.core import get_session_maker, get_settings, init_db, setup_logging
from tokenvault.core.config import validate_security_settings
from tokenvault.core.database import dispose_engine
from tokenvault.core.lifespan import common_shutdown, common_startup
from tokenvault.core.logging import get_logger
from tokenvault.exceptions import ConfigMissingError, StoreUnavailableError
from tokenvault.services.credential_store import store_errors
from tokenvault.services.crypto import generate_key
from tokenvault.services.token import TokenService

logger = get_logger("cli")


def _generate_key(args: argparse.Namespace) -> int:
    if args.secret:
        print(secrets.token_urlsafe(48))
    else:
        print(generate_key())
    return 0


async def _init_db() -> int:
    try:
        with store_errors():
            await init_db()
    finally:
        await dispose_engine()
    print("Credential record tables created")
    return 0


async def _sweep() -> int:
    settings = get_settings()
    setup_logging(level=settings.log_level, format_type="dev")
    validate_security_settings(settings)

    token_service = TokenService.from_settings(get_session_maker(), settings)
    try:
        deleted = await token_service.sweep()
    finally:
        await dispose_engine()
    print(f"Deleted {deleted} expired credential records")
    return 0


async def _run_sweeper() -> int:
    settings = get_settings()
    await common_startup(logger, settings, start_sweeper=True)
    try:
        # Run until interrupted
        await asyncio.Event().wait()
    finally:
        await common_shutdown(logger)
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("tokenvault.main:app", host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokenvault",
        description="Credential lifecycle and refresh-token rotation",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    keygen = subparsers.add_parser("generate-key", help="Print a new 256-bit cipher key")
    keygen.add_argument(
        "--secret",
        action="store_true",
        help="Print a random JWT signing secret instead of a cipher key",
    )

    subparsers.add_parser("init-db", help="Create credential record tables")
    subparsers.add_parser("sweep", help="Delete expired credential records once")
    subparsers.add_parser("run-sweeper", help="Run the periodic sweep until interrupted")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        if args.command == "generate-key":
            return _generate_key(args)
        if args.command == "init-db":
            return asyncio.run(_init_db())
        if args.command == "sweep":
            return asyncio.run(_sweep())
        if args.command == "run-sweeper":
            return asyncio.run(_run_sweeper())
        if args.command == "serve":
            return _serve(args)
    except ConfigMissingError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except StoreUnavailableError as e:
        print(f"ERROR: {e} (retry later)", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130

    return 1


if __name__ == "__main__":
    sys.exit(main())
