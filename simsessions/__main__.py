"""
Command-line entry point.

    python -m simsessions serve   # HTTP + WebSocket via uvicorn
    python -m simsessions stdio   # line protocol on stdin/stdout
"""

import argparse
import asyncio
import sys
from typing import Optional

from simsessions.config import get_settings
from simsessions.utils.logger import get_logger, setup_logging


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "simsessions.main:app",
        host=args.host or settings.server.server_host,
        port=args.port or settings.server.server_port,
        reload=args.reload,
        log_level=settings.server.log_level.lower(),
    )
    return 0


def _stdio(args: argparse.Namespace) -> int:
    from simsessions.api.stdio import run_stdio
    from simsessions.services import Services

    settings = get_settings()
    # stdout is reserved for protocol lines
    setup_logging(
        level="DEBUG" if args.debug else settings.server.log_level,
        json_logs=not settings.server.debug,
        stream=sys.stderr,
    )
    logger = get_logger(__name__)

    try:
        services = Services.from_settings(settings)
    except ValueError as e:
        logger.error("Configuration error", error=str(e))
        return 1

    try:
        asyncio.run(run_stdio(services))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="simsessions",
        description="Session-scoped iOS simulator control server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m simsessions serve --port 8000
  python -m simsessions stdio

Configuration is read from the environment and .env (see SIMSESSIONS_* variables).
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", help="Bind address (default: SERVER_HOST)")
    serve.add_argument("--port", type=int, help="Bind port (default: SERVER_PORT)")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    serve.set_defaults(func=_serve)

    stdio = subparsers.add_parser("stdio", help="Serve the line protocol on stdin/stdout")
    stdio.add_argument("--debug", action="store_true", help="Enable debug logging")
    stdio.set_defaults(func=_stdio)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
