"""
=============================================================================
PRESSFRAME CLI ENTRY POINT
=============================================================================

Runs the CMS on the standard library's WSGI server, one thread per request.
Meant for development; in production point any WSGI server at
`pressframe.cms:create_app()`.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (127.0.0.1:8000, settings from the environment)
    python -m pressframe

    # Listen on all interfaces, custom port
    python -m pressframe --host 0.0.0.0 --port 3000

    # Create the SQLite tables first
    python -m pressframe --init-db

    # Print the route table and exit
    python -m pressframe --routes

=============================================================================
"""

from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server
import argparse
import logging
import sys

from . import __version__
from .app import setup_logging
from .cms import create_app, create_schema
from .config import AppConfig


logger = logging.getLogger("pressframe")


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class QuietRequestHandler(WSGIRequestHandler):
    """wsgiref logs every request to stderr; the access_log middleware already does."""

    def log_message(self, format, *args):
        pass


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pressframe",
        description="Run the pressframe blog CMS on a development server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m pressframe                       # Run with defaults
  python -m pressframe --port 3000           # Custom port
  python -m pressframe --host 0.0.0.0        # Listen on all interfaces
  python -m pressframe --debug               # Tracebacks in 500 responses
  python -m pressframe --init-db             # Create tables, then serve
  python -m pressframe --routes              # Print routes and exit
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: APP_HOST or 127.0.0.1)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: APP_PORT or 8000)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Render tracebacks in 500 responses"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the CMS tables if they do not exist"
    )

    parser.add_argument(
        "--routes",
        action="store_true",
        help="Print the route table and exit"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> AppConfig:
    """Environment settings, overridden by whatever was given on the command line."""
    config = AppConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.debug:
        config.debug = True
    if args.log_level is not None:
        config.log_level = args.log_level
    config.validate()
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config)
    app = create_app(config)

    if args.routes:
        app.router.print_routes()
        return 0

    if args.init_db:
        with app.database.connection() as conn:
            create_schema(conn)
        logger.info("Database tables are ready")

    server = make_server(
        config.host,
        config.port,
        app,
        server_class=ThreadingWSGIServer,
        handler_class=QuietRequestHandler,
    )
    logger.info(f"Serving {config.name} on http://{config.host}:{config.port} (env: {config.env})")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()
        app.database.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
