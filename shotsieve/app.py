#!/usr/bin/env python3
"""
ShotSieve - Scan Control Server
===============================
Serves the JSON control API for one photo directory.

Run with: python -m shotsieve.app /path/to/photos
Or: shotsieve-server /path/to/photos

Options:
    -q, --quiet     Errors only
    -v, --verbose   Debug logging, including every HTTP request
    -p, --port      Listen port (default: 5000)
    --db            Database file (default: ~/.shotsieve/scanner.db)
    --scan          Start a scan as soon as the server is up
"""

import argparse
import atexit
import logging
from typing import Optional

from flask import Flask

from .api import api, EXTENSION_KEY, ScanOrchestrator
from .database import ScanDatabase
from .exceptions import MigrationFailure
from .scanner import DirectoryLibrary
from .user_config import ScanSettings, get_user_config


# Verbosity of the server process
LOG_QUIET = 0    # Errors only
LOG_MINIMAL = 1  # Startup banner and scan milestones (default)
LOG_VERBOSE = 2  # Debug output and werkzeug request lines

_logger = logging.getLogger(__name__)


def create_app(engine: ScanOrchestrator, log_level: int = LOG_MINIMAL) -> Flask:
    """
    Build the Flask application around a scan engine.

    Args:
        engine: Engine the routes drive; stored in app.extensions
        log_level: LOG_QUIET, LOG_MINIMAL or LOG_VERBOSE

    Returns:
        Flask app with the API blueprint registered
    """
    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = engine

    if log_level < LOG_VERBOSE:
        # One line per request drowns out scan progress
        logging.getLogger('werkzeug').setLevel(logging.ERROR if log_level == LOG_QUIET else logging.WARNING)

    app.register_blueprint(api)
    return app


def _silence_startup_banner():
    try:
        import flask.cli
        flask.cli.show_server_banner = lambda *args, **kwargs: None
    except (ImportError, AttributeError):
        pass
    logging.getLogger('werkzeug').setLevel(logging.ERROR)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='shotsieve-server',
        description='ShotSieve - scan control server',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('directory', help='Photo directory to scan')
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-q', '--quiet', action='store_true', help='Errors only')
    verbosity.add_argument('-v', '--verbose', action='store_true', help='Debug logging and request lines')
    parser.add_argument('-p', '--port', type=int, default=5000, help='Listen port (default: 5000)')
    parser.add_argument('--db', help='Database file (default: ~/.shotsieve/scanner.db or SHOTSIEVE_DB)')
    parser.add_argument('--scan', action='store_true', help='Start scanning immediately')
    return parser


def _verbosity(args: argparse.Namespace) -> int:
    if args.quiet:
        return LOG_QUIET
    if args.verbose:
        return LOG_VERBOSE
    return LOG_MINIMAL


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point of shotsieve-server."""
    args = build_parser().parse_args(argv)
    log_level = _verbosity(args)

    logging.basicConfig(
        level={LOG_QUIET: logging.ERROR, LOG_MINIMAL: logging.INFO, LOG_VERBOSE: logging.DEBUG}[log_level],
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S',
    )

    db_path = args.db or get_user_config().db_file
    try:
        db = ScanDatabase(db_path)
    except MigrationFailure as e:
        _logger.error(f"Cannot open database {db_path}: {e}")
        return 1

    engine = ScanOrchestrator(db, DirectoryLibrary(args.directory), ScanSettings.from_user_config())

    def _shutdown():
        engine.close()
        db.close()

    atexit.register(_shutdown)

    if log_level >= LOG_MINIMAL:
        base_url = f'http://127.0.0.1:{args.port}'
        print()
        print("  ShotSieve scan control server")
        print(f"  Library:  {args.directory}")
        print(f"  Database: {db.db_path}")
        print(f"  Status:   {base_url}/api/scan/status")
        print()
        print("  Press Ctrl+C to stop")
        print()

    if log_level < LOG_VERBOSE:
        _silence_startup_banner()

    app = create_app(engine, log_level)

    if args.scan:
        engine.start_in_background()

    try:
        app.run(host='127.0.0.1', port=args.port, debug=False, threaded=True, use_reloader=False)
    except KeyboardInterrupt:
        _logger.info("Server stopped")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
