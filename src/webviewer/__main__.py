"""
=============================================================================
WEB VIEWER SERVER CLI ENTRY POINT
=============================================================================

    # Defaults (127.0.0.1:9090, packaged assets)
    python -m webviewer

    # Any free port
    python -m webviewer --port 0

    # Assets from a fresh build, reachable from other machines
    web-viewer-server --assets ./build/web_viewer --host 0.0.0.0

Command-line arguments override WEB_VIEWER_* environment variables, which
override the ServerConfig defaults.

Exit status is 1 when the server cannot start (bad configuration, missing
assets, port in use).

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig, DEFAULT_PORT
from .errors import WebViewerError
from .server import WebViewerServer, setup_logging
from .telemetry import LoggingTelemetry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="web-viewer-server",
        description="Serve the web viewer over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m webviewer                          # Run with defaults
  python -m webviewer --port 0                 # Any free port
  python -m webviewer --assets ./web_viewer    # Serve a different build
        """
    )

    # Defaults are None so that only explicit arguments override the environment

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for all interfaces)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help=f"Port to listen on, 0 picks a free port (default: {DEFAULT_PORT})"
    )

    parser.add_argument(
        "--assets", "-a",
        default=None,
        help="Directory holding the web viewer build (default: packaged copy)"
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Maximum number of worker threads (default: 16)"
    )

    parser.add_argument(
        "--grace-period",
        type=float,
        default=None,
        help="Seconds to let in-flight downloads finish on shutdown (default: 5)"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"web-viewer-server {__version__}"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Environment configuration with explicit CLI arguments applied on top."""
    config = ServerConfig.from_env()

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.assets is not None:
        config.asset_dir = args.assets
    if args.workers is not None:
        config.max_workers = args.workers
        config.min_workers = min(config.min_workers, args.workers)
    if args.grace_period is not None:
        config.shutdown_grace_period = args.grace_period
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
        setup_logging(config.log_level)
        server = WebViewerServer(config, telemetry=LoggingTelemetry())
        server.bind()
    except (WebViewerError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Hosting web viewer on {server.url}", flush=True)

    # Blocks until Ctrl+C / SIGTERM and the drain that follows
    server.run()


if __name__ == "__main__":
    main()
