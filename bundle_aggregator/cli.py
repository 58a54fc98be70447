"""
Command Line Entry Point

    bundle-aggregator --entry index.ios --port 8080 \\
        --packager-command "./node_modules/react-native/packager/packager.sh --root {entry_dir} --port {port}"

Options override ``BUNDLE_AGGREGATOR_*`` environment variables, which
override the built-in defaults.
"""

from __future__ import annotations
from typing import List, Optional
import argparse
import logging
import sys

import uvicorn

from .config import load_config, parse_bool
from .errors import ConfigError
from .lifecycle import UpstreamSupervisor
from .router import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundle-aggregator",
        description="Serve a runtime bundle and an application bundle as one bundle with one source map."
    )
    parser.add_argument("--hostname", help="Host for the aggregator and both upstreams (default: localhost)")
    parser.add_argument("--port", type=int, help="Aggregator port (default: 8080)")
    parser.add_argument("--packager-port", type=int, help="Runtime packager port (default: 8081)")
    parser.add_argument("--webpack-port", type=int, help="Application dev server port (default: 8082)")
    parser.add_argument("--entry", help="Entry module name (default: index.ios)")
    parser.add_argument("--hot", type=parse_bool, nargs="?", const=True, default=None,
                        help="Run the application upstream in live-reload mode")
    parser.add_argument("--fetch-timeout", type=float, help="Per-fetch timeout in seconds (default: none)")
    parser.add_argument("--packager-command", help="Command template launching the runtime packager")
    parser.add_argument("--webpack-command", help="Command template launching the application dev server")
    parser.add_argument("--startup-timeout", type=float, help="Seconds to wait for upstreams (default: 30)")
    parser.add_argument("--entry-dir", help="Directory for the entry stub (default: a temp directory)")
    parser.add_argument("--no-supervise", action="store_true",
                        help="Neither launch nor wait for the upstreams")
    parser.add_argument("--log-level", default="info",
                        choices=["critical", "error", "warning", "info", "debug"])
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        config = load_config().with_overrides(
            hostname=args.hostname,
            port=args.port,
            packager_port=args.packager_port,
            webpack_port=args.webpack_port,
            entry=args.entry,
            hot=args.hot,
            fetch_timeout=args.fetch_timeout,
            packager_command=args.packager_command,
            webpack_command=args.webpack_command,
            startup_timeout=args.startup_timeout,
            entry_dir=args.entry_dir,
        )
    except ConfigError as e:
        print(f"[!] {e}", file=sys.stderr)
        return 2

    supervisor = None if args.no_supervise else UpstreamSupervisor(config)
    app = create_app(config, supervisor=supervisor)

    print(f"[*] Serving http://{config.hostname}:{config.port}{config.bundle_path}")
    print(f"[*] Runtime upstream:     {config.packager_url}")
    print(f"[*] Application upstream: {config.webpack_url}")

    uvicorn.run(app, host=config.hostname, port=config.port, log_level=args.log_level)
    return 0
