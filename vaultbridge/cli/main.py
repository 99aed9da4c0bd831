"""
Command line entrypoint for vaultbridge.

Version: 0.1.0

Drives the plugin the way a host would, for local debugging:
- vaultbridge identify
- vaultbridge backends
- vaultbridge request <request_name> [--body JSON | --body-file PATH]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from vaultbridge import __version__
from vaultbridge.config import load_config
from vaultbridge.core.bridge import (
    PLUGIN_IDENTIFIER,
    BridgeError,
    PluginRequest,
    UnhandledRequestTypeError,
    get_backend_registry,
)
from vaultbridge.core.logging_utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INIT_FAILED = 1
EXIT_UNHANDLED_REQUEST = 2
EXIT_BAD_INPUT = 3


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def handle_identify() -> int:
    _print_json(PLUGIN_IDENTIFIER.to_dict())
    return EXIT_OK


def handle_backends() -> int:
    _print_json(get_backend_registry().names())
    return EXIT_OK


def _read_body(body: Optional[str], body_file: Optional[Path]) -> Optional[str]:
    if body_file is not None:
        return body_file.read_text(encoding="utf-8")
    return body


def handle_request(
    request_name: str,
    body: Optional[str] = None,
    body_file: Optional[Path] = None,
    params: Optional[List[str]] = None,
    config_file: Optional[Path] = None,
    backend: Optional[str] = None,
    log_level: Optional[str] = None,
) -> int:
    """Initialize a plugin and send it a single request.

    ``log_level`` takes precedence over the config file's ``logging.level``.
    """
    from vaultbridge.core.bridge.bootstrap import init_plugin, shutdown_plugin

    request_parameters: Dict[str, str] = {}
    for item in params or []:
        key, _, value = item.partition("=")
        request_parameters[key] = value

    try:
        request_body = _read_body(body, body_file)
    except OSError as e:
        print(f"Cannot read request body: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    request = PluginRequest(
        request_name=request_name,
        request_body=request_body,
        request_parameters=request_parameters,
    )

    config = load_config(config_file)
    if log_level:
        config.logging.level = log_level

    try:
        plugin = init_plugin(config=config, backend=backend)
    except Exception as e:
        print(f"Plugin failed to initialize: {e}", file=sys.stderr)
        return EXIT_INIT_FAILED

    try:
        response = plugin.handle(request)
    except UnhandledRequestTypeError as e:
        print(str(e), file=sys.stderr)
        return EXIT_UNHANDLED_REQUEST
    finally:
        shutdown_plugin()

    _print_json(response.to_dict())
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vaultbridge",
        description="Secrets plugin bridge between a host plugin protocol and Vault.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (DEBUG, INFO, WARNING, ERROR). Overrides the config file.",
    )

    subcommands = parser.add_subparsers(dest="command")

    subcommands.add_parser("identify", help="Print the plugin identifier.")
    subcommands.add_parser("backends", help="List registered backends.")

    request_parser = subcommands.add_parser("request", help="Send one request to the plugin.")
    request_parser.add_argument("request_name", help="Request type, e.g. go.cd.secrets.secrets-lookup")
    body_group = request_parser.add_mutually_exclusive_group()
    body_group.add_argument("--body", default=None, help="Request body as JSON text.")
    body_group.add_argument("--body-file", type=Path, default=None, help="File holding the JSON request body.")
    request_parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Request parameter (repeatable).",
    )
    request_parser.add_argument("--config", type=Path, default=None, help="Path to vaultbridge.yaml.")
    request_parser.add_argument("--backend", default=None, help="Backend name or module:attribute.")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entrypoint for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    if args.log_level:
        configure_logging(args.log_level)

    try:
        if args.command == "identify":
            return handle_identify()
        if args.command == "backends":
            return handle_backends()
        if args.command == "request":
            return handle_request(
                args.request_name,
                body=args.body,
                body_file=args.body_file,
                params=args.param,
                config_file=args.config,
                backend=args.backend,
                log_level=args.log_level,
            )
    except BridgeError as e:
        logger.error("%s", e)
        return EXIT_INIT_FAILED

    parser.error(f"unknown command {args.command}")
    return EXIT_INIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
