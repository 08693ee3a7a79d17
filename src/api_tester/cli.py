"""CLI entry point for api-tester."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from api_tester import __version__
from api_tester.client import RequestClient
from api_tester.config import get_client_config, get_listener_config, load_config
from api_tester.listener import (
    ListenerBindError,
    ListenerController,
    install_shutdown_hooks,
)
from api_tester.menu import Menu
from api_tester.models import Failure, HttpMethod, RequestDescriptor
from api_tester.server import serve


def _setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _parse_params(pairs: list[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {pair!r}")
        params[key] = value
    return params


def _cmd_menu(_args: argparse.Namespace) -> None:
    cfg = load_config()
    listener = ListenerController(config=get_listener_config(cfg))
    install_shutdown_hooks(listener)
    menu = Menu(RequestClient(get_client_config(cfg)), listener)
    menu.run()


def _cmd_request(args: argparse.Namespace) -> None:
    method = HttpMethod(args.method.upper())
    try:
        body = json.loads(args.body) if args.body is not None else None
        params = _parse_params(args.param)
    except (json.JSONDecodeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    client = RequestClient(get_client_config())
    if args.raw:
        outcome = client.execute_raw(
            args.path, method=method, body=body, params=params or None,
        )
    else:
        try:
            descriptor = RequestDescriptor(
                method=method, path=args.path, body=body,
                query_params=params or None,
            )
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        outcome = client.execute(descriptor)

    if isinstance(outcome, Failure):
        if args.raw:
            # execute_raw does not log; report here instead.
            print(f"Error: {outcome.kind.value}: {outcome.message}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(outcome.body, indent=2))


def _cmd_serve(args: argparse.Namespace) -> None:
    defaults = get_listener_config()
    host = args.host or defaults.host
    port = args.port if args.port is not None else defaults.port
    try:
        serve(host, port)
    except ListenerBindError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="api-tester",
        description="Exercise an HTTP API and receive webhooks locally",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command")

    # menu
    p_menu = sub.add_parser("menu", help="Interactive menu (default)")
    p_menu.set_defaults(func=_cmd_menu)

    # request
    p_request = sub.add_parser("request", help="Send a single request")
    p_request.add_argument(
        "method", choices=[m.value for m in HttpMethod], type=str.upper,
        help="HTTP method",
    )
    p_request.add_argument("path", help="Path relative to the base URL, or an absolute URL")
    p_request.add_argument("--body", default=None, help="JSON request body")
    p_request.add_argument(
        "--param", action="append", default=[], metavar="KEY=VALUE",
        help="Query parameter (repeatable)",
    )
    p_request.add_argument(
        "--raw", action="store_true",
        help="Skip base URL and auth; PATH must be an absolute URL",
    )
    p_request.set_defaults(func=_cmd_request)

    # serve
    p_serve = sub.add_parser("serve", help="Run the webhook listener in the foreground")
    p_serve.add_argument("--host", default=None, help="Host to bind to")
    p_serve.add_argument("--port", type=int, default=None, help="Port to listen on")
    p_serve.set_defaults(func=_cmd_serve)

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    if not hasattr(args, "func"):
        args.func = _cmd_menu
    args.func(args)


if __name__ == "__main__":
    main()
