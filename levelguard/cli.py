"""Command-line interface for the degradation controller.

Usage:
    levelguard invoke [--error | --body JSON]
    levelguard status
    levelguard simulate PATTERN     # e.g. "eeeee" or "e*5 o*20"
    levelguard serve [--host HOST] [--port PORT]
"""

from __future__ import annotations

import argparse
import json
import sys

from levelguard.config import Settings, configure_logging
from levelguard.exceptions import ConfigurationError, StoreUnavailableError
from levelguard.machine import replay
from levelguard.state import ServiceHealthState


def parse_pattern(pattern: str) -> list[bool]:
    """Parse an outcome pattern into healthy flags.

    ``e`` is an error outcome, ``o`` a healthy one; a token may carry a
    repeat count (``e*5``).  Whitespace separates tokens.
    """
    outcomes: list[bool] = []
    for token in pattern.split():
        symbols, _, count = token.partition("*")
        try:
            repeat = int(count) if count else 1
        except ValueError:
            raise ValueError(f"Bad repeat count {count!r} in {token!r}") from None
        if repeat < 1:
            raise ValueError(f"Repeat count must be at least 1 in {token!r}")
        for symbol in symbols.lower():
            if symbol not in ("e", "o"):
                raise ValueError(f"Unknown outcome {symbol!r} in {token!r} (use 'e' or 'o')")
            outcomes.extend([symbol == "o"] * repeat)
    return outcomes


def cmd_invoke(args: argparse.Namespace) -> None:
    """Run one controller invocation against the configured store."""
    from levelguard.handler import get_controller

    body = args.body if args.body is not None else ({"error": True} if args.error else None)
    result = get_controller(Settings()).handle(body)
    print(json.dumps({"statusCode": result.status_code, **result.body().model_dump()}))
    if result.transition is None:
        sys.exit(1)


def cmd_status(args: argparse.Namespace) -> None:
    """Print the stored record for the configured service."""
    from levelguard.handler import get_controller

    controller = get_controller(Settings())
    try:
        state = controller.store.load(controller.service_id)
    except StoreUnavailableError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(state.to_record()))


def cmd_simulate(args: argparse.Namespace) -> None:
    """Replay an outcome pattern offline, starting from the default state."""
    try:
        outcomes = parse_pattern(args.pattern)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(2)
    state = replay(ServiceHealthState.initial(args.service_id), outcomes)
    print(json.dumps(state.to_record()))


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("levelguard.app:app", host=args.host, port=args.port)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="levelguard",
        description="Three-level service degradation controller",
    )
    sub = parser.add_subparsers(dest="command")

    p_invoke = sub.add_parser("invoke", help="Record one outcome")
    group = p_invoke.add_mutually_exclusive_group()
    group.add_argument("--error", action="store_true", help="Record an error outcome")
    group.add_argument("--body", help="Raw JSON request body")

    sub.add_parser("status", help="Show the stored record")

    p_sim = sub.add_parser("simulate", help="Replay outcomes without a store")
    p_sim.add_argument("pattern", help="Outcomes: 'e' error, 'o' ok, optional '*N' repeat")
    p_sim.add_argument("--service-id", default=Settings().service_id)

    p_serve = sub.add_parser("serve", help="Run the HTTP app")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8080)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(Settings().log_level)

    commands = {
        "invoke": cmd_invoke,
        "status": cmd_status,
        "simulate": cmd_simulate,
        "serve": cmd_serve,
    }
    try:
        commands[args.command](args)
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
