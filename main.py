from __future__ import annotations

import argparse
import ast
import logging
import sys
from typing import Any, Sequence

from flowplan.core.config import settings
from flowplan.functions import default_registry
from flowplan.services.evaluator import evaluate
from flowplan.services.resolver import solve


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resolve and run registered functions by their parameter names."
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log resolution and evaluation steps.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        dest="show_list",
        help="Print the registered functions and exit.",
    )
    commands = parser.add_subparsers(dest="command")

    plan_cmd = commands.add_parser("plan", help="Print the call plan for a function.")
    plan_cmd.add_argument("function_name", help="Terminal function (e.g. 'calculates').")
    plan_cmd.add_argument(
        "--expand",
        action="store_true",
        help="Inline every argument's own expression.",
    )

    run_cmd = commands.add_parser("run", help="Evaluate the plan for a function.")
    run_cmd.add_argument("function_name", help="Terminal function (e.g. 'calculates').")
    run_cmd.add_argument(
        "bindings",
        nargs="*",
        metavar="NAME=VALUE",
        help="Values for the plan's leaf inputs (e.g. 'c=3').",
    )

    args = parser.parse_args(argv)
    if not args.show_list and args.command is None:
        parser.error("a command is required (unless --list is used).")
    if args.command == "run":
        try:
            args.bindings = parse_bindings(args.bindings)
        except ValueError as exc:
            parser.error(str(exc))
    return args


def coerce_value(raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return ast.literal_eval(raw)
    except (ValueError, SyntaxError):
        lowered = raw.lower()
        if lowered == "none":
            return None
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        return raw


def parse_bindings(items: Sequence[str]) -> dict[str, Any]:
    bindings: dict[str, Any] = {}
    for item in items:
        name, sep, raw = item.partition("=")
        if not sep or not name:
            raise ValueError(f"Invalid binding '{item}'; expected NAME=VALUE.")
        bindings[name] = coerce_value(raw)
    return bindings


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else settings.LOG_LEVEL)

    if args.show_list:
        for name, params in sorted(default_registry.describe().items()):
            print(f"{name}({', '.join(params)})")
        return 0

    try:
        plan = solve(args.function_name, default_registry)
        if args.command == "plan":
            render = plan.expand if args.expand else plan.render
            for name in plan:
                print(f"{name} <- {render(name)}")
            return 0
        result = evaluate(plan, args.function_name, args.bindings)
    except Exception as exc:  # noqa: BLE001
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if result is not None:
        print(result)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
