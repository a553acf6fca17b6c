from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import Any

from flowplan.plan.nodes import CallNode, Plan

logger = logging.getLogger("flowplan.evaluator")

_MISSING = object()


class UnboundLeafError(LookupError):
    """Raised when a leaf input is needed but has no binding."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No value bound for input '{name}'.")


def evaluate(
    plan: Plan,
    name: str | None = None,
    bindings: Mapping[str, Any] | None = None,
) -> Any:
    """
    Realize the plan entry ``name`` (the terminal entry by default).

    Leaves are read from ``bindings`` first and then from the plan's registry
    chain. Every call node is invoked at most once per evaluation.
    """

    target = name if name is not None else plan.terminal
    if target is None:
        raise ValueError("Cannot evaluate an empty plan.")

    bindings = bindings or {}
    registry = plan.parent
    values: dict[str, Any] = {}

    def realize(entry: str) -> Any:
        if entry in values:
            return values[entry]

        node = plan[entry]
        if isinstance(node, CallNode):
            arguments = {param: realize(source) for param, source in node.args.items()}
            logger.debug("Calling '%s'.", node.name)
            value = _call(registry.get_callable(node.name), arguments)
        elif node.name in bindings:
            value = bindings[node.name]
        else:
            value = registry.lookup(node.name, _MISSING)
            if value is _MISSING:
                raise UnboundLeafError(node.name)

        values[entry] = value
        return value

    return realize(target)


def _call(func: Any, arguments: dict[str, Any]) -> Any:
    # Positional-only parameters cannot be passed by keyword.
    positional = []
    for param in inspect.signature(func).parameters.values():
        if param.kind is not inspect.Parameter.POSITIONAL_ONLY:
            break
        if param.name not in arguments:
            break
        positional.append(arguments.pop(param.name))
    return func(*positional, **arguments)
