from __future__ import annotations

import logging

from flowplan.functions.registry import FunctionSource
from flowplan.plan.nodes import CallNode, LeafNode, Plan

logger = logging.getLogger("flowplan.resolver")


class CyclicDependencyError(RuntimeError):
    """Raised when a function depends, through its parameters, on itself."""

    def __init__(self, cycle: tuple[str, ...]) -> None:
        self.cycle = cycle
        super().__init__(f"Cyclic dependency: {' -> '.join(cycle)}")


class Resolver:
    """
    Build the deferred call plan for a terminal name.

    A parameter of a registered function that shares its name with another
    registered function becomes a dependency on that function; every other
    name is a leaf to be supplied at evaluation time.
    """

    def __init__(self, registry: FunctionSource) -> None:
        self._registry = registry

    def solve(self, terminal_name: str) -> Plan:
        plan = Plan(parent=self._registry)
        self._resolve(terminal_name, plan, [])
        logger.debug(
            "Resolved '%s' into %s entries (%s leaves).",
            terminal_name,
            len(plan),
            len(plan.leaves()),
        )
        return plan

    def _resolve(self, name: str, plan: Plan, path: list[str]) -> None:
        if name in plan:
            return
        if name in path:
            raise CyclicDependencyError(tuple(path[path.index(name):]) + (name,))

        if not self._registry.has_function(name):
            plan._bind(LeafNode(name))
            logger.debug("Bound leaf '%s'.", name)
            return

        params = self._registry.parameter_names(name) or ()
        path.append(name)
        for param in params:
            if param not in plan:
                self._resolve(param, plan, path)
        path.pop()

        plan._bind(CallNode(name, {param: param for param in params}))
        logger.debug("Bound call '%s' with arguments %s.", name, list(params))


def solve(terminal_name: str, registry: FunctionSource) -> Plan:
    """Resolve ``terminal_name`` against ``registry`` and return its plan."""

    return Resolver(registry).solve(terminal_name)
