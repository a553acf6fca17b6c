"""Resolve name-based function dependencies into deferred call plans."""

from flowplan.functions.registry import FunctionNotFoundError, Registry
from flowplan.plan.nodes import CallNode, LeafNode, Node, Plan
from flowplan.services.evaluator import UnboundLeafError, evaluate
from flowplan.services.resolver import CyclicDependencyError, Resolver, solve

__all__ = [
    "CallNode",
    "CyclicDependencyError",
    "FunctionNotFoundError",
    "LeafNode",
    "Node",
    "Plan",
    "Registry",
    "Resolver",
    "UnboundLeafError",
    "evaluate",
    "solve",
]
