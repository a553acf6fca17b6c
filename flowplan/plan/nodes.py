"""Deferred call plan: a name-keyed graph of call and leaf nodes."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal, Union

if TYPE_CHECKING:
    from flowplan.functions.registry import FunctionSource


@dataclass(frozen=True, slots=True)
class CallNode:
    """Deferred invocation of ``name``; each argument names another plan entry."""

    name: str
    args: Mapping[str, str] = field(default_factory=dict)

    kind: Literal["call"] = field(default="call", init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", MappingProxyType(dict(self.args)))

    def __hash__(self) -> int:
        return hash((self.name, tuple(self.args.items())))


@dataclass(frozen=True, slots=True)
class LeafNode:
    """Value supplied by the caller at evaluation time."""

    name: str

    kind: Literal["leaf"] = field(default="leaf", init=False)


Node = Union[CallNode, LeafNode]


class Plan(Mapping[str, Node]):
    """
    Ordered mapping from name to :data:`Node`.

    ``parent`` is the registry the plan was resolved against, so an evaluator
    can fall through to the real function definitions and data bindings.
    Entries are added once by the resolver and never replaced.
    """

    def __init__(self, parent: FunctionSource) -> None:
        self.parent = parent
        self._nodes: dict[str, Node] = {}

    def __getitem__(self, name: str) -> Node:
        return self._nodes[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"Plan({self._nodes!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Plan):
            return list(self._nodes.items()) == list(other._nodes.items())
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def _bind(self, node: Node) -> None:
        if node.name in self._nodes:
            raise ValueError(f"Plan already has an entry for '{node.name}'.")
        self._nodes[node.name] = node

    @property
    def terminal(self) -> str | None:
        """Name of the last entry bound, which is the requested name."""
        return next(reversed(self._nodes), None)

    def leaves(self) -> list[str]:
        return [name for name, node in self._nodes.items() if isinstance(node, LeafNode)]

    def calls(self) -> list[str]:
        return [name for name, node in self._nodes.items() if isinstance(node, CallNode)]

    def render(self, name: str) -> str:
        node = self._nodes[name]
        if isinstance(node, LeafNode):
            return node.name
        args = ", ".join(f"{param}={source}" for param, source in node.args.items())
        return f"{node.name}({args})"

    def expand(self, name: str) -> str:
        """Render ``name`` with every argument replaced by its own expression."""
        node = self._nodes[name]
        if isinstance(node, LeafNode):
            return node.name
        args = ", ".join(
            f"{param}={self.expand(source)}" for param, source in node.args.items()
        )
        return f"{node.name}({args})"

    def to_dict(self) -> dict[str, dict[str, Any]]:
        out: dict[str, dict[str, Any]] = {}
        for name, node in self._nodes.items():
            if isinstance(node, CallNode):
                out[name] = {"kind": node.kind, "function": node.name, "args": dict(node.args)}
            else:
                out[name] = {"kind": node.kind}
        return out
