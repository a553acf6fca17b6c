from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from flowplan.plan.nodes import CallNode, Plan


class FunctionRead(BaseModel):
    name: str
    parameters: list[str]


class PlanNodeRead(BaseModel):
    name: str
    kind: Literal["call", "leaf"]
    function: str | None = None
    args: dict[str, str] = Field(default_factory=dict)


class PlanRead(BaseModel):
    target: str
    nodes: list[PlanNodeRead]
    leaves: list[str]
    expression: str

    @classmethod
    def from_plan(cls, plan: Plan, target: str) -> "PlanRead":
        nodes = [
            PlanNodeRead(name=name, kind=node.kind, function=node.name, args=dict(node.args))
            if isinstance(node, CallNode)
            else PlanNodeRead(name=name, kind=node.kind)
            for name, node in plan.items()
        ]
        return cls(
            target=target,
            nodes=nodes,
            leaves=plan.leaves(),
            expression=plan.expand(target),
        )


class RunCreate(BaseModel):
    id: int = Field(gt=0)
    function: str = Field(min_length=1, max_length=120)
    bindings: dict[str, Any] = Field(default_factory=dict)

    @field_validator("function")
    @classmethod
    def _strip_function(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("The function name cannot be blank.")
        return value


class RunRead(BaseModel):
    run_id: int
    function: str
    status: Literal["succeeded", "failed"]
    bindings: dict[str, Any]
    plan: dict[str, dict[str, Any]] | None = None
    result: Any = None
    error: str | None = None
    attempts: int
    created_at: datetime
