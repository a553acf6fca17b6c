"""Small arithmetic chain: two constants summed with a caller-supplied input."""

from __future__ import annotations

from ._helpers import coerce_number
from .registry import register


@register()
def returns_1() -> int:
    return 1


@register()
def returns_2() -> int:
    return 2


@register()
def calculates(returns_1: int, returns_2: int, c: object) -> float | int:
    """Return ``returns_1 + returns_2 + c``."""

    return returns_1 + returns_2 + coerce_number(c, func_name="calculates", arg_name="c")
