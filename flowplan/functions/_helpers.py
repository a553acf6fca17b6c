"""Shared utilities for registered functions."""

from __future__ import annotations


def coerce_number(value: object, *, func_name: str, arg_name: str) -> float | int:
    """
    Convert ``value`` into ``int`` or ``float``.

    Inputs arriving from the CLI or a queue payload are often strings.

    Raises
    ------
    ValueError
        If conversion is not possible.
    """

    if value is None:
        raise ValueError(f"{func_name}: '{arg_name}' is required.")

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value

    text = str(value).strip()
    if not text:
        raise ValueError(f"{func_name}: '{arg_name}' cannot be empty.")

    try:
        return int(text)
    except ValueError:
        try:
            return float(text)
        except ValueError as exc:
            raise ValueError(
                f"{func_name}: '{arg_name}' must be numeric (got {value!r})."
            ) from exc
