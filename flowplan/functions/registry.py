"""Registry of named functions whose parameter names declare their inputs."""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Sequence
from typing import Any, Protocol

_VARIADIC = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
_MISSING = object()


class FunctionSource(Protocol):
    def has_function(self, name: str) -> bool:
        """Whether ``name`` is bound locally to a callable."""

    def parameter_names(self, name: str) -> Sequence[str] | None:
        """Declared parameter names of function ``name``, in order."""

    def get_callable(self, name: str) -> Callable[..., Any]:
        """Callable bound to ``name`` here or in a parent."""

    def lookup(self, name: str, default: Any = None) -> Any:
        """Any value bound to ``name`` here or in a parent."""


class FunctionNotFoundError(KeyError):
    """Raised when a name is not bound to a callable anywhere in the chain."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class Registry:
    """
    Ordered mapping of names to callables (or plain data values).

    Parameters
    ----------
    parent:
        Registry consulted for names that are not bound locally. Only
        :meth:`get_callable` and :meth:`lookup` fall through to it; whether a
        name *is a function* is always decided by the local bindings.
    """

    def __init__(self, parent: Registry | None = None) -> None:
        self.parent = parent
        self._bindings: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"Registry({list(self._bindings)!r}, parent={self.parent!r})"

    def __contains__(self, name: object) -> bool:
        return self.lookup(name, _MISSING) is not _MISSING  # type: ignore[arg-type]

    def define(self, name: str, value: Any) -> Any:
        if name in self._bindings:
            raise ValueError(f"Name '{name}' already defined.")
        self._bindings[name] = value
        return value

    def register(
        self, name: str | None = None, *, cache: bool = False
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """
        Decorator to register a callable in this registry.

        Parameters
        ----------
        name:
            Optional alias. Defaults to ``func.__name__``.
        cache:
            Wrap the function in :func:`functools.lru_cache` before
            registering it. The undecorated function is returned to the caller.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            key = name or func.__name__
            self.define(key, functools.lru_cache(maxsize=None)(func) if cache else func)
            return func

        return decorator

    def has_function(self, name: str) -> bool:
        return callable(self._bindings.get(name))

    def parameter_names(self, name: str) -> tuple[str, ...] | None:
        """Return the declared parameter names of ``name`` in order, or ``None``."""

        signature = inspect.signature(self.get_callable(name))
        params = tuple(
            param.name
            for param in signature.parameters.values()
            if param.kind not in _VARIADIC
        )
        return params or None

    def get_callable(self, name: str) -> Callable[..., Any]:
        registry: Registry | None = self
        while registry is not None:
            value = registry._bindings.get(name, _MISSING)
            if callable(value):
                return value
            registry = registry.parent
        available = ", ".join(self.functions()) or "none"
        raise FunctionNotFoundError(
            f"Function '{name}' is not registered. Available: {available}."
        )

    def lookup(self, name: str, default: Any = None) -> Any:
        registry: Registry | None = self
        while registry is not None:
            if name in registry._bindings:
                return registry._bindings[name]
            registry = registry.parent
        return default

    def names(self) -> list[str]:
        return list(self._bindings)

    def functions(self) -> list[str]:
        return [name for name, value in self._bindings.items() if callable(value)]

    def describe(self) -> dict[str, tuple[str, ...]]:
        return {name: self.parameter_names(name) or () for name in self.functions()}


default_registry = Registry()


def register(
    name: str | None = None, *, cache: bool = False
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Register a callable in the default registry."""

    return default_registry.register(name, cache=cache)


def list_functions() -> list[str]:
    return sorted(default_registry.functions())
