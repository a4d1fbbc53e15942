"""Decorator for creating a registry of value decoders."""

from __future__ import annotations

from typing import Any, Callable, TypeVar

CALLABLE_T = TypeVar("CALLABLE_T", bound=Callable)  # pylint: disable=invalid-name


class Registry(dict[str, Any]):
    """Registry of items, keyed by name."""

    def register(self, name: str) -> Callable[[CALLABLE_T], CALLABLE_T]:
        """Return decorator to register item with a specific name."""

        def decorator(func: CALLABLE_T) -> CALLABLE_T:
            """Register decorated function."""
            if name in self:
                raise ValueError(f"Duplicate registration for '{name}'")
            self[name] = func
            return func

        return decorator
