"""A presence-aware value container for partial updates.

``Presence`` distinguishes "the user supplied this value" from "the user did
not mention this field". ``None`` is never used to mean absent, so a patch can
carry every field and merge rules can be checked exhaustively.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, cast

T = TypeVar("T")
U = TypeVar("U")

_ABSENT: Any = object()


@dataclass(frozen=True, slots=True)
class Presence(Generic[T]):
    """Either a supplied value or nothing."""

    _value: T = _ABSENT

    @classmethod
    def of(cls, value: T) -> Presence[T]:
        """Return a present container holding ``value``."""
        return cls(value)

    @classmethod
    def absent(cls) -> Presence[T]:
        """Return an empty container."""
        return cls()

    @classmethod
    def from_optional(cls, value: T | None) -> Presence[T]:
        """Treat ``None`` (an omitted CLI option) as absent."""
        if value is None:
            return cls()
        return cls(value)

    @property
    def is_present(self) -> bool:
        """Whether a value was supplied."""
        return self._value is not _ABSENT

    def get(self) -> T:
        """Return the value, raising ``LookupError`` if absent."""
        if not self.is_present:
            msg = "Presence has no value"
            raise LookupError(msg)
        return self._value

    def or_else(self, default: T) -> T:
        """Return the value or ``default`` when absent."""
        return self._value if self.is_present else default

    def map(self, func: Callable[[T], U]) -> Presence[U]:
        """Apply ``func`` to a present value; absent stays absent."""
        if not self.is_present:
            return cast("Presence[U]", self)
        return Presence(func(self._value))

    def __repr__(self) -> str:
        if not self.is_present:
            return "Presence.absent()"
        return f"Presence.of({self._value!r})"


ABSENT: Presence[Any] = Presence()


__all__ = ["ABSENT", "Presence"]
