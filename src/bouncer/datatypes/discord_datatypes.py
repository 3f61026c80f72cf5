"""
Type-safe wrappers for Discord snowflake identifiers.

Snowflakes are 64-bit integers but end up as strings whenever they are used
as storage keys, so the wrappers keep the canonical string form and convert
to ``int`` for API calls.
"""

from __future__ import annotations

from typing import Any, Union


class Snowflake:
    """
    Base class for the identifier wrappers.

    Two wrappers compare equal when they are of the same kind and hold the
    same value; comparison against a raw ``int`` or ``str`` is also allowed.

    Example:
        >>> uid = UserID(123456789012345678)
        >>> uid.to_int()
        123456789012345678
        >>> str(uid)
        '123456789012345678'
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Args:
            value: The snowflake as a string, int, or wrapper of the same kind.

        Raises:
            ValueError: If the value cannot be converted to a valid snowflake.
        """
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_model(cls, model: Any):
        """Create a wrapper from any Discord object exposing ``id``."""
        return cls(model.id)

    def to_int(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._value))


class UserID(Snowflake):
    """Discord user snowflake."""

    __slots__ = ()


class GuildID(Snowflake):
    """Discord guild (moderation group) snowflake."""

    __slots__ = ()
