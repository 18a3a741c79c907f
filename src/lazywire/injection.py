from __future__ import annotations

from typing import Any

_MISSING: Any = object()


class InjectionMember:
    """Base class for explicit construction instructions attached to a registration."""

    __slots__ = ()


class InjectionConstructor(InjectionMember):
    """Call the implementation with exactly these positional arguments.

    Replaces annotation-driven constructor injection for the registration it is
    attached to. Values are passed through unchanged.
    """

    __slots__ = ("values",)

    def __init__(self, *values: Any) -> None:
        self.values = values

    def __repr__(self) -> str:
        return f"InjectionConstructor{self.values!r}"


class InjectionProperty(InjectionMember):
    """Assign an attribute on the instance right after construction.

    Without a value the attribute is resolved from the container using the
    class annotation for ``name``.
    """

    __slots__ = ("name", "value")

    def __init__(self, name: str, value: Any = _MISSING) -> None:
        self.name = name
        self.value = value

    @property
    def has_value(self) -> bool:
        return self.value is not _MISSING

    def __repr__(self) -> str:
        if self.has_value:
            return f"InjectionProperty({self.name!r}, {self.value!r})"
        return f"InjectionProperty({self.name!r})"
