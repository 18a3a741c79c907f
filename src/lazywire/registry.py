from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from lazywire.injection import InjectionMember
    from lazywire.lifetimes import LifetimePolicy
    from lazywire.overrides import BuildContext


@dataclass(frozen=True, slots=True)
class ServiceKey:
    """Identify a registration by the type it provides and an optional name."""

    provides: Any
    name: str | None = None

    def __str__(self) -> str:
        provides = getattr(self.provides, "__qualname__", None) or repr(self.provides)
        if self.name is None:
            return str(provides)
        return f"{provides} (name={self.name!r})"


@dataclass(slots=True, eq=False)
class Registration:
    """A single entry in a container's registration table.

    ``concrete`` is the implementation (a class or a generic alias of one),
    ``open_key`` is the canonical open-generic key when ``key.provides``
    contains TypeVars, and ``factory`` is the materialization hook installed
    with ``Container.set_factory``.
    """

    key: ServiceKey
    lifetime: LifetimePolicy
    concrete: Any = None
    instance: Any = None
    has_instance: bool = False
    injection: tuple[InjectionMember, ...] = ()
    open_key: Any = None
    factory: Callable[[BuildContext], Any] | None = field(default=None)

    @property
    def is_open_generic(self) -> bool:
        return self.open_key is not None
