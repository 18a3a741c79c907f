"""Resolve-time overrides and the context handed to factory hooks.

Overrides are frozen values collected into an immutable ``ResolverOverrides``
snapshot when ``Container.resolve`` is called. The snapshot is passed down
through every nested resolve of that call and can be stored and replayed
later, which is how a lazy proxy reproduces the exact substitutions of the
resolve call that created it.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union, get_origin

from lazywire.exceptions import LazyWireInvalidOverrideError

if TYPE_CHECKING:
    from lazywire.container_interface import IContainer
    from lazywire.registry import ServiceKey

MISSING: Any = object()


@dataclass(frozen=True, slots=True)
class ParameterOverride:
    """Supply a constructor argument by parameter name for every type built in the call."""

    name: str
    value: Any


@dataclass(frozen=True, slots=True)
class DependencyOverride:
    """Substitute every nested dependency on ``dependency`` (optionally named) with ``value``."""

    dependency: Any
    value: Any
    name: str | None = None


@dataclass(frozen=True, slots=True)
class PropertyOverride:
    """Supply the value of an injected property by attribute name."""

    name: str
    value: Any


@dataclass(frozen=True, slots=True)
class TypeBasedOverride:
    """Apply ``override`` only while building ``target`` (or a generic alias of it)."""

    target: Any
    override: ResolverOverride


ResolverOverride = Union[ParameterOverride, DependencyOverride, PropertyOverride, TypeBasedOverride]

_OVERRIDE_TYPES = (ParameterOverride, DependencyOverride, PropertyOverride, TypeBasedOverride)


@dataclass(frozen=True, slots=True)
class ResolverOverrides:
    """Immutable, ordered set of overrides captured from a resolve call.

    Lookups return ``MISSING`` when nothing applies; the first matching
    override wins.
    """

    items: tuple[ResolverOverride, ...] = ()

    @classmethod
    def of(cls, overrides: Iterable[Any]) -> ResolverOverrides:
        items = tuple(overrides)
        for item in items:
            _validate_override(item)
        return cls(items)

    def __iter__(self) -> Iterator[ResolverOverride]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __bool__(self) -> bool:
        return bool(self.items)

    def find_parameter(self, name: str, building: tuple[Any, ...]) -> Any:
        for override in self._applicable(building):
            if isinstance(override, ParameterOverride) and override.name == name:
                return override.value
        return MISSING

    def find_dependency(self, dependency: Any, name: str | None, building: tuple[Any, ...]) -> Any:
        for override in self._applicable(building):
            if (
                isinstance(override, DependencyOverride)
                and override.dependency == dependency
                and override.name == name
            ):
                return override.value
        return MISSING

    def find_property(self, name: str, building: tuple[Any, ...]) -> Any:
        for override in self._applicable(building):
            if isinstance(override, PropertyOverride) and override.name == name:
                return override.value
        return MISSING

    def _applicable(self, building: tuple[Any, ...]) -> Iterator[ResolverOverride]:
        for item in self.items:
            yield from _unwrap(item, building)


@dataclass(frozen=True, slots=True)
class BuildContext:
    """What a factory hook installed with ``set_factory`` receives.

    Attributes:
        container: The container that materializes the registration for this
            call (the resolving container, or the owner for singletons).
        key: The requested key, closed when the registration is open-generic.
        overrides: The override snapshot of the resolve call.

    """

    container: IContainer
    key: ServiceKey
    overrides: ResolverOverrides


def _unwrap(item: ResolverOverride, building: tuple[Any, ...]) -> Iterator[ResolverOverride]:
    if not isinstance(item, TypeBasedOverride):
        yield item
        return
    if any(_same_type(item.target, candidate) for candidate in building):
        yield from _unwrap(item.override, building)


def _same_type(target: Any, candidate: Any) -> bool:
    if target == candidate:
        return True
    return (get_origin(candidate) or candidate) is target


def _validate_override(item: Any) -> None:
    if not isinstance(item, _OVERRIDE_TYPES):
        msg = (
            f"Resolve overrides must be ParameterOverride, DependencyOverride, "
            f"PropertyOverride or TypeBasedOverride instances, got {item!r}."
        )
        raise LazyWireInvalidOverrideError(msg)
    if isinstance(item, TypeBasedOverride):
        _validate_override(item.override)
