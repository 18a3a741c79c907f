from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, TypeVar, overload

from lazywire.lifetimes import Lifetime, LifetimePolicy

if TYPE_CHECKING:
    from typing_extensions import Self

    from lazywire.injection import InjectionMember
    from lazywire.overrides import BuildContext, ResolverOverride

T = TypeVar("T")


class IContainer(ABC):
    """Capabilities the lazy-proxy engine needs from a container.

    ``register`` and ``resolve`` are the usual table operations, ``create_child``
    opens a nested scope, and ``set_factory`` is the extension hook that swaps
    the callable materializing one registration. Factories installed with
    ``set_factory`` receive a ``BuildContext`` carrying the resolving container,
    the requested key and the resolve call's overrides.
    """

    @abstractmethod
    def register(
        self,
        provides: Any,
        concrete: Any | None = None,
        /,
        *,
        name: str | None = None,
        lifetime: Lifetime | LifetimePolicy = Lifetime.TRANSIENT,
        injection: Iterable[InjectionMember] = (),
    ) -> Self:
        """Register ``concrete`` (or ``provides`` itself) under ``(provides, name)``."""

    @abstractmethod
    def add_instance(self, provides: Any, instance: Any, /, *, name: str | None = None) -> Self:
        """Register an already built object."""

    @abstractmethod
    def set_factory(
        self,
        provides: Any,
        factory: Callable[[BuildContext], Any],
        /,
        *,
        name: str | None = None,
    ) -> None:
        """Replace how the registration ``(provides, name)`` of this container is built."""

    @overload
    @abstractmethod
    def resolve(
        self,
        provides: type[T],
        /,
        *overrides: ResolverOverride,
        name: str | None = None,
    ) -> T: ...

    @overload
    @abstractmethod
    def resolve(
        self,
        provides: Any,
        /,
        *overrides: ResolverOverride,
        name: str | None = None,
    ) -> Any: ...

    @abstractmethod
    def resolve(
        self,
        provides: Any,
        /,
        *overrides: ResolverOverride,
        name: str | None = None,
    ) -> Any:
        """Resolve ``(provides, name)`` applying ``overrides`` to every nested build."""

    @abstractmethod
    def is_registered(self, provides: Any, /, *, name: str | None = None) -> bool:
        """Return whether this container or an ancestor holds a registration for the key."""

    @abstractmethod
    def create_child(self) -> IContainer:
        """Create a child container that sees every registration of its ancestors."""

    @abstractmethod
    def add_extension(self, extension: ContainerExtension) -> Self:
        """Install ``extension`` into this container."""

    @abstractmethod
    def close(self) -> None:
        """Drop cached instances and reject further resolution."""


class ContainerExtension(ABC):
    """A unit of registrations installed with ``IContainer.add_extension``."""

    @abstractmethod
    def initialize(self, container: IContainer) -> None:
        """Apply the extension's registrations to ``container``."""
