from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable
from enum import Enum
from typing import TYPE_CHECKING, Any

from lazywire.exceptions import LazyWireInvalidRegistrationError

if TYPE_CHECKING:
    from lazywire.container import Container
    from lazywire.registry import ServiceKey

_MISSING: Any = object()


class Lifetime(str, Enum):
    """Instance reuse rule for a registration."""

    TRANSIENT = "transient"
    """A new instance on every resolve call."""

    SCOPED = "scoped"
    """One instance per resolving container; child containers get their own."""

    SINGLETON = "singleton"
    """One instance per registration, shared by the owning container and its children."""


class InstanceCache:
    """Thread-safe map of built instances with per-key creation locks."""

    def __init__(self) -> None:
        self._instances: dict[Hashable, Any] = {}
        self._locks: dict[Hashable, threading.Lock] = {}
        self._locks_lock = threading.Lock()

    def get_or_create(self, key: Hashable, create: Callable[[], Any]) -> Any:
        instance = self._instances.get(key, _MISSING)
        if instance is not _MISSING:
            return instance

        with self._get_lock(key):
            # Double-check: another thread may have filled the slot while we waited
            instance = self._instances.get(key, _MISSING)
            if instance is not _MISSING:
                return instance
            instance = create()
            self._instances[key] = instance
            return instance

    def clear(self) -> None:
        with self._locks_lock:
            self._instances.clear()
            self._locks.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._instances

    def _get_lock(self, key: Hashable) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is not None:
            return lock
        with self._locks_lock:
            return self._locks.setdefault(key, threading.Lock())


class LifetimePolicy(ABC):
    """Decide whether a resolve call reuses an instance or builds a new one.

    Each registration owns its own policy object, so two registrations never
    share cached instances even when they use the same lifetime.
    """

    lifetime: Lifetime

    @abstractmethod
    def get_or_create(
        self,
        *,
        key: ServiceKey,
        owner: Container,
        resolver: Container,
        create: Callable[[Container], Any],
    ) -> Any:
        """Return the instance for ``key``.

        Args:
            key: The requested (closed) key.
            owner: The container holding the registration.
            resolver: The container the resolve call was issued on.
            create: Builds a new instance in the context of the given container.

        """

    def clear(self) -> None:
        """Drop instances cached by this policy."""


class TransientLifetime(LifetimePolicy):
    lifetime = Lifetime.TRANSIENT

    def get_or_create(
        self,
        *,
        key: ServiceKey,
        owner: Container,
        resolver: Container,
        create: Callable[[Container], Any],
    ) -> Any:
        return create(resolver)


class ScopedLifetime(LifetimePolicy):
    lifetime = Lifetime.SCOPED

    def get_or_create(
        self,
        *,
        key: ServiceKey,
        owner: Container,
        resolver: Container,
        create: Callable[[Container], Any],
    ) -> Any:
        return resolver.scoped_instances.get_or_create((self, key), lambda: create(resolver))


class SingletonLifetime(LifetimePolicy):
    lifetime = Lifetime.SINGLETON

    def __init__(self) -> None:
        self._instances = InstanceCache()

    def get_or_create(
        self,
        *,
        key: ServiceKey,
        owner: Container,
        resolver: Container,
        create: Callable[[Container], Any],
    ) -> Any:
        # Built against the owner so children never leak their registrations into it
        return self._instances.get_or_create(key, lambda: create(owner))

    def clear(self) -> None:
        self._instances.clear()


LifetimePolicyFactory = Callable[[], LifetimePolicy]

_POLICY_TYPES: dict[Lifetime, type[LifetimePolicy]] = {
    Lifetime.TRANSIENT: TransientLifetime,
    Lifetime.SCOPED: ScopedLifetime,
    Lifetime.SINGLETON: SingletonLifetime,
}


def lifetime_policy_factory(lifetime: Lifetime | LifetimePolicyFactory) -> LifetimePolicyFactory:
    """Normalize a ``Lifetime`` member or a zero-argument policy factory.

    Every call of the returned factory produces an independent policy object.
    """
    if isinstance(lifetime, Lifetime):
        return _POLICY_TYPES[lifetime]
    if isinstance(lifetime, LifetimePolicy):
        msg = (
            f"Expected a Lifetime or a zero-argument policy factory, got the policy instance "
            f"{lifetime!r}. Pass its class (or a lambda) so each registration gets its own."
        )
        raise LazyWireInvalidRegistrationError(msg)
    if not callable(lifetime):
        msg = f"Expected a Lifetime or a zero-argument policy factory, got {lifetime!r}."
        raise LazyWireInvalidRegistrationError(msg)
    return lifetime


def as_lifetime_policy(lifetime: Lifetime | LifetimePolicy) -> LifetimePolicy:
    if isinstance(lifetime, LifetimePolicy):
        return lifetime
    if isinstance(lifetime, Lifetime):
        return _POLICY_TYPES[lifetime]()
    msg = f"Expected a Lifetime or a LifetimePolicy instance, got {lifetime!r}."
    raise LazyWireInvalidRegistrationError(msg)
