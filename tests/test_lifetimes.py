"""Tests for lifetime policies."""

import threading

import pytest

from lazywire.exceptions import LazyWireInvalidRegistrationError
from lazywire.lifetimes import (
    InstanceCache,
    Lifetime,
    ScopedLifetime,
    SingletonLifetime,
    TransientLifetime,
    as_lifetime_policy,
    lifetime_policy_factory,
)


class TestLifetimePolicyFactory:
    @pytest.mark.parametrize(
        ("lifetime", "policy_type"),
        [
            (Lifetime.TRANSIENT, TransientLifetime),
            (Lifetime.SCOPED, ScopedLifetime),
            (Lifetime.SINGLETON, SingletonLifetime),
        ],
    )
    def test_lifetime_maps_to_policy_class(self, lifetime: Lifetime, policy_type: type) -> None:
        """Lifetime members produce fresh policies of the matching class."""
        factory = lifetime_policy_factory(lifetime)

        first = factory()
        second = factory()

        assert isinstance(first, policy_type)
        assert first is not second

    def test_callable_is_returned_unchanged(self) -> None:
        """Custom policy factories are used as they are."""

        def factory() -> SingletonLifetime:
            return SingletonLifetime()

        assert lifetime_policy_factory(factory) is factory

    def test_policy_instance_is_rejected(self) -> None:
        """Shared policy objects are refused."""
        with pytest.raises(LazyWireInvalidRegistrationError):
            lifetime_policy_factory(SingletonLifetime())

    def test_non_callable_is_rejected(self) -> None:
        """Anything else is refused."""
        with pytest.raises(LazyWireInvalidRegistrationError):
            lifetime_policy_factory("singleton-ish")  # type: ignore[arg-type]

    def test_as_lifetime_policy(self) -> None:
        """Eager registrations accept members and policy objects."""
        policy = ScopedLifetime()

        assert as_lifetime_policy(policy) is policy
        assert isinstance(as_lifetime_policy(Lifetime.SINGLETON), SingletonLifetime)
        with pytest.raises(LazyWireInvalidRegistrationError):
            as_lifetime_policy("transient-ish")  # type: ignore[arg-type]


class TestInstanceCache:
    def test_concurrent_get_or_create_builds_once(self) -> None:
        """Concurrent callers share one instance per key."""
        cache = InstanceCache()
        calls: list[int] = []
        results: list[object] = []
        barrier = threading.Barrier(10)

        def create() -> object:
            calls.append(1)
            return object()

        def worker() -> None:
            barrier.wait()
            results.append(cache.get_or_create("key", create))

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert all(r is results[0] for r in results)
        assert "key" in cache

        cache.clear()
        assert "key" not in cache
