"""Tests for resolve-time overrides."""

from typing import Annotated

import pytest

from lazywire.container import Container
from lazywire.exceptions import LazyWireInvalidOverrideError
from lazywire.injection import InjectionProperty
from lazywire.markers import Component, Injected
from lazywire.overrides import (
    MISSING,
    DependencyOverride,
    ParameterOverride,
    PropertyOverride,
    ResolverOverrides,
    TypeBasedOverride,
)


class Clock:
    def now(self) -> str:
        return "real"


class FrozenClock(Clock):
    def now(self) -> str:
        return "frozen"


class Connection:
    def __init__(self, url: str = "default-url") -> None:
        self.url = url


class Repository:
    def __init__(self, connection: Connection, clock: Clock) -> None:
        self.connection = connection
        self.clock = clock


class Service:
    label: Injected[str]

    def __init__(self, repository: Repository, url: str = "service-url") -> None:
        self.repository = repository
        self.url = url


class Audited:
    def __init__(self, clock: Annotated[Clock, Component("audit")]) -> None:
        self.clock = clock


class Tagged:
    tag: str = "untagged"


class TestResolverOverrides:
    def test_of_rejects_other_objects(self) -> None:
        """Only override instances are accepted."""
        with pytest.raises(LazyWireInvalidOverrideError):
            ResolverOverrides.of(["timeout"])

    def test_of_rejects_invalid_nested_override(self) -> None:
        """Type-based overrides must wrap an override."""
        with pytest.raises(LazyWireInvalidOverrideError):
            ResolverOverrides.of([TypeBasedOverride(Connection, "timeout")])

    def test_first_matching_override_wins(self) -> None:
        """Earlier overrides take precedence."""
        overrides = ResolverOverrides.of(
            [ParameterOverride("url", "first"), ParameterOverride("url", "second")],
        )

        assert overrides.find_parameter("url", (Connection, Connection)) == "first"

    def test_missing_lookup_returns_sentinel(self) -> None:
        """Lookups that find nothing return MISSING."""
        overrides = ResolverOverrides.of([PropertyOverride("label", "x")])

        assert overrides.find_parameter("label", (Service, Service)) is MISSING
        assert overrides.find_dependency(Clock, None, (Service, Service)) is MISSING

    def test_type_based_override_applies_to_target_only(self) -> None:
        """Type-based overrides are unwrapped only while building their target."""
        overrides = ResolverOverrides.of(
            [TypeBasedOverride(Connection, ParameterOverride("url", "scoped"))],
        )

        assert overrides.find_parameter("url", (Connection, Connection)) == "scoped"
        assert overrides.find_parameter("url", (Service, Service)) is MISSING

    def test_dependency_override_matches_name(self) -> None:
        """Named dependency overrides only match the same name."""
        clock = FrozenClock()
        overrides = ResolverOverrides.of([DependencyOverride(Clock, clock, name="audit")])

        assert overrides.find_dependency(Clock, "audit", (Audited, Audited)) is clock
        assert overrides.find_dependency(Clock, None, (Audited, Audited)) is MISSING

    def test_snapshot_is_iterable_and_sized(self) -> None:
        """Snapshots can be replayed as a sequence."""
        items = [ParameterOverride("a", 1), PropertyOverride("b", 2)]
        overrides = ResolverOverrides.of(items)

        assert list(overrides) == items
        assert len(overrides) == 2
        assert overrides


class TestOverridesDuringResolution:
    def test_parameter_override_applies_to_every_type_built(self, container: Container) -> None:
        """Parameter overrides match by name throughout the call."""
        service = container.resolve(
            Service,
            ParameterOverride("url", "override"),
            PropertyOverride("label", "x"),
        )

        assert service.url == "override"
        assert service.repository.connection.url == "override"

    def test_type_based_override_limits_parameter_override(self, container: Container) -> None:
        """Wrapped parameter overrides only reach the target type."""
        service = container.resolve(
            Service,
            TypeBasedOverride(Connection, ParameterOverride("url", "connection-url")),
            PropertyOverride("label", "x"),
        )

        assert service.url == "service-url"
        assert service.repository.connection.url == "connection-url"

    def test_dependency_override_replaces_nested_dependency(self, container: Container) -> None:
        """Dependency overrides substitute nested dependencies."""
        clock = FrozenClock()

        service = container.resolve(
            Service,
            DependencyOverride(Clock, clock),
            PropertyOverride("label", "x"),
        )

        assert service.repository.clock is clock

    def test_dependency_override_does_not_replace_requested_service(
        self,
        container: Container,
    ) -> None:
        """The resolved key itself is still built from its registration."""
        clock = container.resolve(Clock, DependencyOverride(Clock, FrozenClock()))

        assert clock.now() == "real"

    def test_named_dependency_override(self, container: Container) -> None:
        """Component-named dependencies are matched by name."""
        clock = FrozenClock()

        audited = container.resolve(Audited, DependencyOverride(Clock, clock, name="audit"))

        assert audited.clock is clock

    def test_property_override_sets_injected_attribute(self, container: Container) -> None:
        """Property overrides supply injected attributes."""
        service = container.resolve(Service, PropertyOverride("label", "labelled"))

        assert service.label == "labelled"

    def test_property_override_wins_over_injection_property(self, container: Container) -> None:
        """Resolve-time values replace registration-time values."""
        container.register(Tagged, injection=[InjectionProperty("tag", "registered")])

        assert container.resolve(Tagged).tag == "registered"
        assert container.resolve(Tagged, PropertyOverride("tag", "resolved")).tag == "resolved"

    def test_invalid_override_is_rejected_by_resolve(self, container: Container) -> None:
        """resolve validates overrides before building anything."""
        with pytest.raises(LazyWireInvalidOverrideError):
            container.resolve(Clock, "not an override")
