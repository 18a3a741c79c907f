"""Tests for Container registration and resolution."""

from typing import Annotated, Any, Generic, Protocol, TypeVar

import pytest

from lazywire.container import Container
from lazywire.exceptions import (
    LazyWireContainerClosedError,
    LazyWireCyclicResolutionError,
    LazyWireDependencyNotRegisteredError,
    LazyWireInvalidRegistrationError,
    LazyWireResolutionFailedError,
)
from lazywire.injection import InjectionConstructor, InjectionProperty
from lazywire.lifetimes import Lifetime, TransientLifetime
from lazywire.markers import Component, Injected
from lazywire.overrides import BuildContext
from lazywire.registry import ServiceKey

T = TypeVar("T")


class ServiceA:
    pass


class ServiceB:
    def __init__(self, a: ServiceA) -> None:
        self.a = a


class IRepository(Protocol):
    def find(self) -> str: ...


class SqlRepository:
    def find(self) -> str:
        return "sql"


class MemoryRepository:
    def find(self) -> str:
        return "memory"


class Settings:
    def __init__(self, retries: int = 3) -> None:
        self.retries = retries


class Database:
    def __init__(self, url: str) -> None:
        self.url = url


class ReportJob:
    def __init__(
        self,
        primary: Annotated[Database, Component("primary")],
        replica: Annotated[Database, Component("replica")],
    ) -> None:
        self.primary = primary
        self.replica = replica


class Mailer:
    sender: Injected[ServiceA]
    fallback: Injected[Settings]


class Holder:
    a: ServiceA
    level: str = "info"


class Untyped:
    def __init__(self, value) -> None:  # noqa: ANN001
        self.value = value


class PositionalOnly:
    def __init__(self, a: ServiceA, /) -> None:
        self.a = a


class Exploding:
    def __init__(self) -> None:
        msg = "boom"
        raise RuntimeError(msg)


class CycleA:
    def __init__(self, b: "CycleB") -> None:
        self.b = b


class CycleB:
    def __init__(self, a: CycleA) -> None:
        self.a = a


class User:
    pass


class Repository(Generic[T]):
    def __init__(self, model: type[T]) -> None:
        self.model = model


class TestRegistration:
    def test_register_and_resolve_interface(self, container: Container) -> None:
        """A registered implementation is built for its contract."""
        container.register(IRepository, SqlRepository)

        assert container.resolve(IRepository).find() == "sql"

    def test_register_returns_container(self, container: Container) -> None:
        """register allows chaining."""
        assert container.register(ServiceA) is container

    def test_last_registration_wins(self, container: Container) -> None:
        """Registering the same key again replaces the earlier registration."""
        container.register(IRepository, SqlRepository)
        container.register(IRepository, MemoryRepository)

        assert container.resolve(IRepository).find() == "memory"

    def test_named_and_unnamed_registrations_are_independent(self, container: Container) -> None:
        """Names are part of the key."""
        container.register(IRepository, SqlRepository)
        container.register(IRepository, MemoryRepository, name="memory")

        assert container.resolve(IRepository).find() == "sql"
        assert container.resolve(IRepository, name="memory").find() == "memory"
        assert not container.is_registered(IRepository, name="other")

    def test_abstract_implementation_is_rejected(self, container: Container) -> None:
        """Protocols and ABCs cannot be implementations."""
        with pytest.raises(LazyWireInvalidRegistrationError, match="abstract"):
            container.register(IRepository)

    def test_non_class_implementation_is_rejected(self, container: Container) -> None:
        """Implementations must be classes."""
        with pytest.raises(LazyWireInvalidRegistrationError):
            container.register(IRepository, 42)

    def test_invalid_injection_member_is_rejected(self, container: Container) -> None:
        """Only injection members are accepted."""
        with pytest.raises(LazyWireInvalidRegistrationError, match="InjectionConstructor"):
            container.register(ServiceA, injection=["not a member"])

    def test_policy_instance_is_accepted(self, container: Container) -> None:
        """Eager registrations take a policy object directly."""
        container.register(ServiceA, lifetime=TransientLifetime())

        assert container.resolve(ServiceA) is not container.resolve(ServiceA)

    def test_add_instance(self, container: Container) -> None:
        """Instances are returned as they are."""
        instance = SqlRepository()
        container.add_instance(IRepository, instance)

        assert container.resolve(IRepository) is instance


class TestAutoRegistration:
    def test_concrete_class_is_built_on_demand(self, container: Container) -> None:
        """Unregistered concrete classes are built with their dependencies."""
        b = container.resolve(ServiceB)

        assert isinstance(b.a, ServiceA)

    def test_disabled_autoregistration_raises(self, container_no_autoregister: Container) -> None:
        """Without auto-registration unknown keys fail with the missing key attached."""
        with pytest.raises(LazyWireDependencyNotRegisteredError) as exc_info:
            container_no_autoregister.resolve(ServiceA)

        assert exc_info.value.service_key == ServiceKey(ServiceA)

    def test_ignored_types_are_not_autoregistered(self, container: Container) -> None:
        """Builtins are never built on demand."""
        with pytest.raises(LazyWireDependencyNotRegisteredError):
            container.resolve(str)

    def test_protocols_are_not_autoregistered(self, container: Container) -> None:
        """Contracts need an explicit registration."""
        with pytest.raises(LazyWireDependencyNotRegisteredError):
            container.resolve(IRepository)

    def test_named_keys_are_not_autoregistered(self, container: Container) -> None:
        """Only unnamed keys are registered on demand."""
        with pytest.raises(LazyWireDependencyNotRegisteredError):
            container.resolve(ServiceA, name="named")

    def test_default_lifetime_is_configurable(self, container_singleton: Container) -> None:
        """Auto-registrations use the configured default lifetime."""
        assert container_singleton.resolve(ServiceA) is container_singleton.resolve(ServiceA)


class TestDependencies:
    def test_component_selects_named_registration(self, container: Container) -> None:
        """Component metadata resolves named registrations."""
        container.add_instance(Database, Database("primary-url"), name="primary")
        container.add_instance(Database, Database("replica-url"), name="replica")

        job = container.resolve(ReportJob)

        assert job.primary.url == "primary-url"
        assert job.replica.url == "replica-url"

    def test_default_is_used_when_dependency_is_not_registered(
        self,
        container: Container,
    ) -> None:
        """Parameters with defaults fall back to them."""
        assert container.resolve(Settings).retries == 3

    def test_registered_dependency_wins_over_default(self, container: Container) -> None:
        """A registered value replaces the default."""
        container.add_instance(int, 5)

        assert container.resolve(Settings).retries == 5

    def test_injected_properties_are_assigned(self, container: Container) -> None:
        """Injected attributes are resolved after construction."""
        mailer = container.resolve(Mailer)

        assert isinstance(mailer.sender, ServiceA)
        assert mailer.fallback.retries == 3

    def test_injection_property_with_value(self, container: Container) -> None:
        """InjectionProperty assigns a fixed value."""
        container.register(Holder, injection=[InjectionProperty("level", "debug")])

        assert container.resolve(Holder).level == "debug"

    def test_injection_property_resolves_annotation(self, container: Container) -> None:
        """InjectionProperty without a value resolves the class annotation."""
        container.register(Holder, injection=[InjectionProperty("a")])

        holder = container.resolve(Holder)

        assert isinstance(holder.a, ServiceA)
        assert holder.level == "info"

    def test_injection_property_without_annotation_fails(self, container: Container) -> None:
        """Unannotated properties need an explicit value."""
        container.register(Holder, injection=[InjectionProperty("missing")])

        with pytest.raises(LazyWireResolutionFailedError, match="no class annotation"):
            container.resolve(Holder)

    def test_injection_constructor_replaces_inference(self, container: Container) -> None:
        """InjectionConstructor values are passed positionally."""
        a = ServiceA()
        container.register(ServiceB, injection=[InjectionConstructor(a)])

        assert container.resolve(ServiceB).a is a

    def test_untyped_parameter_without_default_fails(self, container: Container) -> None:
        """Parameters without annotation or default cannot be resolved."""
        with pytest.raises(LazyWireResolutionFailedError, match="no type annotation"):
            container.resolve(Untyped)

    def test_positional_only_parameters(self, container: Container) -> None:
        """Positional-only parameters are passed positionally."""
        assert isinstance(container.resolve(PositionalOnly).a, ServiceA)

    def test_constructor_errors_are_wrapped(self, container: Container) -> None:
        """Errors raised by constructors become resolution failures."""
        with pytest.raises(LazyWireResolutionFailedError, match="boom") as exc_info:
            container.resolve(Exploding)

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_cyclic_dependency_is_detected(self, container: Container) -> None:
        """Cycles report the full chain."""
        with pytest.raises(LazyWireCyclicResolutionError, match="CycleA -> CycleB -> CycleA"):
            container.resolve(CycleA)


class TestLifetimes:
    def test_transient_builds_new_instances(self, container: Container) -> None:
        """Transient registrations build on every resolve."""
        container.register(ServiceA, lifetime=Lifetime.TRANSIENT)

        assert container.resolve(ServiceA) is not container.resolve(ServiceA)

    def test_singleton_is_shared_with_children(self, container: Container) -> None:
        """Singletons are shared by the owner and its children."""
        container.register(ServiceA, lifetime=Lifetime.SINGLETON)
        child = container.create_child()

        assert child.resolve(ServiceA) is container.resolve(ServiceA)

    def test_scoped_is_per_container(self, container: Container) -> None:
        """Scoped registrations cache one instance per resolving container."""
        container.register(ServiceA, lifetime=Lifetime.SCOPED)
        child = container.create_child()

        assert container.resolve(ServiceA) is container.resolve(ServiceA)
        assert child.resolve(ServiceA) is child.resolve(ServiceA)
        assert child.resolve(ServiceA) is not container.resolve(ServiceA)

    def test_singleton_dependencies_come_from_owner(self, container: Container) -> None:
        """Singletons never capture registrations of the child that resolved them first."""
        container.register(ServiceB, lifetime=Lifetime.SINGLETON)
        child = container.create_child()
        child_instance = ServiceA()
        child.add_instance(ServiceA, child_instance)

        assert child.resolve(ServiceB).a is not child_instance

    def test_transient_dependencies_come_from_resolving_container(
        self,
        container: Container,
    ) -> None:
        """Transient registrations see the resolving container's registrations."""
        container.register(ServiceB)
        child = container.create_child()
        child_instance = ServiceA()
        child.add_instance(ServiceA, child_instance)

        assert child.resolve(ServiceB).a is child_instance

    def test_is_registered_walks_ancestors(self, container: Container) -> None:
        """Children see registrations of their ancestors."""
        container.register(IRepository, SqlRepository)
        grandchild = container.create_child().create_child()

        assert grandchild.is_registered(IRepository)
        assert grandchild.resolve(IRepository).find() == "sql"


class TestOpenGenerics:
    def test_open_generic_is_closed_per_request(self, container: Container) -> None:
        """Bare generic registrations serve every closed key."""
        container.register(Repository)

        repository = container.resolve(Repository[User])

        assert isinstance(repository, Repository)
        assert repository.model is User
        assert container.resolve(Repository[ServiceA]).model is ServiceA

    def test_closed_registration_wins_over_open(self, container: Container) -> None:
        """Exact registrations are preferred to open templates."""
        users = Repository(User)
        container.register(Repository)
        container.add_instance(Repository[User], users)

        assert container.resolve(Repository[User]) is users
        assert container.resolve(Repository[ServiceA]) is not users


class TestFactories:
    def test_set_factory_replaces_build_step(self, container: Container) -> None:
        """Factories receive the build context and keep the lifetime."""
        contexts: list[BuildContext] = []

        def factory(context: BuildContext) -> Any:
            contexts.append(context)
            return SqlRepository()

        container.register(IRepository, SqlRepository, lifetime=Lifetime.SINGLETON)
        container.set_factory(IRepository, factory)

        first = container.resolve(IRepository)

        assert container.resolve(IRepository) is first
        assert len(contexts) == 1
        assert contexts[0].key == ServiceKey(IRepository)
        assert contexts[0].container is container
        assert not contexts[0].overrides

    def test_set_factory_requires_own_registration(self, container: Container) -> None:
        """Factories can only be set on registrations held by the container itself."""
        container.register(IRepository, SqlRepository)
        child = container.create_child()

        with pytest.raises(LazyWireInvalidRegistrationError):
            child.set_factory(IRepository, lambda _context: None)
        with pytest.raises(LazyWireInvalidRegistrationError):
            container.set_factory(ServiceA, lambda _context: None)

    def test_set_factory_rejects_instances(self, container: Container) -> None:
        """Instance registrations have no build step."""
        container.add_instance(ServiceA, ServiceA())

        with pytest.raises(LazyWireInvalidRegistrationError):
            container.set_factory(ServiceA, lambda _context: None)


class TestClose:
    def test_closed_container_rejects_calls(self, container: Container) -> None:
        """Closed containers raise on use."""
        container.close()

        assert container.closed
        with pytest.raises(LazyWireContainerClosedError):
            container.resolve(ServiceA)
        with pytest.raises(LazyWireContainerClosedError):
            container.register(ServiceA)

    def test_close_closes_children(self, container: Container) -> None:
        """Closing a container closes the children created from it."""
        child = container.create_child()

        container.close()

        assert child.closed

    def test_context_manager_closes(self) -> None:
        """Leaving the with block closes the container."""
        with Container() as container:
            container.resolve(ServiceA)

        assert container.closed
