from __future__ import annotations

import inspect
import logging
import threading
import weakref
from collections.abc import Callable, Iterable
from types import TracebackType
from typing import TYPE_CHECKING, Any, TypeVar, get_args, get_origin, overload

from lazywire.container_interface import ContainerExtension, IContainer
from lazywire.container_resolution_stack import format_resolution_chain, get_resolution_stack
from lazywire.defaults import DEFAULT_AUTOREGISTER_IGNORES, DEFAULT_AUTOREGISTER_LIFETIME
from lazywire.dependencies import DependenciesExtractor, ParameterInfo
from lazywire.exceptions import (
    LazyWireContainerClosedError,
    LazyWireCyclicResolutionError,
    LazyWireDependencyNotRegisteredError,
    LazyWireError,
    LazyWireInvalidRegistrationError,
    LazyWireResolutionFailedError,
)
from lazywire.injection import InjectionConstructor, InjectionMember, InjectionProperty
from lazywire.lifetimes import (
    InstanceCache,
    Lifetime,
    LifetimePolicy,
    SingletonLifetime,
    as_lifetime_policy,
)
from lazywire.markers import split_component
from lazywire.open_generics import (
    OpenGenericRegistry,
    bind_implementation_typevars,
    canonicalize_open_key,
    close_implementation,
    contains_typevar,
    substitute_typevars,
)
from lazywire.overrides import MISSING, BuildContext, ResolverOverride, ResolverOverrides
from lazywire.registry import Registration, ServiceKey

if TYPE_CHECKING:
    from typing_extensions import Self

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Container(IContainer):
    """Hierarchical, thread-safe dependency injection container.

    Registrations are looked up in this container first and then in each
    ancestor. Child containers created with ``create_child`` see everything
    their ancestors register, cache their own scoped instances, and share
    singletons with the container that owns the singleton registration.

    Args:
        parent: The container this one was created from, if any.
        register_if_missing: Build unregistered concrete classes on demand.
        autoregister_ignores: Types never registered on demand.
        autoregister_default_lifetime: Lifetime given to on-demand registrations.

    """

    def __init__(
        self,
        *,
        parent: Container | None = None,
        register_if_missing: bool = True,
        autoregister_ignores: set[type[Any]] | None = None,
        autoregister_default_lifetime: Lifetime = DEFAULT_AUTOREGISTER_LIFETIME,
    ) -> None:
        self._parent = parent
        self._register_if_missing = register_if_missing
        self._autoregister_ignores = (
            set(autoregister_ignores)
            if autoregister_ignores is not None
            else set(DEFAULT_AUTOREGISTER_IGNORES)
        )
        self._autoregister_default_lifetime = autoregister_default_lifetime

        self._registrations: dict[ServiceKey, Registration] = {}
        self._open_generics = OpenGenericRegistry()
        self._registrations_lock = threading.Lock()
        self._scoped_instances = InstanceCache()
        self._dependencies = (
            parent._dependencies if parent is not None else DependenciesExtractor()
        )
        self._children: weakref.WeakSet[Container] = weakref.WeakSet()
        self._closed = False

    @property
    def parent(self) -> Container | None:
        return self._parent

    @property
    def scoped_instances(self) -> InstanceCache:
        """Instances cached by scoped registrations resolved through this container."""
        return self._scoped_instances

    @property
    def closed(self) -> bool:
        return self._closed

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
        """Register an implementation for ``(provides, name)``.

        Args:
            provides: The key consumers resolve. A bare generic class, or an
                alias that still contains TypeVars, registers an open generic
                that serves every matching closed key.
            concrete: The class to build. Defaults to ``provides``.
            name: Optional registration name; named and unnamed registrations
                of the same type are independent.
            lifetime: A ``Lifetime`` or a policy object owned by this registration.
            injection: Explicit constructor arguments and property assignments.

        Returns:
            The container, to allow chaining.

        Raises:
            LazyWireInvalidRegistrationError: If ``concrete`` is not a concrete
                class, its constructor cannot be inspected, or ``injection``
                holds something other than injection members.

        """
        self._ensure_open()
        implementation = provides if concrete is None else concrete
        policy = as_lifetime_policy(lifetime)
        members = tuple(injection)
        for member in members:
            if not isinstance(member, InjectionMember):
                msg = f"Expected InjectionConstructor or InjectionProperty, got {member!r}."
                raise LazyWireInvalidRegistrationError(msg)
        self._validate_implementation(implementation)

        registration = Registration(
            key=ServiceKey(provides, name),
            lifetime=policy,
            concrete=implementation,
            injection=members,
            open_key=canonicalize_open_key(provides),
        )
        with self._registrations_lock:
            if registration.is_open_generic:
                self._open_generics.add(registration)
            else:
                self._registrations[registration.key] = registration

        logger.debug(
            "Registered %s -> %r with %s",
            registration.key,
            implementation,
            type(policy).__name__,
        )
        return self

    def add_instance(self, provides: Any, instance: Any, /, *, name: str | None = None) -> Self:
        """Register an already built object under ``(provides, name)``."""
        self._ensure_open()
        registration = Registration(
            key=ServiceKey(provides, name),
            lifetime=SingletonLifetime(),
            instance=instance,
            has_instance=True,
        )
        with self._registrations_lock:
            self._registrations[registration.key] = registration
        return self

    def set_factory(
        self,
        provides: Any,
        factory: Callable[[BuildContext], Any],
        /,
        *,
        name: str | None = None,
    ) -> None:
        """Replace how a registration held by this container is built.

        The registration keeps its lifetime policy; only the build step
        changes. ``factory`` is called with a ``BuildContext`` whenever the
        policy needs a new instance.

        Raises:
            LazyWireInvalidRegistrationError: If this container (not an
                ancestor) holds no type registration for the key.

        """
        self._ensure_open()
        key = ServiceKey(provides, name)
        with self._registrations_lock:
            open_key = canonicalize_open_key(provides)
            if open_key is not None:
                registration = self._open_generics.get(open_key, name)
            else:
                registration = self._registrations.get(key)

            if registration is None or registration.has_instance:
                msg = f"Cannot set a factory for {key}: this container holds no type registration for it."
                raise LazyWireInvalidRegistrationError(msg)
            registration.factory = factory

    @overload
    def resolve(
        self,
        provides: type[T],
        /,
        *overrides: ResolverOverride,
        name: str | None = None,
    ) -> T: ...

    @overload
    def resolve(
        self,
        provides: Any,
        /,
        *overrides: ResolverOverride,
        name: str | None = None,
    ) -> Any: ...

    def resolve(
        self,
        provides: Any,
        /,
        *overrides: ResolverOverride,
        name: str | None = None,
    ) -> Any:
        """Resolve ``(provides, name)``.

        Examples:
            .. code-block:: python

                service = container.resolve(
                    IService,
                    ParameterOverride("timeout", 5),
                    DependencyOverride(IClock, FrozenClock()),
                )

        Raises:
            LazyWireDependencyNotRegisteredError: If no registration matches.
            LazyWireResolutionFailedError: If building the service or a nested
                dependency fails.
            LazyWireCyclicResolutionError: If the key requires itself.

        """
        self._ensure_open()
        return self._resolve(ServiceKey(provides, name), ResolverOverrides.of(overrides))

    def is_registered(self, provides: Any, /, *, name: str | None = None) -> bool:
        key = ServiceKey(provides, name)
        container: Container | None = self
        while container is not None:
            if container._find_own(key) is not None:
                return True
            container = container._parent
        return False

    def create_child(self) -> Container:
        self._ensure_open()
        child = Container(
            parent=self,
            register_if_missing=self._register_if_missing,
            autoregister_ignores=self._autoregister_ignores,
            autoregister_default_lifetime=self._autoregister_default_lifetime,
        )
        self._children.add(child)
        logger.debug("Created child container %#x of %#x", id(child), id(self))
        return child

    def add_extension(self, extension: ContainerExtension) -> Self:
        self._ensure_open()
        extension.initialize(self)
        return self

    def close(self) -> None:
        """Close child containers and drop every instance cached by this container."""
        if self._closed:
            return
        self._closed = True

        for child in list(self._children):
            child.close()

        self._scoped_instances.clear()
        with self._registrations_lock:
            registrations = [*self._registrations.values(), *self._open_generics.registrations()]
        for registration in registrations:
            registration.lifetime.clear()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def _resolve(self, key: ServiceKey, overrides: ResolverOverrides) -> Any:
        stack = get_resolution_stack()
        if key in stack:
            msg = f"Circular dependency detected: {format_resolution_chain(stack, key)}"
            raise LazyWireCyclicResolutionError(msg)

        stack.append(key)
        try:
            owner, registration, typevar_map = self._lookup(key)
            if registration.has_instance:
                return registration.instance
            return registration.lifetime.get_or_create(
                key=key,
                owner=owner,
                resolver=self,
                create=lambda container: container._build(
                    registration,
                    key,
                    typevar_map,
                    overrides,
                ),
            )
        finally:
            stack.pop()

    def _lookup(self, key: ServiceKey) -> tuple[Container, Registration, dict[TypeVar, Any]]:
        container: Container | None = self
        while container is not None:
            found = container._find_own(key)
            if found is not None:
                registration, typevar_map = found
                return container, registration, typevar_map
            container = container._parent

        registration = self._autoregister(key)
        if registration is None:
            msg = f"No registration found for {key}."
            raise LazyWireDependencyNotRegisteredError(msg, key)
        return self, registration, {}

    def _find_own(self, key: ServiceKey) -> tuple[Registration, dict[TypeVar, Any]] | None:
        registration = self._registrations.get(key)
        if registration is not None:
            return registration, {}
        if self._open_generics:
            match = self._open_generics.find_best_match(key.provides, key.name)
            if match is not None:
                return match.registration, match.typevar_map
        return None

    def _autoregister(self, key: ServiceKey) -> Registration | None:
        if not self._register_if_missing or key.name is not None:
            return None

        origin = get_origin(key.provides) or key.provides
        if (
            not isinstance(origin, type)
            or origin in self._autoregister_ignores
            or inspect.isabstract(origin)
            or getattr(origin, "_is_protocol", False)
        ):
            return None

        self._dependencies.get_parameters(origin)
        registration = Registration(
            key=key,
            lifetime=as_lifetime_policy(self._autoregister_default_lifetime),
            concrete=key.provides,
        )
        with self._registrations_lock:
            registration = self._registrations.setdefault(key, registration)
        logger.debug("Auto-registered %s", key)
        return registration

    def _build(
        self,
        registration: Registration,
        key: ServiceKey,
        typevar_map: dict[TypeVar, Any],
        overrides: ResolverOverrides,
    ) -> Any:
        if registration.factory is not None:
            return registration.factory(BuildContext(container=self, key=key, overrides=overrides))

        implementation, mapping = self._bind_implementation(registration, key, typevar_map)
        origin = get_origin(implementation) or implementation
        building = (origin, get_origin(key.provides) or key.provides)

        args, kwargs = self._constructor_arguments(registration, origin, mapping, overrides, building)
        try:
            instance = implementation(*args, **kwargs)
        except LazyWireError:
            raise
        except Exception as e:
            msg = f"Failed to build {key} with {implementation!r}: {e}"
            raise LazyWireResolutionFailedError(msg) from e

        self._inject_properties(instance, registration, origin, mapping, overrides, building)
        return instance

    def _bind_implementation(
        self,
        registration: Registration,
        key: ServiceKey,
        typevar_map: dict[TypeVar, Any],
    ) -> tuple[Any, dict[TypeVar, Any]]:
        concrete = registration.concrete
        mapping = dict(typevar_map)

        concrete_origin = get_origin(concrete)
        if concrete_origin is not None:
            mapping.update(zip(getattr(concrete_origin, "__parameters__", ()), get_args(concrete)))
            return concrete, mapping

        if getattr(concrete, "__parameters__", ()) and get_origin(key.provides) is not None:
            mapping.update(bind_implementation_typevars(concrete, key.provides))
            return close_implementation(concrete, mapping), mapping

        return concrete, mapping

    def _constructor_arguments(
        self,
        registration: Registration,
        origin: type,
        mapping: dict[TypeVar, Any],
        overrides: ResolverOverrides,
        building: tuple[Any, ...],
    ) -> tuple[list[Any], dict[str, Any]]:
        for member in registration.injection:
            if isinstance(member, InjectionConstructor):
                return list(member.values), {}

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for parameter in self._dependencies.get_parameters(origin):
            if parameter.is_variadic:
                continue
            value = self._parameter_value(parameter, origin, mapping, overrides, building)
            if value is MISSING:
                if parameter.is_positional_only:
                    args.append(parameter.default)
                continue
            if parameter.is_positional_only:
                args.append(value)
            else:
                kwargs[parameter.name] = value
        return args, kwargs

    def _parameter_value(
        self,
        parameter: ParameterInfo,
        origin: type,
        mapping: dict[TypeVar, Any],
        overrides: ResolverOverrides,
        building: tuple[Any, ...],
    ) -> Any:
        value = overrides.find_parameter(parameter.name, building)
        if value is not MISSING:
            return value

        if not parameter.has_annotation:
            if parameter.has_default:
                return MISSING
            msg = (
                f"Parameter '{parameter.name}' of {origin!r} has no type annotation and no "
                "default value; annotate it or supply a ParameterOverride."
            )
            raise LazyWireResolutionFailedError(msg)

        annotation = parameter.annotation
        if mapping and contains_typevar(annotation):
            closed = substitute_typevars(annotation, mapping=mapping)
            # type[T] receives the bound generic argument itself
            if get_origin(annotation) is type and not contains_typevar(closed):
                return get_args(closed)[0]
            annotation = closed

        return self._dependency_value(
            annotation,
            overrides,
            building,
            has_default=parameter.has_default,
        )

    def _dependency_value(
        self,
        annotation: Any,
        overrides: ResolverOverrides,
        building: tuple[Any, ...],
        *,
        has_default: bool,
    ) -> Any:
        provides, name = split_component(annotation)
        value = overrides.find_dependency(provides, name, building)
        if value is not MISSING:
            return value
        if has_default and not self.is_registered(provides, name=name):
            return MISSING
        return self._resolve(ServiceKey(provides, name), overrides)

    def _inject_properties(  # noqa: PLR0913
        self,
        instance: Any,
        registration: Registration,
        origin: type,
        mapping: dict[TypeVar, Any],
        overrides: ResolverOverrides,
        building: tuple[Any, ...],
    ) -> None:
        for attribute, annotation in self._dependencies.get_injected_properties(origin).items():
            value = overrides.find_property(attribute, building)
            if value is MISSING:
                value = self._dependency_value(
                    substitute_typevars(annotation, mapping=mapping),
                    overrides,
                    building,
                    has_default=hasattr(origin, attribute),
                )
                if value is MISSING:
                    continue
            setattr(instance, attribute, value)

        for member in registration.injection:
            if not isinstance(member, InjectionProperty):
                continue
            value = overrides.find_property(member.name, building)
            if value is MISSING and member.has_value:
                value = member.value
            elif value is MISSING:
                hints = self._dependencies.get_class_hints(origin)
                if member.name not in hints:
                    msg = (
                        f"Cannot inject property '{member.name}' of {origin!r}: it has no class "
                        "annotation; pass a value to InjectionProperty."
                    )
                    raise LazyWireResolutionFailedError(msg)
                value = self._dependency_value(
                    substitute_typevars(hints[member.name], mapping=mapping),
                    overrides,
                    building,
                    has_default=False,
                )
            setattr(instance, member.name, value)

    def _validate_implementation(self, implementation: Any) -> None:
        origin = get_origin(implementation) or implementation
        if not isinstance(origin, type):
            msg = f"Cannot register {implementation!r}: expected a class or a generic alias of one."
            raise LazyWireInvalidRegistrationError(msg)
        if inspect.isabstract(origin) or getattr(origin, "_is_protocol", False):
            msg = (
                f"Cannot register {implementation!r} as an implementation: it is abstract. "
                "Register a concrete class for it instead."
            )
            raise LazyWireInvalidRegistrationError(msg)
        self._dependencies.get_parameters(origin)

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "The container is closed."
            raise LazyWireContainerClosedError(msg)
