from lazywire.container import Container
from lazywire.container_interface import ContainerExtension, IContainer
from lazywire.deferred import Deferred, DeferredState
from lazywire.exceptions import (
    LazyWireContainerClosedError,
    LazyWireContractShapeError,
    LazyWireCyclicResolutionError,
    LazyWireDependencyNotRegisteredError,
    LazyWireError,
    LazyWireInvalidGenericTypeArgumentError,
    LazyWireInvalidOverrideError,
    LazyWireInvalidRegistrationError,
    LazyWireResolutionFailedError,
    LazyWireUnsupportedContractError,
)
from lazywire.injection import InjectionConstructor, InjectionProperty
from lazywire.lazy import LazyProxyExtension, register_lazy
from lazywire.lifetimes import (
    Lifetime,
    LifetimePolicy,
    ScopedLifetime,
    SingletonLifetime,
    TransientLifetime,
)
from lazywire.markers import Component, Injected
from lazywire.overrides import (
    BuildContext,
    DependencyOverride,
    ParameterOverride,
    PropertyOverride,
    TypeBasedOverride,
)
from lazywire.proxies.manager import ProxiesManager, is_lazy_proxy, is_realized, proxy_state

__all__ = [
    "BuildContext",
    "Component",
    "Container",
    "ContainerExtension",
    "Deferred",
    "DeferredState",
    "DependencyOverride",
    "IContainer",
    "Injected",
    "InjectionConstructor",
    "InjectionProperty",
    "LazyProxyExtension",
    "LazyWireContainerClosedError",
    "LazyWireContractShapeError",
    "LazyWireCyclicResolutionError",
    "LazyWireDependencyNotRegisteredError",
    "LazyWireError",
    "LazyWireInvalidGenericTypeArgumentError",
    "LazyWireInvalidOverrideError",
    "LazyWireInvalidRegistrationError",
    "LazyWireResolutionFailedError",
    "LazyWireUnsupportedContractError",
    "Lifetime",
    "LifetimePolicy",
    "ParameterOverride",
    "PropertyOverride",
    "ProxiesManager",
    "ScopedLifetime",
    "SingletonLifetime",
    "TransientLifetime",
    "TypeBasedOverride",
    "is_lazy_proxy",
    "is_realized",
    "proxy_state",
    "register_lazy",
]
