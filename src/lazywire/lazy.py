"""Register services whose construction waits until a member is first used.

A lazy registration is stored as two registrations of the same contract: a
hidden one, under a random name, that builds the real implementation, and the
public one, whose factory returns a proxy bound to a ``Deferred`` that resolves
the hidden registration on first member access. Each side gets its own
lifetime policy from the same policy factory, so the proxy's identity follows
the configured lifetime no matter when (or whether) it is realized.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, TypeVar, get_args
from uuid import uuid4

from lazywire.container_interface import ContainerExtension, IContainer
from lazywire.deferred import Deferred
from lazywire.lifetimes import Lifetime, LifetimePolicyFactory, lifetime_policy_factory
from lazywire.open_generics import contains_typevar
from lazywire.proxies.manager import ProxiesManager, ProxyTemplate
from lazywire.proxies.manager import proxies_manager as default_proxies_manager

if TYPE_CHECKING:
    from lazywire.injection import InjectionMember
    from lazywire.overrides import BuildContext

ContainerT = TypeVar("ContainerT", bound=IContainer)

logger = logging.getLogger(__name__)


class LazyProxyExtension(ContainerExtension):
    """Container extension registering ``concrete`` lazily for ``provides``.

    The proxy template is generated when the extension is created, so contract
    errors surface before anything is registered.

    Args:
        provides: A Protocol or ABC contract. A bare generic contract (or an
            alias with TypeVars) registers an open generic.
        concrete: The implementation built on first use.
        name: Optional registration name.
        lifetime: A ``Lifetime`` or a zero-argument factory of lifetime
            policies; it is called once per registration side.
        injection: Injection members applied to the real implementation.
        proxies_manager: Template cache to use instead of the shared one.

    Raises:
        LazyWireUnsupportedContractError: If ``provides`` is not interface-shaped.
        LazyWireContractShapeError: If the contract cannot be proxied.

    """

    def __init__(  # noqa: PLR0913
        self,
        provides: Any,
        concrete: Any,
        *,
        name: str | None = None,
        lifetime: Lifetime | LifetimePolicyFactory = Lifetime.TRANSIENT,
        injection: Iterable[InjectionMember] = (),
        proxies_manager: ProxiesManager | None = None,
    ) -> None:
        manager = default_proxies_manager if proxies_manager is None else proxies_manager
        self._provides = provides
        self._concrete = concrete
        self._name = name
        self._policy_factory = lifetime_policy_factory(lifetime)
        self._injection = tuple(injection)
        self._template: ProxyTemplate = manager.get_template(provides)
        arguments = get_args(provides)
        if arguments and not contains_typevar(provides):
            # Closed contracts close the template up front
            self._template.close(arguments)

    @property
    def template(self) -> ProxyTemplate:
        return self._template

    def initialize(self, container: IContainer) -> None:
        hidden_name = uuid4().hex
        container.register(
            self._provides,
            self._concrete,
            name=hidden_name,
            lifetime=self._policy_factory(),
            injection=self._injection,
        )
        container.register(
            self._provides,
            self._concrete,
            name=self._name,
            lifetime=self._policy_factory(),
        )
        container.set_factory(
            self._provides,
            _ProxyFactory(template=self._template, hidden_name=hidden_name),
            name=self._name,
        )
        logger.debug(
            "Registered lazy %r (name=%r) backed by hidden registration %s",
            self._provides,
            self._name,
            hidden_name,
        )


class _ProxyFactory:
    """Build a proxy whose deferred value replays the resolve call on the hidden registration."""

    __slots__ = ("_hidden_name", "_template")

    def __init__(self, *, template: ProxyTemplate, hidden_name: str) -> None:
        self._template = template
        self._hidden_name = hidden_name

    def __call__(self, context: BuildContext) -> Any:
        container = context.container
        requested = context.key.provides
        overrides = tuple(context.overrides)
        hidden_name = self._hidden_name

        def realize() -> Any:
            return container.resolve(requested, *overrides, name=hidden_name)

        return self._template.create(Deferred(realize), get_args(requested))


def register_lazy(  # noqa: PLR0913
    container: ContainerT,
    provides: Any,
    concrete: Any,
    *,
    name: str | None = None,
    lifetime: Lifetime | LifetimePolicyFactory = Lifetime.TRANSIENT,
    injection: Iterable[InjectionMember] = (),
) -> ContainerT:
    """Register ``concrete`` for ``provides`` so it is built on first member use.

    Resolving ``provides`` returns a proxy right away. The first method call or
    attribute access on the proxy resolves the real implementation with the
    overrides of the original resolve call; failures are raised to that caller
    and the next access tries again.

    Examples:
        .. code-block:: python

            container = register_lazy(Container(), IReportService, ReportService)
            reports = container.resolve(IReportService)  # nothing built yet
            reports.render("weekly")  # ReportService is built here

    Returns:
        The container, to allow chaining.

    """
    container.add_extension(
        LazyProxyExtension(
            provides,
            concrete,
            name=name,
            lifetime=lifetime,
            injection=injection,
        ),
    )
    return container