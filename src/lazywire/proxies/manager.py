from __future__ import annotations

import threading
import types
from collections.abc import Sequence
from typing import Any

from lazywire.deferred import Deferred, DeferredState
from lazywire.exceptions import (
    LazyWireContractShapeError,
    LazyWireInvalidGenericTypeArgumentError,
)
from lazywire.open_generics import validate_typevar_arguments
from lazywire.proxies.templates.planner import (
    DEFERRED_ATTRIBUTE,
    ProxyGenerationPlan,
    ProxyGenerationPlanner,
    resolve_contract,
)
from lazywire.proxies.templates.renderer import ProxyTemplateRenderer

_GENERATED_MODULE = "lazywire.proxies.generated"
_TEMPLATE_ATTRIBUTE = "_lazywire_template"


class ProxyTemplate:
    """A generated proxy class for one contract, reusable for any deferred value.

    Generic contracts produce an open proxy class; ``close`` derives (and
    caches) a subclass per concrete argument tuple without generating code
    again.
    """

    def __init__(self, plan: ProxyGenerationPlan, proxy_class: type) -> None:
        self._plan = plan
        self._proxy_class = proxy_class
        self._closed: dict[tuple[Any, ...], type] = {}
        self._lock = threading.Lock()

    @property
    def contract(self) -> type:
        return self._plan.contract

    @property
    def plan(self) -> ProxyGenerationPlan:
        return self._plan

    @property
    def proxy_class(self) -> type:
        return self._proxy_class

    def close(self, args: Sequence[Any] = ()) -> type:
        """Return the proxy class for the contract closed over ``args``.

        Raises:
            LazyWireInvalidGenericTypeArgumentError: If the argument count does
                not match the contract's type parameters or an argument violates
                a TypeVar bound.

        """
        args = tuple(args)
        if not args:
            return self._proxy_class

        cached = self._closed.get(args)
        if cached is not None:
            return cached

        parameters = self._plan.type_parameters
        if len(args) != len(parameters):
            msg = (
                f"{self._plan.contract_name} takes {len(parameters)} type argument(s), "
                f"got {len(args)}: {args!r}."
            )
            raise LazyWireInvalidGenericTypeArgumentError(msg)
        validate_typevar_arguments(dict(zip(parameters, args, strict=True)))

        with self._lock:
            cached = self._closed.get(args)
            if cached is not None:
                return cached
            closed = types.new_class(
                self._proxy_class.__name__,
                (self._proxy_class[args],),  # type: ignore[index]
                exec_body=lambda namespace: namespace.update(
                    {"__slots__": (), "__module__": _GENERATED_MODULE},
                ),
            )
            closed.__qualname__ = f"{self._proxy_class.__qualname__}[{_format_args(args)}]"
            self._closed[args] = closed
            return closed

    def create(self, deferred: Deferred[Any], args: Sequence[Any] = ()) -> Any:
        """Bind ``deferred`` to a new proxy instance of the (closed) proxy class."""
        return self.close(args)(deferred)


class ProxiesManager:
    """Build and cache proxy templates by contract identity."""

    def __init__(self) -> None:
        self._template_renderer = ProxyTemplateRenderer()
        self._templates: dict[type, ProxyTemplate] = {}
        self._lock = threading.Lock()

    def get_template(self, contract: Any) -> ProxyTemplate:
        """Get the template for ``contract`` (a class or a generic alias of one).

        Raises:
            LazyWireUnsupportedContractError: If the contract is not a Protocol
                or an abstract base class.
            LazyWireContractShapeError: If a member cannot be forwarded.

        """
        origin = resolve_contract(contract)
        template = self._templates.get(origin)
        if template is not None:
            return template

        with self._lock:
            template = self._templates.get(origin)
            if template is None:
                template = self._build_template(origin)
                self._templates[origin] = template
        return template

    def _build_template(self, contract: type) -> ProxyTemplate:
        plan = ProxyGenerationPlanner(contract).build()
        code = self._template_renderer.get_proxy_code(plan)

        # The contract object itself is handed to the generated code, so
        # private and function-local contracts need no import path
        namespace: dict[str, Any] = {
            "__name__": _GENERATED_MODULE,
            "_contract": contract,
            "_contract_parameters": plan.type_parameters,
        }
        try:
            exec(code, namespace)  # noqa: S102
        except Exception as e:
            msg = f"Cannot build a lazy proxy class for {plan.contract_name}: {e}"
            raise LazyWireContractShapeError(msg) from e

        proxy_class: type = namespace[plan.class_name]
        proxy_class.__qualname__ = plan.class_name
        for method in plan.methods:
            forwarder = proxy_class.__dict__[method.name]
            forwarder.__wrapped__ = method.function
            forwarder.__doc__ = method.function.__doc__
            forwarder.__qualname__ = f"{plan.class_name}.{method.name}"

        template = ProxyTemplate(plan, proxy_class)
        setattr(proxy_class, _TEMPLATE_ATTRIBUTE, template)
        return template


proxies_manager = ProxiesManager()


def is_lazy_proxy(value: Any) -> bool:
    """Return whether ``value`` is a proxy produced by a ``ProxyTemplate``."""
    return isinstance(getattr(type(value), _TEMPLATE_ATTRIBUTE, None), ProxyTemplate)


def proxy_state(proxy: Any) -> DeferredState:
    """Return the realization state behind ``proxy`` without triggering it."""
    if not is_lazy_proxy(proxy):
        msg = f"{proxy!r} is not a lazy proxy."
        raise TypeError(msg)
    return object.__getattribute__(proxy, DEFERRED_ATTRIBUTE).state


def is_realized(proxy: Any) -> bool:
    return proxy_state(proxy) is DeferredState.REALIZED


def _format_args(args: tuple[Any, ...]) -> str:
    return ", ".join(getattr(arg, "__qualname__", None) or repr(arg) for arg in args)
