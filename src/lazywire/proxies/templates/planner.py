from __future__ import annotations

import inspect
import keyword
from abc import ABC
from dataclasses import dataclass
from typing import Any, ClassVar, Generic, Protocol, TypeVar, get_origin

from lazywire.exceptions import LazyWireContractShapeError, LazyWireUnsupportedContractError

RESERVED_PREFIX = "_lazywire"
DEFERRED_ATTRIBUTE = "_lazywire_deferred"

_EXCLUDED_BASES: frozenset[Any] = frozenset({object, Generic, Protocol, ABC})

# Dunders that belong to object construction, attribute machinery or
# pickling; forwarding them would break the proxy itself
_UNFORWARDED_DUNDERS = frozenset(
    {
        "__init__",
        "__new__",
        "__del__",
        "__init_subclass__",
        "__class_getitem__",
        "__subclasshook__",
        "__getattr__",
        "__getattribute__",
        "__setattr__",
        "__delattr__",
        "__dir__",
        "__get__",
        "__set__",
        "__delete__",
        "__set_name__",
        "__reduce__",
        "__reduce_ex__",
        "__getstate__",
        "__setstate__",
        "__copy__",
        "__deepcopy__",
        "__instancecheck__",
        "__subclasscheck__",
    },
)


@dataclass(frozen=True, slots=True)
class MethodPlan:
    """A contract method forwarded by calling it on the realized instance."""

    name: str
    function: Any
    is_async: bool


@dataclass(frozen=True, slots=True)
class PropertyPlan:
    """A contract property or annotated attribute forwarded by attribute access."""

    name: str
    has_setter: bool
    has_deleter: bool
    is_attribute: bool


@dataclass(frozen=True, slots=True)
class ProxyGenerationPlan:
    """Immutable description of a contract and of the proxy class generated for it."""

    contract: type
    class_name: str
    type_parameters: tuple[TypeVar, ...]
    methods: tuple[MethodPlan, ...]
    properties: tuple[PropertyPlan, ...]
    declares_repr: bool
    forwards_hash: bool

    @property
    def is_generic(self) -> bool:
        return bool(self.type_parameters)

    @property
    def contract_name(self) -> str:
        return self.contract.__qualname__


def resolve_contract(contract: Any) -> type:
    """Return the class behind ``contract`` if it is interface-shaped.

    A contract is a ``typing.Protocol`` class or an abstract base class with at
    least one abstract member. Generic aliases are accepted and reduced to
    their origin class.

    Raises:
        LazyWireUnsupportedContractError: For concrete classes and non-class objects.

    """
    origin = get_origin(contract) or contract
    if not isinstance(origin, type):
        msg = f"Cannot proxy {contract!r}: lazy contracts must be Protocol or ABC classes."
        raise LazyWireUnsupportedContractError(msg)
    if getattr(origin, "_is_protocol", False) or inspect.isabstract(origin):
        return origin
    msg = (
        f"Cannot proxy {origin.__qualname__}: it is a concrete class. Lazy contracts must be "
        "Protocol classes or abstract base classes with at least one abstract member."
    )
    raise LazyWireUnsupportedContractError(msg)


class ProxyGenerationPlanner:
    """Inspect a contract and describe the members its proxy must forward."""

    def __init__(self, contract: Any) -> None:
        self._contract = resolve_contract(contract)

    def build(self) -> ProxyGenerationPlan:
        contract = self._contract
        seen: set[str] = set()
        methods: list[MethodPlan] = []
        properties: list[PropertyPlan] = []

        for klass in contract.__mro__:
            if klass in _EXCLUDED_BASES:
                continue
            namespace = vars(klass)
            for name, annotation in _class_annotations(klass).items():
                if name in seen or _is_class_var(annotation):
                    continue
                value = namespace.get(name)
                if name in namespace and _is_callable_member(value):
                    continue
                seen.add(name)
                self._check_name(name)
                properties.append(
                    PropertyPlan(name=name, has_setter=True, has_deleter=True, is_attribute=True),
                )

            for name, value in namespace.items():
                if name in seen:
                    continue
                seen.add(name)
                self._plan_member(name, value, owner=klass, methods=methods, properties=properties)

        return ProxyGenerationPlan(
            contract=contract,
            class_name=_class_name(contract),
            type_parameters=self._type_parameters(),
            methods=tuple(methods),
            properties=tuple(properties),
            declares_repr=any(method.name == "__repr__" for method in methods),
            forwards_hash=_forwards_hash(methods),
        )

    def _plan_member(
        self,
        name: str,
        value: Any,
        *,
        owner: type,
        methods: list[MethodPlan],
        properties: list[PropertyPlan],
    ) -> None:
        if isinstance(value, (staticmethod, classmethod)):
            if name in _UNFORWARDED_DUNDERS:
                return
            # Protocol bodies are stubs, so their static and class methods are
            # called on the realized instance like any other method
            if getattr(owner, "_is_protocol", False):
                self._check_name(name)
                function = value.__func__
                methods.append(
                    MethodPlan(
                        name=name,
                        function=function,
                        is_async=inspect.iscoroutinefunction(function),
                    ),
                )
                return
            # ABC helpers are inherited unchanged; abstract ones would leave the
            # proxy uninstantiable
            if getattr(value, "__isabstractmethod__", False):
                msg = (
                    f"{self._contract.__qualname__}.{name} is an abstract static or class method; "
                    "only instance members can be forwarded to a lazily built instance."
                )
                raise LazyWireContractShapeError(msg)
            return

        if isinstance(value, property):
            self._check_name(name)
            properties.append(
                PropertyPlan(
                    name=name,
                    has_setter=value.fset is not None,
                    has_deleter=value.fdel is not None,
                    is_attribute=False,
                ),
            )
            return

        if not inspect.isfunction(value) or name in _UNFORWARDED_DUNDERS:
            return

        self._check_name(name)
        methods.append(
            MethodPlan(name=name, function=value, is_async=inspect.iscoroutinefunction(value)),
        )

    def _check_name(self, name: str) -> None:
        if not name.isidentifier() or keyword.iskeyword(name):
            msg = f"{self._contract.__qualname__} declares member {name!r}, which is not an identifier."
            raise LazyWireContractShapeError(msg)
        if name.startswith(RESERVED_PREFIX):
            msg = (
                f"{self._contract.__qualname__}.{name} uses the {RESERVED_PREFIX!r} prefix, "
                "which is reserved for proxy state."
            )
            raise LazyWireContractShapeError(msg)

    def _type_parameters(self) -> tuple[TypeVar, ...]:
        parameters = tuple(getattr(self._contract, "__parameters__", ()))
        for parameter in parameters:
            if not isinstance(parameter, TypeVar):
                msg = (
                    f"{self._contract.__qualname__} is generic over {parameter!r}; "
                    "only TypeVar parameters are supported."
                )
                raise LazyWireContractShapeError(msg)
        return parameters


def _class_annotations(klass: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(klass)
    except NameError as e:
        msg = f"Cannot read the annotations of {klass.__qualname__}: {e}"
        raise LazyWireContractShapeError(msg) from e


def _is_callable_member(value: Any) -> bool:
    return inspect.isfunction(value) or isinstance(value, (property, staticmethod, classmethod))


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or get_origin(annotation) is ClassVar


def _class_name(contract: type) -> str:
    name = f"{contract.__name__}LazyProxy"
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    return "LazyProxy"


def _forwards_hash(methods: list[MethodPlan]) -> bool:
    # A class that defines __eq__ without __hash__ becomes unhashable
    names = {method.name for method in methods}
    return "__eq__" in names and "__hash__" not in names
