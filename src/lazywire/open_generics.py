from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, TypeVar, get_args, get_origin

from lazywire.exceptions import LazyWireInvalidGenericTypeArgumentError
from lazywire.registry import Registration


@dataclass(frozen=True, slots=True)
class OpenGenericMatch:
    registration: Registration
    typevar_map: dict[TypeVar, Any]
    specificity: int
    registration_order: int


def canonicalize_open_key(provides: Any) -> Any | None:
    """Normalize a registration key into its open-generic form.

    A bare generic class such as ``Repository`` becomes ``Repository[T]`` and
    an alias that still mentions TypeVars (``Repository[list[T]]``) is kept
    with its structure intact, so it can be matched against closed keys.

    Args:
        provides: Candidate registration key.

    Returns:
        The canonical open key, or ``None`` when ``provides`` is fully closed
        (or not generic at all).

    """
    origin = get_origin(provides)
    if origin is None:
        parameters = _typevar_parameters(provides)
        if not parameters:
            return None
        return _rebuild_alias(origin=provides, args=parameters, fallback=provides)

    args = get_args(provides)
    if not args:
        return None
    normalized = _rebuild_alias(
        origin=origin,
        args=tuple(_normalize_node(argument) for argument in args),
        fallback=provides,
    )
    if contains_typevar(normalized):
        return normalized
    return None


def contains_typevar(value: Any) -> bool:
    """Return whether a type expression still contains a ``TypeVar``."""
    if isinstance(value, TypeVar):
        return True

    if get_origin(value) is not None:
        return any(contains_typevar(argument) for argument in get_args(value))

    return bool(_typevar_parameters(value))


def substitute_typevars(value: Any, *, mapping: Mapping[TypeVar, Any]) -> Any:
    """Replace TypeVars in ``value`` with the arguments bound in ``mapping``.

    Used to turn constructor annotations of an open-generic implementation
    into the closed keys of the dependencies it needs.
    """
    if isinstance(value, TypeVar):
        return mapping.get(value, value)

    origin = get_origin(value)
    if origin is None:
        return value

    arguments = get_args(value)
    if not arguments:
        return value

    return _rebuild_alias(
        origin=origin,
        args=tuple(substitute_typevars(argument, mapping=mapping) for argument in arguments),
        fallback=value,
    )


def validate_typevar_arguments(typevar_map: Mapping[TypeVar, Any]) -> None:
    """Check closed generic arguments against TypeVar constraints and bounds.

    Raises:
        LazyWireInvalidGenericTypeArgumentError: If an argument violates the
            constraint set or the bound of its TypeVar.

    """
    for typevar, argument in typevar_map.items():
        if _is_type_argument_valid(typevar=typevar, argument=argument):
            continue
        constraints = getattr(typevar, "__constraints__", ())
        bound = getattr(typevar, "__bound__", None)
        if constraints:
            allowed = ", ".join(repr(item) for item in constraints)
            msg = (
                f"Generic argument {argument!r} for TypeVar '{typevar.__name__}' must be "
                f"one of: {allowed}."
            )
        else:
            msg = (
                f"Generic argument {argument!r} for TypeVar '{typevar.__name__}' must satisfy "
                f"bound {bound!r}."
            )
        raise LazyWireInvalidGenericTypeArgumentError(msg)


def match_typevars(*, template: Any, concrete: Any) -> dict[TypeVar, Any] | None:
    """Structurally match a closed key against an open template.

    Returns the TypeVar bindings, or ``None`` when the shapes differ or a
    TypeVar would have to bind two different arguments.
    """
    mapping: dict[TypeVar, Any] = {}
    if _match_node(template=template, concrete=concrete, mapping=mapping):
        return mapping
    return None


def bind_implementation_typevars(implementation: Any, requested: Any) -> dict[TypeVar, Any]:
    """Find the TypeVar bindings of ``implementation`` for a closed ``requested`` key.

    Walks the generic bases of the implementation up to the class that
    ``requested`` parameterizes, so ``class Derived(Base[K, V])`` registered
    for ``Contract[K, V]`` through ``class Base(Contract[K, V])`` still binds
    ``K`` and ``V``. Returns an empty mapping when nothing can be bound.
    """
    target = get_origin(requested)
    if target is None or not isinstance(implementation, type):
        return {}
    return _bind_from_bases(implementation, requested=requested, target=target) or {}


def close_implementation(implementation: Any, mapping: Mapping[TypeVar, Any]) -> Any:
    """Parameterize a generic implementation class when all its TypeVars are bound."""
    parameters = _typevar_parameters(implementation)
    if not parameters or any(parameter not in mapping for parameter in parameters):
        return implementation
    arguments = tuple(mapping[parameter] for parameter in parameters)
    return _rebuild_alias(origin=implementation, args=arguments, fallback=implementation)


class OpenGenericRegistry:
    """Open-generic registrations of a single container, keyed by canonical key and name."""

    def __init__(self) -> None:
        self._registrations: dict[tuple[Any, str | None], tuple[int, Registration]] = {}
        self._registration_counter = 0

    def __bool__(self) -> bool:
        return bool(self._registrations)

    def add(self, registration: Registration) -> None:
        self._registration_counter += 1
        self._registrations[(registration.open_key, registration.key.name)] = (
            self._registration_counter,
            registration,
        )

    def get(self, open_key: Any, name: str | None) -> Registration | None:
        entry = self._registrations.get((open_key, name))
        return None if entry is None else entry[1]

    def registrations(self) -> tuple[Registration, ...]:
        return tuple(registration for _, registration in self._registrations.values())

    def clear(self) -> None:
        self._registrations.clear()

    def find_best_match(self, provides: Any, name: str | None) -> OpenGenericMatch | None:
        """Pick the most specific (then most recent) template matching a closed key.

        Raises:
            LazyWireInvalidGenericTypeArgumentError: When some template matches
                structurally but every such match violates a TypeVar bound.

        """
        if not _is_closed_generic(provides):
            return None

        matches: list[OpenGenericMatch] = []
        validation_error: LazyWireInvalidGenericTypeArgumentError | None = None
        for (open_key, registered_name), (order, registration) in self._registrations.items():
            if registered_name != name:
                continue
            typevar_map = match_typevars(template=open_key, concrete=provides)
            if typevar_map is None:
                continue
            try:
                validate_typevar_arguments(typevar_map)
            except LazyWireInvalidGenericTypeArgumentError as error:
                if validation_error is None:
                    validation_error = error
                continue
            matches.append(
                OpenGenericMatch(
                    registration=registration,
                    typevar_map=typevar_map,
                    specificity=_specificity_score(open_key),
                    registration_order=order,
                ),
            )

        if matches:
            return max(matches, key=lambda item: (item.specificity, item.registration_order))
        if validation_error is not None:
            raise validation_error
        return None


def _bind_from_bases(
    cls: type,
    *,
    requested: Any,
    target: Any,
) -> dict[TypeVar, Any] | None:
    for base in getattr(cls, "__orig_bases__", ()):
        base_origin = get_origin(base)
        if base_origin is None:
            continue
        if base_origin is target:
            mapping = match_typevars(template=base, concrete=requested)
            if mapping is not None:
                return mapping
            continue
        if not isinstance(base_origin, type):
            continue
        inherited = _bind_from_bases(base_origin, requested=requested, target=target)
        if inherited is None:
            continue
        mapping = {}
        for parameter, argument in zip(
            _typevar_parameters(base_origin),
            get_args(base),
            strict=False,
        ):
            if parameter in inherited and not _match_node(
                template=argument,
                concrete=inherited[parameter],
                mapping=mapping,
            ):
                return None
        return mapping
    return None


def _match_node(*, template: Any, concrete: Any, mapping: dict[TypeVar, Any]) -> bool:
    if isinstance(template, TypeVar):
        known = mapping.get(template)
        if known is None:
            mapping[template] = concrete
            return True
        return known == concrete

    template_origin = get_origin(template)
    if template_origin is None:
        template_open = canonicalize_open_key(template)
        if template_open is not None:
            return _match_node(template=template_open, concrete=concrete, mapping=mapping)
        return template == concrete

    if get_origin(concrete) != template_origin:
        return False

    template_arguments = get_args(template)
    concrete_arguments = get_args(concrete)
    if len(template_arguments) != len(concrete_arguments):
        return False

    return all(
        _match_node(template=template_argument, concrete=concrete_argument, mapping=mapping)
        for template_argument, concrete_argument in zip(
            template_arguments,
            concrete_arguments,
            strict=True,
        )
    )


def _is_closed_generic(provides: Any) -> bool:
    if get_origin(provides) is None:
        return False
    arguments = get_args(provides)
    return bool(arguments) and not any(contains_typevar(argument) for argument in arguments)


def _specificity_score(value: Any) -> int:
    if isinstance(value, TypeVar):
        return 0
    if get_origin(value) is None or not get_args(value):
        return 2
    return 1 + sum(_specificity_score(argument) for argument in get_args(value))


def _normalize_node(value: Any) -> Any:
    if isinstance(value, TypeVar):
        return value

    origin = get_origin(value)
    if origin is not None:
        return _rebuild_alias(
            origin=origin,
            args=tuple(_normalize_node(argument) for argument in get_args(value)),
            fallback=value,
        )

    parameters = _typevar_parameters(value)
    if not parameters:
        return value
    return _rebuild_alias(origin=value, args=parameters, fallback=value)


def _typevar_parameters(value: Any) -> tuple[TypeVar, ...]:
    return tuple(
        parameter
        for parameter in getattr(value, "__parameters__", ())
        if isinstance(parameter, TypeVar)
    )


def _rebuild_alias(*, origin: Any, args: tuple[Any, ...], fallback: Any) -> Any:
    try:
        if len(args) == 1:
            return origin[args[0]]
        return origin[args]
    except TypeError:
        return fallback


def _is_type_argument_valid(*, typevar: TypeVar, argument: Any) -> bool:
    constraints = getattr(typevar, "__constraints__", ())
    if constraints:
        return any(
            _matches_type_constraint(argument=argument, constraint=constraint)
            for constraint in constraints
        )
    bound = getattr(typevar, "__bound__", None)
    if bound is None:
        return True
    return _matches_type_constraint(argument=argument, constraint=bound)


def _matches_type_constraint(*, argument: Any, constraint: Any) -> bool:
    if constraint is Any:
        return True
    argument_type = get_origin(argument) or argument
    constraint_type = get_origin(constraint) or constraint
    if isinstance(argument_type, type) and isinstance(constraint_type, type):
        try:
            return issubclass(argument_type, constraint_type)
        except TypeError:
            return False
    return argument == constraint
