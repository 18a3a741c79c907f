import inspect
import threading
from dataclasses import dataclass
from typing import Any, get_type_hints

from lazywire.exceptions import LazyWireInvalidRegistrationError
from lazywire.markers import is_injected_annotation

EMPTY: Any = inspect.Parameter.empty


@dataclass(frozen=True, slots=True)
class ParameterInfo:
    """A constructor parameter with its resolved annotation."""

    name: str
    annotation: Any
    kind: inspect._ParameterKind
    default: Any

    @property
    def has_default(self) -> bool:
        return self.default is not EMPTY

    @property
    def has_annotation(self) -> bool:
        return self.annotation is not EMPTY

    @property
    def is_positional_only(self) -> bool:
        return self.kind is inspect.Parameter.POSITIONAL_ONLY

    @property
    def is_variadic(self) -> bool:
        return self.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


class DependenciesExtractor:
    """Extract type-hinted constructor parameters and injected class attributes."""

    def __init__(self) -> None:
        self._parameters_cache: dict[Any, tuple[ParameterInfo, ...]] = {}
        self._injected_cache: dict[Any, dict[str, Any]] = {}
        self._hints_cache: dict[Any, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get_parameters(self, implementation: type) -> tuple[ParameterInfo, ...]:
        """Get the ``__init__`` parameters of ``implementation`` without ``self``.

        Raises:
            LazyWireInvalidRegistrationError: If the signature cannot be read or
                the annotations cannot be evaluated.

        """
        cached = self._parameters_cache.get(implementation)
        if cached is not None:
            return cached

        init_func = implementation.__init__
        if init_func is object.__init__:
            result: tuple[ParameterInfo, ...] = ()
        else:
            try:
                signature = inspect.signature(init_func)
                type_hints = get_type_hints(init_func, include_extras=True)
            except (TypeError, ValueError, NameError) as e:
                msg = f"Cannot inspect the constructor of {implementation!r}: {e}"
                raise LazyWireInvalidRegistrationError(msg) from e

            parameters = list(signature.parameters.values())[1:]
            result = tuple(
                ParameterInfo(
                    name=parameter.name,
                    annotation=type_hints.get(parameter.name, EMPTY),
                    kind=parameter.kind,
                    default=parameter.default,
                )
                for parameter in parameters
            )

        with self._lock:
            self._parameters_cache[implementation] = result
        return result

    def get_injected_properties(self, implementation: type) -> dict[str, Any]:
        """Get class attributes annotated with ``Injected[T]``, mapped to their annotation.

        Annotations are only evaluated for classes that mention ``Injected``, so
        classes with annotations that cannot be evaluated at runtime still build.
        """
        cached = self._injected_cache.get(implementation)
        if cached is not None:
            return cached

        if any(_mentions_injected(klass) for klass in implementation.__mro__):
            result = {
                name: hint
                for name, hint in self.get_class_hints(implementation).items()
                if is_injected_annotation(hint)
            }
        else:
            result = {}

        with self._lock:
            self._injected_cache[implementation] = result
        return result

    def get_class_hints(self, implementation: type) -> dict[str, Any]:
        """Get class-level annotations (including inherited ones) with ``Annotated`` extras."""
        cached = self._hints_cache.get(implementation)
        if cached is not None:
            return cached

        try:
            result = get_type_hints(implementation, include_extras=True)
        except (TypeError, NameError) as e:
            msg = f"Cannot evaluate the annotations of {implementation!r}: {e}"
            raise LazyWireInvalidRegistrationError(msg) from e

        with self._lock:
            self._hints_cache[implementation] = result
        return result


def _mentions_injected(klass: type) -> bool:
    if klass is object:
        return False
    try:
        annotations = inspect.get_annotations(klass)
    except NameError as e:
        msg = f"Cannot evaluate the annotations of {klass!r}: {e}"
        raise LazyWireInvalidRegistrationError(msg) from e
    for annotation in annotations.values():
        if isinstance(annotation, str):
            if "Injected[" in annotation:
                return True
        elif is_injected_annotation(annotation):
            return True
    return False
