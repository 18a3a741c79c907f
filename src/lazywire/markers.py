from typing import TYPE_CHECKING, Annotated, Any, NamedTuple, TypeVar, Union, get_args, get_origin

T = TypeVar("T")
_ANNOTATED_MARKER_MIN_ARGS = 2


class Component(NamedTuple):
    """Select a named registration for an annotated dependency.

    Attach ``Component`` metadata to ``typing.Annotated`` so the container
    resolves the parameter (or injected property) from the registration with
    that name instead of the unnamed one.

    Examples:
        .. code-block:: python

            from typing import Annotated, TypeAlias


            class Database: ...


            ReplicaDb: TypeAlias = Annotated[Database, Component("replica")]
            PrimaryDb: TypeAlias = Annotated[Database, Component("primary")]

    """

    value: str


class InjectedMarker:
    """A marker used to indicate a class attribute should be injected after construction."""


if TYPE_CHECKING:
    Injected = Union[T, T]  # noqa: UP007,PYI016
    """Mark a class attribute for property injection.

    At runtime ``Injected[T]`` becomes ``Annotated[T, InjectedMarker()]``. After
    the container constructs the instance it assigns the attribute from a
    ``PropertyOverride`` with the same name, or by resolving ``T``.

    Examples:
        .. code-block:: python

            class Service:
                greeting: Injected[str]
    """

else:

    class Injected:
        """Mark a class attribute for property injection.

        At runtime ``Injected[T]`` resolves to ``Annotated[T, InjectedMarker()]``.

        Examples:
            .. code-block:: python

                class Service:
                    repository: Injected[Repository]

        """

        def __class_getitem__(cls, item: T) -> Annotated[T, InjectedMarker]:
            return _build_annotated((item, InjectedMarker()))


def is_injected_annotation(annotation: Any) -> bool:
    """Return whether ``annotation`` carries the ``Injected`` marker."""
    if get_origin(annotation) is not Annotated:
        return False
    return any(isinstance(item, InjectedMarker) for item in get_args(annotation)[1:])


def split_component(annotation: Any) -> tuple[Any, str | None]:
    """Split an annotation into the provided type and the ``Component`` name.

    Markers other than ``Component`` are stripped, so ``Injected[Annotated[T,
    Component("x")]]`` yields ``(T, "x")`` and a plain ``T`` yields ``(T, None)``.
    """
    if get_origin(annotation) is not Annotated:
        return annotation, None

    args = get_args(annotation)
    if len(args) < _ANNOTATED_MARKER_MIN_ARGS:
        return annotation, None  # pragma: no cover - Annotated requires at least 2 args

    name: str | None = None
    for metadata in args[1:]:
        if isinstance(metadata, Component):
            name = metadata.value
    return args[0], name


def _build_annotated(params: tuple[Any, ...]) -> Any:
    annotated = Annotated
    return annotated.__class_getitem__(params)  # type: ignore[attr-defined]
