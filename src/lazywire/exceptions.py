class LazyWireError(Exception):
    """Represent a base class for all LazyWire-specific failures.

    Catch this type when you want to handle any LazyWire error path without
    matching each concrete exception class individually.
    """


class LazyWireInvalidRegistrationError(LazyWireError):
    """Signal invalid registration or injection configuration.

    Raised by ``Container.register``, ``Container.add_instance`` and
    ``Container.set_factory`` when arguments are invalid, for example when the
    concrete type is abstract, its constructor annotations cannot be evaluated,
    or ``set_factory`` targets a registration the container does not own.

    Typical fixes include registering a concrete class, making constructor
    annotations importable at registration time, and registering the service
    before installing a factory for it.
    """


class LazyWireUnsupportedContractError(LazyWireInvalidRegistrationError):
    """Signal that a lazy registration targets a non-interface contract.

    Raised synchronously by ``register_lazy`` and ``LazyProxyExtension`` when the
    contract is not a ``typing.Protocol`` class or an abstract base class that
    declares at least one abstract member.

    Typical fix is extracting a Protocol (or ABC) describing the members
    consumers use and registering the concrete class against it.
    """


class LazyWireContractShapeError(LazyWireInvalidRegistrationError):
    """Signal that a contract declares a member the proxy cannot forward.

    Raised while building a proxy template, which happens eagerly at
    registration time. Common triggers are member names that are not valid
    identifiers, names reserved for proxy state (the ``_lazywire`` prefix),
    abstract static or class methods, and non-TypeVar generic parameters.
    """


class LazyWireInvalidOverrideError(LazyWireError):
    """Signal that ``resolve`` received an object that is not a resolver override.

    Pass ``ParameterOverride``, ``DependencyOverride``, ``PropertyOverride`` or
    ``TypeBasedOverride`` instances as positional arguments after the service key.
    """


class LazyWireResolutionFailedError(LazyWireError):
    """Signal that the container could not build a requested service.

    Raised by ``Container.resolve`` when a constructor raises, when a required
    parameter has no annotation, or when a nested dependency fails. For lazily
    registered services it surfaces at the first member access on the proxy,
    not at the proxy's own resolve call, and a later access retries.
    """


class LazyWireDependencyNotRegisteredError(LazyWireResolutionFailedError):
    """Signal that a dependency key has no registration.

    Raised when neither the container nor any ancestor holds an exact or
    open-generic registration for the key and the key is not eligible for
    autoregistration (it is named, abstract, a Protocol, or ignored).

    Typical fixes include registering the dependency explicitly (possibly in a
    child container) or enabling autoregistration for concrete classes.
    """

    def __init__(self, message: str, service_key: object) -> None:
        super().__init__(message)
        self.service_key = service_key


class LazyWireCyclicResolutionError(LazyWireError):
    """Signal that a service requires itself while it is still being built.

    Raised by the container when a key re-enters the current thread's
    resolution chain, and by ``Deferred.get`` when a realization re-enters the
    same deferred value on the thread that is realizing it. It is not retried.
    """


class LazyWireInvalidGenericTypeArgumentError(LazyWireError):
    """Signal that closed generic arguments violate TypeVar constraints.

    Raised when an open-generic registration matches a requested closed key
    structurally but the concrete arguments do not satisfy a TypeVar bound or
    constraint set, and when a proxy template is closed with the wrong number
    of arguments.
    """


class LazyWireContainerClosedError(LazyWireError):
    """Signal use of a container after ``close`` was called.

    Closing a container also closes every child container created from it.
    """
