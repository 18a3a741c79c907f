from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import Generic, TypeVar, cast

from lazywire.exceptions import LazyWireCyclicResolutionError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class DeferredState(str, Enum):
    """Realization state of a ``Deferred`` value."""

    UNREALIZED = "unrealized"
    """The factory has not run yet, or its last run failed."""

    REALIZING = "realizing"
    """The factory is running on some thread."""

    REALIZED = "realized"
    """The factory succeeded; the value is cached for good."""


class Deferred(Generic[T]):
    """A thread-safe value computed by ``factory`` on the first ``get`` call.

    Concurrent first calls run the factory once: one caller runs it, the
    others block and then share its result or its exception. A failed run is
    not cached, so the next ``get`` starts a fresh attempt. After a successful
    run the factory is released and every ``get`` returns the cached value.
    """

    __slots__ = (
        "_attempt",
        "_condition",
        "_factory",
        "_failure",
        "_owner",
        "_state",
        "_value",
        "_waiters",
    )

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory: Callable[[], T] | None = factory
        self._value: T | None = None
        self._state = DeferredState.UNREALIZED
        self._condition = threading.Condition(threading.Lock())
        self._owner: int | None = None
        self._attempt = 0
        self._failure: tuple[int, BaseException] | None = None
        self._waiters = 0

    @property
    def state(self) -> DeferredState:
        return self._state

    @property
    def is_realized(self) -> bool:
        return self._state is DeferredState.REALIZED

    def get(self) -> T:
        """Return the value, running the factory if no attempt has succeeded yet.

        Raises:
            LazyWireCyclicResolutionError: If the factory, directly or through
                other services, calls ``get`` on this same value.

        """
        if self._state is DeferredState.REALIZED:
            return cast("T", self._value)

        thread_id = threading.get_ident()
        with self._condition:
            while self._state is DeferredState.REALIZING:
                if self._owner == thread_id:
                    msg = f"{self!r} requires its own value while it is being realized."
                    raise LazyWireCyclicResolutionError(msg)
                attempt = self._attempt
                self._waiters += 1
                try:
                    self._condition.wait_for(lambda: self._attempt_finished(attempt))
                finally:
                    self._waiters -= 1
                failure = self._failure
                # The failure is only kept for threads still waiting on its attempt
                if self._waiters == 0:
                    self._failure = None
                if failure is not None and failure[0] == attempt:
                    raise failure[1]

            if self._state is DeferredState.REALIZED:
                return cast("T", self._value)

            self._attempt += 1
            attempt = self._attempt
            self._state = DeferredState.REALIZING
            self._owner = thread_id
            factory = cast("Callable[[], T]", self._factory)

        logger.debug("Realizing %r (attempt %d)", self, attempt)
        try:
            value = factory()
        except BaseException as error:
            with self._condition:
                self._state = DeferredState.UNREALIZED
                self._owner = None
                if self._waiters:
                    self._failure = (attempt, error)
                self._condition.notify_all()
            logger.debug("Realization of %r failed: %r", self, error)
            raise

        with self._condition:
            self._value = value
            self._state = DeferredState.REALIZED
            self._owner = None
            self._failure = None
            self._factory = None
            self._condition.notify_all()
        return value

    def _attempt_finished(self, attempt: int) -> bool:
        return self._state is not DeferredState.REALIZING or self._attempt != attempt

    def __repr__(self) -> str:
        return f"<Deferred {self._state.value} at {id(self):#x}>"
