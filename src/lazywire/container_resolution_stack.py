from __future__ import annotations

import threading
from contextvars import ContextVar

from lazywire.registry import ServiceKey

# Stores (thread_id, stack) so a thread that inherits another thread's context
# works on its own copy instead of mutating the shared list
_resolution_stack: ContextVar[tuple[int, list[ServiceKey]] | None] = ContextVar(
    "lazywire_resolution_stack",
    default=None,
)


def get_resolution_stack() -> list[ServiceKey]:
    """Get the keys currently being resolved on this thread, outermost first."""
    thread_id = threading.get_ident()
    stored = _resolution_stack.get()

    if stored is None:
        stack: list[ServiceKey] = []
        _resolution_stack.set((thread_id, stack))
        return stack

    owner_thread_id, stack = stored
    if owner_thread_id != thread_id:
        cloned_stack = list(stack)
        _resolution_stack.set((thread_id, cloned_stack))
        return cloned_stack

    return stack


def format_resolution_chain(stack: list[ServiceKey], key: ServiceKey) -> str:
    return " -> ".join(str(item) for item in [*stack, key])
