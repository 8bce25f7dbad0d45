"""Cycle context for correlating logs and events of one poll or chart fetch."""

import contextvars
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional

# Context variable holding the id of the cycle currently running
_cycle_id_context: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "cycle_id", default=None
)


def create_cycle(kind: str = "poll") -> str:
    """
    Generate a new cycle id and set it in the current context.

    Args:
        kind: Short prefix naming the cycle type ("poll", "chart", ...)

    Returns:
        A unique cycle id such as ``poll-2f1c...``
    """
    cycle_id = f"{kind}-{uuid.uuid4().hex[:12]}"
    set_cycle(cycle_id)
    return cycle_id


def get_current_cycle() -> Optional[str]:
    """Get the current cycle id, or None outside a cycle."""
    return _cycle_id_context.get()


def set_cycle(cycle_id: str | None) -> None:
    """Set the cycle id in the current context."""
    _cycle_id_context.set(cycle_id)


def clear_cycle() -> None:
    """Clear the cycle id from the current context."""
    _cycle_id_context.set(None)


@contextmanager
def cycle_scope(kind: str = "poll") -> Iterator[str]:
    """Run a block inside a fresh cycle, restoring the outer cycle afterwards."""
    token = _cycle_id_context.set(None)
    try:
        yield create_cycle(kind)
    finally:
        _cycle_id_context.reset(token)
