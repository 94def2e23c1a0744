"""Propagate the acting user through the call stack using contextvars."""

from contextvars import ContextVar
from contextlib import contextmanager

SYSTEM_ACTOR = "system"

_current_actor_id: ContextVar[str | None] = ContextVar("current_actor_id", default=None)


def get_current_actor_id() -> str:
    """
    Get the acting user's ID from context.

    Falls back to SYSTEM_ACTOR when nothing upstream identified a user
    (background jobs, seed scripts, unauthenticated internal calls).
    """
    actor_id = _current_actor_id.get()
    if actor_id is None:
        return SYSTEM_ACTOR
    return actor_id


def set_current_actor_id(actor_id: str) -> None:
    """
    Set the acting user's ID in context.

    Called by ActorMiddleware once the upstream auth layer has identified
    the caller.
    """
    _current_actor_id.set(actor_id)


def clear_current_actor_id() -> None:
    """
    Clear actor context.

    Must be called in a finally block to prevent context leakage between
    requests handled on the same worker.
    """
    _current_actor_id.set(None)


@contextmanager
def actor_context(actor_id: str):
    """
    Context manager for temporarily acting as a given user.

    Example:
        with actor_context("agent-42"):
            lead_service.update_stage(lead_id, LeadStageUpdate(stage=LeadStage.SITE_VISIT))
    """
    previous = _current_actor_id.get()
    set_current_actor_id(actor_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_actor_id()
        else:
            set_current_actor_id(previous)
