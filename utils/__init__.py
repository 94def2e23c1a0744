"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, parse_iso, end_of_day
from utils.user_context import (
    SYSTEM_ACTOR,
    get_current_actor_id,
    set_current_actor_id,
    clear_current_actor_id,
    actor_context,
)
