"""Tests for utils/user_context.py - actor identity propagation via contextvars."""

import pytest

from utils.user_context import (
    SYSTEM_ACTOR,
    actor_context,
    clear_current_actor_id,
    get_current_actor_id,
    set_current_actor_id,
)


class TestGetCurrentActorId:
    """Tests for get_current_actor_id()."""

    def test_defaults_to_system(self):
        """No context means the system actor."""
        clear_current_actor_id()
        assert get_current_actor_id() == SYSTEM_ACTOR == "system"


class TestSetAndClear:
    """Tests for set_current_actor_id() and clear_current_actor_id()."""

    def test_set_then_get(self):
        set_current_actor_id("agent-001")
        assert get_current_actor_id() == "agent-001"
        clear_current_actor_id()

    def test_clear_then_get_is_system(self):
        set_current_actor_id("agent-001")
        clear_current_actor_id()
        assert get_current_actor_id() == SYSTEM_ACTOR


class TestActorContext:
    """Tests for the actor_context() context manager."""

    def test_sets_within_block(self):
        with actor_context("agent-001"):
            assert get_current_actor_id() == "agent-001"

    def test_clears_after_block(self):
        with actor_context("agent-001"):
            pass
        assert get_current_actor_id() == SYSTEM_ACTOR

    def test_nested_restores_outer(self):
        with actor_context("agent-001"):
            with actor_context("agent-002"):
                assert get_current_actor_id() == "agent-002"
            assert get_current_actor_id() == "agent-001"

    def test_restored_on_exception(self):
        with pytest.raises(RuntimeError):
            with actor_context("agent-001"):
                raise RuntimeError("boom")
        assert get_current_actor_id() == SYSTEM_ACTOR
