"""Tests for the append-only interaction memory."""

from __future__ import annotations

import pytest

from mentor_api.services import memory_service


def test_memory_rows_are_returned_newest_first():
    memory_service.save_memory("user-1", "user", "first", "chat")
    memory_service.save_memory("user-1", "assistant", "second", "chat")
    memory_service.save_memory("user-1", "user", '{"goals": "AI"}', "career_goal")

    rows = memory_service.get_recent_memory("user-1")

    assert [row["content"] for row in rows] == ['{"goals": "AI"}', "second", "first"]


def test_memory_filters_by_type_and_user():
    memory_service.save_memory("user-1", "user", "mine", "chat")
    memory_service.save_memory("user-2", "user", "theirs", "chat")
    memory_service.save_memory("user-1", "user", "goal", "career_goal")

    rows = memory_service.get_recent_memory("user-1", "chat")

    assert [row["content"] for row in rows] == ["mine"]


def test_latest_memory():
    memory_service.save_memory("user-1", "user", "old goal", "career_goal")
    memory_service.save_memory("user-1", "user", "new goal", "career_goal")

    assert memory_service.get_latest_memory("user-1", "career_goal")["content"] == "new goal"
    assert memory_service.get_latest_memory("user-1", "career_roadmap") is None


@pytest.mark.parametrize("role, interaction_type", [("system", "chat"), ("user", "")])
def test_invalid_rows_rejected(role, interaction_type):
    with pytest.raises(ValueError):
        memory_service.save_memory("user-1", role, "text", interaction_type)
