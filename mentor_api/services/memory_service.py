"""Append-only interaction memory used for lightweight cross-module recall."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from mentor_api import database

VALID_ROLES = {"user", "assistant"}


def _memory_collection():
    return database.get_database().user_memory


def _serialize(document: Dict[str, Any]) -> Dict[str, Any]:
    created_at = document.get("created_at")
    return {
        "id": str(document["_id"]),
        "user_id": document["user_id"],
        "role": document["role"],
        "content": document["content"],
        "interaction_type": document["interaction_type"],
        "created_at": created_at.isoformat() if isinstance(created_at, datetime) else created_at,
    }


def save_memory(user_id: str, role: str, content: str, interaction_type: str) -> str:
    """
    Append one memory row.

    Args:
        user_id: The owning user
        role: 'user' or 'assistant'
        content: Raw interaction text (JSON strings are stored as-is)
        interaction_type: Free-form tag such as 'chat' or 'career_goal'

    Returns:
        The MongoDB document ID as a string
    """
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid memory role: {role!r}")
    if not interaction_type:
        raise ValueError("interaction_type is required")

    result = _memory_collection().insert_one(
        {
            "user_id": user_id,
            "role": role,
            "content": content,
            "interaction_type": interaction_type,
            "created_at": datetime.utcnow(),
        }
    )
    return str(result.inserted_id)


def get_recent_memory(
    user_id: str,
    interaction_type: Optional[str] = None,
    limit: int = 10,
) -> List[Dict[str, Any]]:
    """Return the newest memory rows for a user, newest first."""
    query: Dict[str, Any] = {"user_id": user_id}
    if interaction_type:
        query["interaction_type"] = interaction_type

    cursor = (
        _memory_collection()
        .find(query)
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .limit(limit)
    )
    return [_serialize(document) for document in cursor]


def get_latest_memory(user_id: str, interaction_type: str) -> Optional[Dict[str, Any]]:
    """Return the most recent memory row of one interaction type, if any."""
    rows = get_recent_memory(user_id, interaction_type=interaction_type, limit=1)
    return rows[0] if rows else None


def create_indexes():
    """Create database indexes for memory lookups."""
    _memory_collection().create_index([("user_id", 1), ("interaction_type", 1), ("created_at", -1)])
