"""Service for managing conversation history records in MongoDB."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

from mentor_api import database
from mentor_api.prompts import MODULE_TYPES


def _history_collection():
    return database.get_database().history


def _serialize(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a raw history document into a JSON-friendly dictionary."""
    item = {
        "id": str(document["_id"]),
        "user_id": document["user_id"],
        "session_id": document["session_id"],
        "module_type": document.get("module_type", "chat"),
        "title": document.get("title"),
        "content": document.get("content") or {},
        "metadata": document.get("metadata") or {},
    }
    for field in ("created_at", "updated_at"):
        value = document.get(field)
        item[field] = value.isoformat() if isinstance(value, datetime) else value
    return item


def _validate_module_type(module_type: str) -> str:
    if module_type not in MODULE_TYPES:
        raise ValueError(f"Unknown module type: {module_type!r}")
    return module_type


def get_history_by_session(user_id: str, session_id: str) -> Optional[Dict[str, Any]]:
    """
    Fetch the most recent history record for a user's session.

    Args:
        user_id: The owning user
        session_id: The conversation session identifier

    Returns:
        The history item, or None for a session that was never persisted
    """
    document = _history_collection().find_one(
        {"user_id": user_id, "session_id": session_id},
        sort=[("updated_at", DESCENDING)],
    )
    if document is None:
        return None
    return _serialize(document)


def save_history(
    user_id: str,
    session_id: str,
    module_type: str,
    content: Dict[str, Any],
    title: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Insert or update the history record for ``(user_id, session_id)``.

    An existing record keeps its title and metadata unless new values are
    supplied. ``created_at`` is only written on insert.

    Returns:
        The stored history item
    """
    _validate_module_type(module_type)
    now = datetime.utcnow()

    set_fields: Dict[str, Any] = {
        "module_type": module_type,
        "content": content,
        "updated_at": now,
    }
    on_insert: Dict[str, Any] = {
        "user_id": user_id,
        "session_id": session_id,
        "created_at": now,
    }

    if title is not None:
        set_fields["title"] = title
    else:
        on_insert["title"] = None

    if metadata is not None:
        set_fields["metadata"] = metadata
    else:
        on_insert["metadata"] = {}

    collection = _history_collection()
    collection.update_one(
        {"user_id": user_id, "session_id": session_id},
        {"$set": set_fields, "$setOnInsert": on_insert},
        upsert=True,
    )

    stored = collection.find_one({"user_id": user_id, "session_id": session_id})
    return _serialize(stored)


def list_history(
    user_id: str,
    module_type: Optional[str] = None,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    """
    List a user's history items, most recently updated first.

    Args:
        user_id: The owning user
        module_type: Optional module filter (chat, notes, career, ...)
        limit: Maximum number of items to return
    """
    query: Dict[str, Any] = {"user_id": user_id}
    if module_type:
        query["module_type"] = _validate_module_type(module_type)

    cursor = (
        _history_collection()
        .find(query)
        .sort([("updated_at", DESCENDING), ("_id", DESCENDING)])
        .limit(limit)
    )
    return [_serialize(document) for document in cursor]


def delete_session(user_id: str, session_id: str) -> int:
    """Permanently delete one session's history. Returns the number of records removed."""
    result = _history_collection().delete_many({"user_id": user_id, "session_id": session_id})
    return result.deleted_count


def delete_all_by_module(user_id: str, module_type: str) -> int:
    """Permanently delete every history record of one module for a user."""
    _validate_module_type(module_type)
    result = _history_collection().delete_many({"user_id": user_id, "module_type": module_type})
    return result.deleted_count


def create_indexes():
    """Create database indexes for history lookups."""
    collection = _history_collection()

    collection.create_index([("user_id", 1), ("session_id", 1)], unique=True)
    collection.create_index([("user_id", 1), ("module_type", 1), ("updated_at", -1)])
