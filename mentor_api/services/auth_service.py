"""Lookup of sessions issued by the external auth provider."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from mentor_api import database


def get_session(token: str) -> Optional[Dict[str, Any]]:
    """Retrieve a session by token, or None when unknown."""
    db = database.get_database()

    document = db.sessions.find_one({"token": token})

    if document:
        document["_id"] = str(document["_id"])
        if "created_at" in document:
            document["issued_at"] = int(document["created_at"].timestamp())

    return document


def delete_session(token: str) -> bool:
    """Delete a session. Returns False when it did not exist."""
    db = database.get_database()

    result = db.sessions.delete_one({"token": token})
    return result.deleted_count > 0


def cleanup_expired_sessions() -> int:
    """Remove expired sessions from MongoDB and return how many were removed."""
    db = database.get_database()

    result = db.sessions.delete_many({"expires_at": {"$lte": int(time.time())}})
    return result.deleted_count
