"""In-memory data stores backing the API process."""

from typing import Any, Dict

# Bearer tokens mapped to their session metadata (user_id, expires_at).
sessions: Dict[str, Dict[str, Any]] = {}
