"""Service layer modules for the Mentor API."""

from . import auth_service, completion_service, history_service, memory_service

__all__ = [
    "auth_service",
    "completion_service",
    "history_service",
    "memory_service",
]
