from mentor_api.client.api_client import ApiError, MentorApiClient
from mentor_api.client.chat import ChatController
from mentor_api.client.drafts import DraftStore, JsonFileDraftStorage, MemoryDraftStorage
from mentor_api.client.forms import FormController, career_form, exam_planner_form
from mentor_api.client.history import HistoryReconciler
from mentor_api.client.models import Message, SessionState
from mentor_api.client.session_ids import SessionIdentityManager
from mentor_api.client.undo import ResettableState

__all__ = [
    "ApiError",
    "ChatController",
    "DraftStore",
    "FormController",
    "HistoryReconciler",
    "JsonFileDraftStorage",
    "MemoryDraftStorage",
    "MentorApiClient",
    "Message",
    "ResettableState",
    "SessionIdentityManager",
    "SessionState",
    "career_form",
    "exam_planner_form",
]
