"""HTTP client for the mentor API."""

from __future__ import annotations

import os
from typing import Any, Dict, Iterator, List, Optional

import requests

DEFAULT_BASE_URL = "http://localhost:5050"


class ApiError(RuntimeError):
    """Non-2xx response from the API."""

    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return response.text[:500] or f"HTTP {response.status_code}"


class MentorApiClient:
    """
    Calls the completion, history and memory endpoints.

    The history methods mirror ``history_service`` so either can back a
    ``HistoryReconciler``. When no bearer token is set, ``user_id`` is sent in
    the ``X-User-Id`` header, which the API honours while auth is disabled.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 60,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or os.getenv("MENTOR_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, user_id: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        elif user_id:
            headers["X-User-Id"] = user_id
        return headers

    def _request(self, method: str, path: str, user_id: Optional[str] = None, **kwargs) -> requests.Response:
        response = self.http.request(
            method,
            f"{self.base_url}{path}",
            headers=self._headers(user_id),
            timeout=self.timeout,
            **kwargs,
        )
        if not response.ok:
            message = _error_message(response)
            response.close()
            raise ApiError(response.status_code, message)
        return response

    # Completion endpoints

    def stream_chat(
        self,
        messages: List[Dict[str, str]],
        language: str,
        first_name: Optional[str] = None,
    ) -> Iterator[bytes]:
        """Start a streamed reply and return its raw byte chunks."""
        payload = {"messages": messages, "language": language, "firstName": first_name}
        response = self._request("POST", "/api/chat", json=payload, stream=True)
        return self._iter_body(response)

    @staticmethod
    def _iter_body(response: requests.Response) -> Iterator[bytes]:
        with response:
            for chunk in response.iter_content(chunk_size=None):
                if chunk:
                    yield chunk

    def explain_concept(self, topic: str, language: str, first_name: Optional[str] = None) -> Dict[str, Any]:
        payload = {"topic": topic, "language": language, "firstName": first_name}
        return self._request("POST", "/api/chat/2min-concept", json=payload).json()

    def analyze_weakness(self, messages: List[Dict[str, str]], language: str) -> Dict[str, Any]:
        payload = {"messages": messages, "language": language}
        return self._request("POST", "/api/chat/weakness", json=payload).json()

    def career_roadmap(self, form: Dict[str, str], user_id: Optional[str] = None) -> str:
        return self._request("POST", "/api/career", user_id, json=form).json()["roadmap"]

    def exam_plan(self, form: Dict[str, str], user_id: Optional[str] = None) -> str:
        return self._request("POST", "/api/exam-planner", user_id, json=form).json()["plan"]

    # History store

    def get_history_by_session(self, user_id: str, session_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self._request("GET", f"/api/history/{session_id}", user_id)
        except ApiError as exc:
            if exc.status == 404:
                return None
            raise
        return response.json()["item"]

    def save_history(
        self,
        user_id: str,
        session_id: str,
        module_type: str,
        content: Dict[str, Any],
        title: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"moduleType": module_type, "content": content}
        if title is not None:
            payload["title"] = title
        if metadata is not None:
            payload["metadata"] = metadata
        return self._request("PUT", f"/api/history/{session_id}", user_id, json=payload).json()["item"]

    def list_history(self, user_id: str, module_type: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit}
        if module_type:
            params["module"] = module_type
        return self._request("GET", "/api/history", user_id, params=params).json()["items"]

    def delete_session(self, user_id: str, session_id: str) -> int:
        return self._request("DELETE", f"/api/history/{session_id}", user_id).json().get("deleted", 0)

    def delete_all_by_module(self, user_id: str, module_type: str) -> int:
        response = self._request("DELETE", "/api/history", user_id, params={"module": module_type})
        return response.json().get("deleted", 0)

    # Memory

    def save_memory(self, user_id: Optional[str], role: str, content: str, interaction_type: str) -> str:
        response = self._request(
            "POST",
            "/api/memory",
            user_id,
            json={"role": role, "content": content, "interactionType": interaction_type},
        )
        return response.json()["id"]

    def latest_memory(self,interaction_type: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        try:
            response = self._request("GET", f"/api/memory/latest/{interaction_type}", user_id)
        except ApiError as exc:
            if exc.status == 404:
                return None
            raise
        return response.json()["item"]
