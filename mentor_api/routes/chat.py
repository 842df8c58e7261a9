"""/api/chat endpoints: streamed mentor chat and structured study helpers."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from mentor_api.prompts import get_two_minute_concept_prompt, get_weakness_analysis_prompt, normalize_language
from mentor_api.services import completion_service
from mentor_api.services.completion_service import CompletionError
from mentor_api.utils.auth import require_user
from mentor_api.utils.text import CONFIDENCE_LEVELS, STREAM_ERROR_MARKER

bp = Blueprint("chat", __name__, url_prefix="/api/chat")

CONCEPT_KEYS = ("concept", "example", "takeaway")
WEAKNESS_KEYS = ("weakAreas", "whyWeak", "nextActions", "confidence")
MAX_WEAKNESS_ITEMS = 3


def normalize_messages(raw: Any) -> Optional[List[Dict[str, str]]]:
    """Return ``[{role, content}]`` for a well-formed non-empty list, otherwise None."""
    if not isinstance(raw, list) or not raw:
        return None

    normalized: List[Dict[str, str]] = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        role = item.get("role")
        content = item.get("content")
        if role not in ("user", "assistant") or not isinstance(content, str):
            return None
        normalized.append({"role": role, "content": content})
    return normalized


def _first_name(payload: Dict[str, Any]) -> Optional[str]:
    value = payload.get("firstName")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _string_list(value: Any, field: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise CompletionError(f"Structured response field '{field}' must be a list of strings")
    return [item.strip() for item in value if item.strip()][:MAX_WEAKNESS_ITEMS]


def _weakness_payload(parsed: Dict[str, Any]) -> Dict[str, Any]:
    confidence = str(parsed["confidence"]).strip().lower()
    if confidence not in CONFIDENCE_LEVELS:
        raise CompletionError(f"Unexpected confidence value: {parsed['confidence']!r}")

    return {
        "weakAreas": _string_list(parsed["weakAreas"], "weakAreas"),
        "whyWeak": str(parsed["whyWeak"]).strip(),
        "nextActions": _string_list(parsed["nextActions"], "nextActions"),
        "confidence": confidence,
    }


def _transcript(messages: List[Dict[str, str]]) -> str:
    lines = ["Conversation to analyze:"]
    for message in messages:
        speaker = "Student" if message["role"] == "user" else "Mentor"
        lines.append(f"{speaker}: {message['content']}")
    return "\n".join(lines)


@bp.post("")
def chat_with_mentor():
    """Stream a mentor reply as plain UTF-8 text."""
    _, error_response = require_user()
    if error_response is not None:
        return error_response

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    messages = normalize_messages(payload.get("messages"))
    if messages is None:
        return jsonify(error="Invalid messages format"), 400

    language = normalize_language(payload.get("language"))

    # The first chunk is pulled here so failures before any text still get a 500.
    try:
        chunks = iter(completion_service.stream_chat(messages, "chat", language, _first_name(payload)))
        first_chunk = next(chunks, None)
    except Exception as exc:
        current_app.logger.exception("Chat completion request failed")
        return jsonify(error=str(exc) or "Failed to get AI response"), 500

    if first_chunk is None:
        current_app.logger.error("Chat completion returned no text")
        return jsonify(error="The mentor returned an empty response"), 500

    def generate():
        try:
            yield first_chunk.encode("utf-8")
            for chunk in chunks:
                yield chunk.encode("utf-8")
        except Exception as exc:
            current_app.logger.exception("Chat stream interrupted")
            yield (STREAM_ERROR_MARKER + (str(exc) or "Stream interrupted")).encode("utf-8")

    return Response(stream_with_context(generate()), mimetype="text/plain; charset=utf-8")


@bp.post("/2min-concept")
def explain_two_minute_concept():
    """Explain a topic as a concept card: concept, example and takeaway."""
    _, error_response = require_user()
    if error_response is not None:
        return error_response

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    topic = payload.get("topic")
    if not isinstance(topic, str) or not topic.strip():
        return jsonify(error="Topic is required"), 400

    topic = topic.strip()
    language = normalize_language(payload.get("language"))
    system_prompt = get_two_minute_concept_prompt(topic, language, _first_name(payload))

    try:
        parsed = completion_service.complete_structured(
            system_prompt,
            [{"role": "user", "content": f"Explain: {topic}"}],
            language,
            CONCEPT_KEYS,
        )
    except Exception as exc:
        current_app.logger.exception("2-minute concept request failed")
        return jsonify(error=str(exc) or "Failed to generate 2-minute concept"), 500

    return (
        jsonify(
            concept=parsed["concept"],
            example=parsed["example"],
            takeaway=parsed["takeaway"],
            raw=json.dumps(parsed, ensure_ascii=False),
        ),
        200,
    )


@bp.post("/weakness")
def analyze_weakness():
    """Summarize the student's weak areas from the conversation so far."""
    _, error_response = require_user()
    if error_response is not None:
        return error_response

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    messages = normalize_messages(payload.get("messages"))
    if messages is None:
        return jsonify(error="Invalid messages format"), 400

    language = normalize_language(payload.get("language"))

    try:
        parsed = completion_service.complete_structured(
            get_weakness_analysis_prompt(language),
            [{"role": "user", "content": _transcript(messages)}],
            language,
            WEAKNESS_KEYS,
        )
        summary = _weakness_payload(parsed)
    except Exception as exc:
        current_app.logger.exception("Weakness analysis request failed")
        return jsonify(error=str(exc) or "Failed to analyze weak areas"), 500

    return jsonify(summary), 200
