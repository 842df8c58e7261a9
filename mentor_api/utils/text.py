"""Text parsing and heuristic utilities."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, NamedTuple, Optional, Tuple

DEFAULT_TITLE = "New Chat"
UNTITLED_TITLE = "Untitled Chat"
TITLE_MAX_WORDS = 7

CONFIDENCE_LEVELS = ("high", "medium", "low")

# Appended to a streamed body when the model fails after the response started.
STREAM_ERROR_MARKER = "\x00ERROR:"

_CONFIDENCE_PATTERN = re.compile(r"Confidence:\s*(High|Medium|Low)", re.IGNORECASE)
_CONFIDENCE_LINE = re.compile(r"Confidence:.*$", re.IGNORECASE | re.MULTILINE)
_FOLLOW_UP_PATTERN = re.compile(r"Ask-Me-Back:\s*(.+)", re.IGNORECASE)
_FOLLOW_UP_LINE = re.compile(r"Ask-Me-Back:.*$", re.IGNORECASE | re.MULTILINE)
_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


class ParsedResponse(NamedTuple):
    content: str
    confidence: Optional[str] = None
    follow_up: Optional[str] = None


def parse_ai_response(text: str) -> ParsedResponse:
    """
    Split assistant output into display text and optional markers.

    ``Confidence: High|Medium|Low`` and ``Ask-Me-Back: <question>`` lines are
    removed from the content. Missing markers leave the fields as None.
    """
    text = text or ""

    confidence_match = _CONFIDENCE_PATTERN.search(text)
    follow_up_match = _FOLLOW_UP_PATTERN.search(text)

    content = _CONFIDENCE_LINE.sub("", text, count=1)
    content = _FOLLOW_UP_LINE.sub("", content, count=1)

    return ParsedResponse(
        content=content.strip(),
        confidence=confidence_match.group(1).lower() if confidence_match else None,
        follow_up=follow_up_match.group(1).strip() if follow_up_match else None,
    )


def split_stream_error(text: str) -> Tuple[str, Optional[str]]:
    """Return ``(text, error)``; ``error`` is set when the stream ended with a failure marker."""
    head, marker, error = (text or "").partition(STREAM_ERROR_MARKER)
    if not marker:
        return head, None
    return head, error.strip() or "Stream interrupted"


def generate_title(first_message: str, max_words: int = TITLE_MAX_WORDS) -> str:
    """Derive a short session title from the first user message."""
    words = (first_message or "").split()
    if not words:
        return UNTITLED_TITLE

    title = " ".join(words[:max_words])
    if len(words) > max_words:
        title += "..."
    return title


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse a single JSON object out of model output.

    Accepts plain JSON, JSON in a code fence, or one object embedded in prose.
    Raises ValueError for anything else; no repair is attempted.
    """
    if not text or not text.strip():
        raise ValueError("Empty model output")

    candidates = [text.strip()]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError("Model output did not contain a JSON object")
