"""Wrapper utilities around the OpenAI client."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, Iterator, List, Optional

from openai import OpenAI

from mentor_api.prompts import get_confusion_clarity_prompt, get_system_prompt, normalize_language
from mentor_api.utils.text import extract_json_object

_LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")

Message = Dict[str, str]


class CompletionError(RuntimeError):
    """Raised when the model returns nothing usable for a request."""


def get_openai_client() -> OpenAI:
    """Instantiate an OpenAI client using the configured API key."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")
    return OpenAI(api_key=api_key)


def create_response(
    client: OpenAI,
    messages: List[Message],
    *,
    instructions: Optional[str] = None,
    model: Optional[str] = None,
    max_output_tokens: int = 600,
    stream: bool = False,
):
    """Invoke the Responses API with shared defaults."""
    return client.responses.create(
        model=model or DEFAULT_MODEL,
        instructions=instructions,
        input=messages,
        max_output_tokens=max_output_tokens,
        stream=stream,
    )


def build_instructions(mode: str, language: str, first_name: Optional[str] = None) -> str:
    """System prompt for a module, with the clarity format appended in confusion mode."""
    instructions = get_system_prompt(language, first_name, mode)
    if mode == "confusion":
        instructions += "\n\n" + get_confusion_clarity_prompt(language)
    return instructions


def complete(
    messages: List[Message],
    mode: str,
    language: str,
    first_name: Optional[str] = None,
    *,
    max_output_tokens: int = 1500,
) -> str:
    """Run a single-shot completion and return the reply text."""
    client = get_openai_client()
    response = create_response(
        client,
        messages,
        instructions=build_instructions(mode, language, first_name),
        max_output_tokens=max_output_tokens,
    )
    text = (getattr(response, "output_text", None) or "").strip()
    if not text:
        raise CompletionError("The model returned an empty response.")
    return text


def _iter_text_deltas(events: Iterable[Any]) -> Iterator[str]:
    for event in events:
        event_type = getattr(event, "type", "")
        if event_type == "response.output_text.delta":
            delta = getattr(event, "delta", "")
            if delta:
                yield delta
        elif event_type in ("error", "response.failed"):
            message = getattr(event, "message", None) or "The model stream failed."
            raise CompletionError(message)


def stream_chat(
    messages: List[Message],
    mode: str,
    language: str,
    first_name: Optional[str] = None,
) -> Iterator[str]:
    """
    Open a streamed completion and return an iterator over text deltas.

    The upstream request is made before this function returns, so provider
    errors surface here rather than halfway through the stream.
    """
    client = get_openai_client()
    events = create_response(
        client,
        messages,
        instructions=build_instructions(mode, language, first_name),
        max_output_tokens=1500,
        stream=True,
    )
    return _iter_text_deltas(events)


def complete_structured(
    system_prompt: str,
    messages: List[Message],
    language: str,
    required_keys: Iterable[str],
) -> Dict[str, Any]:
    """
    Request a JSON object and validate that every required key is present.

    Malformed or incomplete output raises CompletionError.
    """
    client = get_openai_client()
    instructions = (
        f"{system_prompt}\n\n"
        f"Write every string value in {normalize_language(language)}. "
        "Return only the JSON object, with no text before or after it."
    )
    response = create_response(client, messages, instructions=instructions, max_output_tokens=800)
    raw_text = (getattr(response, "output_text", None) or "").strip()

    try:
        parsed = extract_json_object(raw_text)
    except ValueError as exc:
        _LOGGER.warning("Structured completion returned unparseable output: %s", raw_text[:200])
        raise CompletionError(f"Invalid structured response: {exc}") from exc

    missing = [key for key in required_keys if parsed.get(key) in (None, "")]
    if missing:
        raise CompletionError(f"Structured response missing fields: {', '.join(missing)}")
    return parsed
