"""Transcript data model shared by the client controllers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from mentor_api.prompts import MODULE_TYPES
from mentor_api.utils.text import CONFIDENCE_LEVELS, DEFAULT_TITLE, ParsedResponse

ROLES = ("user", "assistant")

KIND_NORMAL = "normal"
KIND_CONCEPT = "concept"
KIND_WEAKNESS = "weakness"
MESSAGE_KINDS = (KIND_NORMAL, KIND_CONCEPT, KIND_WEAKNESS)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """
    One transcript entry.

    ``kind`` decides which payload is authoritative: plain ``content`` for
    normal messages, ``concept_data`` for concept cards and ``weakness_data``
    for weakness summaries. Content may only grow while ``streaming`` is set.
    """

    role: str
    content: str = ""
    timestamp: datetime = field(default_factory=_now)
    confidence: Optional[str] = None
    follow_up_question: Optional[str] = None
    kind: str = KIND_NORMAL
    concept_data: Optional[Dict[str, Any]] = None
    weakness_data: Optional[Dict[str, Any]] = None
    streaming: bool = False

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid message role: {self.role!r}")
        if self.kind not in MESSAGE_KINDS:
            raise ValueError(f"Invalid message kind: {self.kind!r}")
        if self.confidence is not None and self.confidence not in CONFIDENCE_LEVELS:
            raise ValueError(f"Invalid confidence: {self.confidence!r}")
        if self.role == "user" and (self.confidence or self.follow_up_question):
            raise ValueError("Confidence and follow-up are only parsed from assistant output")

        has_concept = self.concept_data is not None
        has_weakness = self.weakness_data is not None
        if self.kind == KIND_NORMAL and (has_concept or has_weakness):
            raise ValueError("Normal messages carry no structured payload")
        if self.kind == KIND_CONCEPT and (not has_concept or has_weakness or self.content):
            raise ValueError("Concept messages carry only a concept payload")
        if self.kind == KIND_WEAKNESS and (not has_weakness or has_concept or self.content):
            raise ValueError("Weakness messages carry only a weakness payload")

    def append_chunk(self, text: str) -> None:
        if not self.streaming:
            raise RuntimeError("Message content is final")
        self.content += text

    def finish_stream(self, parsed: ParsedResponse) -> None:
        """Apply markers parsed from the complete text and freeze the content."""
        if not self.streaming:
            raise RuntimeError("Message is not streaming")
        self.content = parsed.content
        self.confidence = parsed.confidence
        self.follow_up_question = parsed.follow_up
        self.streaming = False

    def to_prompt(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "type": self.kind,
        }
        if self.confidence:
            data["confidence"] = self.confidence
        if self.follow_up_question:
            data["followUpQuestion"] = self.follow_up_question
        if self.concept_data is not None:
            data["conceptData"] = self.concept_data
        if self.weakness_data is not None:
            data["weaknessData"] = self.weakness_data
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        raw_timestamp = data.get("timestamp")
        try:
            timestamp = datetime.fromisoformat(raw_timestamp) if raw_timestamp else _now()
        except (TypeError, ValueError):
            timestamp = _now()

        return cls(
            role=data["role"],
            content=data.get("content") or "",
            timestamp=timestamp,
            confidence=data.get("confidence"),
            follow_up_question=data.get("followUpQuestion") or data.get("askBackQuestion"),
            kind=data.get("type") or KIND_NORMAL,
            concept_data=data.get("conceptData"),
            weakness_data=data.get("weaknessData"),
        )


@dataclass
class SessionState:
    """Live state of one conversation thread."""

    session_id: str
    module_type: str = "chat"
    title: str = DEFAULT_TITLE
    messages: List[Message] = field(default_factory=list)
    title_generated: bool = False

    def __post_init__(self):
        if self.module_type not in MODULE_TYPES:
            raise ValueError(f"Unknown module type: {self.module_type!r}")

    @property
    def status(self) -> str:
        return "active" if self.messages else "empty"

    def mark_title_generated(self, title: Optional[str]) -> None:
        """Flip the one-shot title flag; a None title keeps the default label."""
        if self.title_generated:
            raise RuntimeError("Title already generated for this session")
        self.title_generated = True
        if title:
            self.title = title

    def first_user_message(self) -> Optional[Message]:
        return next((message for message in self.messages if message.role == "user"), None)

    def content(self) -> Dict[str, Any]:
        return {"messages": [message.to_dict() for message in self.messages]}
