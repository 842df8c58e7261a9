"""Chat session lifecycle: sending, streaming, titling, resets and history sync."""

from __future__ import annotations

import codecs
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from mentor_api.client.drafts import DraftStore
from mentor_api.client.history import HistoryReconciler
from mentor_api.client.models import KIND_CONCEPT, KIND_WEAKNESS, Message, SessionState
from mentor_api.client.session_ids import SessionIdentityManager
from mentor_api.client.undo import DEFAULT_UNDO_SECONDS, ResettableState
from mentor_api.prompts import DEFAULT_LANGUAGE
from mentor_api.utils.text import DEFAULT_TITLE, UNTITLED_TITLE, parse_ai_response, split_stream_error

_LOGGER = logging.getLogger(__name__)

CHAT_DRAFT_KEY = "chat-input-draft"
ERROR_REPLY = "Sorry, I encountered an error: {error}. Please try again."
EMPTY_TOPIC_NOTICE = 'Please type a topic or question first, then click "Explain in 2 Minutes".'


class ChatController:
    """
    Drives one chat page.

    Args:
        completion: Client with ``stream_chat``, ``explain_concept`` and
            ``analyze_weakness`` (see ``MentorApiClient``).
        reconciler: History wrapper used for load, save and delete.
        session_ids: Owner of the active session id.
        drafts: Draft store for the unsent input.
        user_id: Owner of persisted history; nothing is persisted without one.
        memory: Optional interaction log with ``save_memory(user_id, role, content,
            interaction_type)``; writes are best effort.
    """

    def __init__(
        self,
        completion,
        reconciler: HistoryReconciler,
        session_ids: SessionIdentityManager,
        drafts: DraftStore,
        user_id: Optional[str] = None,
        language: str = DEFAULT_LANGUAGE,
        first_name: Optional[str] = None,
        module_type: str = "chat",
        undo_timeout: float = DEFAULT_UNDO_SECONDS,
        clock: Callable[[], float] = time.time,
        memory=None,
    ):
        self.completion = completion
        self.reconciler = reconciler
        self.session_ids = session_ids
        self.drafts = drafts
        self.user_id = user_id
        self.language = language
        self.first_name = first_name
        self.module_type = module_type
        self.memory = memory

        self.state = SessionState(session_ids.get_or_create(), module_type)
        self.busy = False
        self.sessions: List[Dict[str, Any]] = []

        restored = drafts.restore(CHAT_DRAFT_KEY)
        self.input = restored if isinstance(restored, str) else ""
        self._input_state = ResettableState(self.input, on_reset=self._apply_input, timeout=undo_timeout, clock=clock)

        self.load()

    @property
    def session_id(self) -> str:
        return self.state.session_id

    @property
    def messages(self) -> List[Message]:
        return self.state.messages

    @property
    def title(self) -> str:
        return self.state.title

    @property
    def undo_available(self) -> bool:
        return self._input_state.undo_available

    # Input

    def set_input(self, text: str) -> None:
        self.input = text
        self._input_state.set(text)
        self.drafts.save(CHAT_DRAFT_KEY, text)

    def reset_input(self) -> None:
        """Clear the input box; restorable with ``undo_reset`` for a few seconds."""
        self._input_state.set(self.input)
        self._input_state.reset("")
        self.drafts.clear(CHAT_DRAFT_KEY)

    def undo_reset(self) -> bool:
        return self._input_state.undo()

    def dismiss_undo(self) -> None:
        self._input_state.dismiss()

    def _apply_input(self, text: str) -> None:
        self.input = text
        self.drafts.save(CHAT_DRAFT_KEY, text)

    # Requests

    def send(self) -> Optional[Message]:
        """
        Send the current input and stream the reply into the transcript.

        Returns the finished assistant message, the error message appended in
        its place, or None when nothing was sent or the session changed while
        the reply was in flight.
        """
        if not self.input.strip() or self.busy:
            return None

        session_id = self.session_id
        question = self.input
        self._append(Message(role="user", content=question))
        self._remember("user", question)
        self.input = ""
        self._input_state.set("")
        self.drafts.clear(CHAT_DRAFT_KEY)

        self.busy = True
        reply: Optional[Message] = None
        try:
            chunks = self.completion.stream_chat(self._prompt_messages(), self.language, self.first_name)
            if not self._is_current(session_id):
                return None

            reply = Message(role="assistant", streaming=True)
            self._append(reply)

            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            for chunk in chunks:
                if not self._is_current(session_id):
                    _LOGGER.info("Dropping reply for abandoned session %s", session_id)
                    return None
                text = decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
                if text:
                    reply.append_chunk(text)
            reply.append_chunk(decoder.decode(b"", final=True))

            if not self._is_current(session_id):
                return None
            text, stream_error = split_stream_error(reply.content)
            if stream_error is not None:
                reply.content = text
                raise RuntimeError(stream_error)
            if not text.strip():
                raise RuntimeError("The mentor returned an empty response")

            reply.finish_stream(parse_ai_response(reply.content))
            self._sync()
            self._remember("assistant", reply.content)
            return reply
        except Exception as exc:
            _LOGGER.warning("Chat request failed: %s", exc)
            if not self._is_current(session_id):
                return None
            if reply is not None:
                self._discard_partial(reply)
            return self._append_error(exc)
        finally:
            self.busy = False

    def explain_concept(self, topic: Optional[str] = None) -> Optional[Message]:
        """Append a two-minute concept card for ``topic`` or the current input."""
        topic = (topic if topic is not None else self.input).strip()
        if not topic:
            notice = Message(role="assistant", content=EMPTY_TOPIC_NOTICE)
            self._append(notice)
            return notice
        if self.busy:
            return None

        session_id = self.session_id
        self.busy = True
        try:
            data = self.completion.explain_concept(topic, self.language, self.first_name)
            if not self._is_current(session_id):
                return None
            card = Message(
                role="assistant",
                kind=KIND_CONCEPT,
                concept_data={
                    "concept": data["concept"],
                    "example": data["example"],
                    "takeaway": data["takeaway"],
                    "topic": topic,
                },
            )
            self._append(card)
            self._remember("assistant", "2-Min Concept: " + (data.get("raw") or json.dumps(data, ensure_ascii=False)))
            return card
        except Exception as exc:
            _LOGGER.warning("Concept request failed: %s", exc)
            if not self._is_current(session_id):
                return None
            return self._append_error(exc)
        finally:
            self.busy = False

    def analyze_weakness(self) -> Optional[Message]:
        """Append a weakness summary for the transcript so far."""
        if self.busy or not self.messages:
            return None

        session_id = self.session_id
        self.busy = True
        try:
            data = self.completion.analyze_weakness(self._prompt_messages(), self.language)
            if not self._is_current(session_id):
                return None
            summary = Message(
                role="assistant",
                kind=KIND_WEAKNESS,
                weakness_data={
                    "weakAreas": list(data["weakAreas"]),
                    "whyWeak": data["whyWeak"],
                    "nextActions": list(data["nextActions"]),
                    "confidence": data["confidence"],
                },
            )
            self._append(summary)
            self._remember("assistant", "Weakness Analysis: " + json.dumps(summary.weakness_data, ensure_ascii=False))
            return summary
        except Exception as exc:
            _LOGGER.warning("Weakness analysis failed: %s", exc)
            if not self._is_current(session_id):
                return None
            return self._append_error(exc)
        finally:
            self.busy = False

    # Session lifecycle

    def load(self) -> None:
        """Replace the transcript with what history holds for the active session."""
        if not self.user_id:
            return

        item = self.reconciler.load_by_session(self.user_id, self.session_id)
        if item is None:
            self.state = SessionState(self.session_id, self.module_type)
            return

        raw_messages = (item.get("content") or {}).get("messages") or []
        messages = []
        for raw in raw_messages:
            try:
                messages.append(Message.from_dict(raw))
            except (KeyError, TypeError, ValueError) as exc:
                _LOGGER.warning("Skipping unreadable message in session %s: %s", self.session_id, exc)

        title = item.get("title")
        self.state = SessionState(
            self.session_id,
            self.module_type,
            title=title or DEFAULT_TITLE,
            messages=messages,
            title_generated=bool(title),
        )

    def new_chat(self) -> str:
        """Save the current conversation and start an empty one."""
        self._sync()
        return self._start_fresh_session()

    def reset_chat(self) -> str:
        """Keep the conversation in history and clear the screen under a new session id."""
        return self.new_chat()

    def select_session(self, session_id: str) -> None:
        """Switch to a past session from the history list."""
        if session_id == self.session_id:
            return

        self._sync()
        self.session_ids.set_active(session_id)
        self.state = SessionState(session_id, self.module_type, title_generated=True)
        self.load()
        if not self.state.title_generated:
            self.state.title = UNTITLED_TITLE
            self.state.title_generated = True

    def refresh_sessions(self) -> List[Dict[str, Any]]:
        self.sessions = self.reconciler.list_sessions(self.user_id, self.module_type) if self.user_id else []
        return self.sessions

    def delete_session(self, session_id: str) -> bool:
        """Delete one saved session; deleting the open one also clears the screen."""
        if not self.user_id:
            return False
        if not self.reconciler.delete_session(self.user_id, session_id):
            return False

        self.sessions = [item for item in self.sessions if item.get("session_id") != session_id]
        if session_id == self.session_id:
            self._start_fresh_session()
        return True

    def delete_all_chats(self) -> bool:
        """Hard-delete this module's history. UI state is kept when the delete fails."""
        if self.user_id and not self.reconciler.delete_all_by_module(self.user_id, self.module_type):
            return False

        self.sessions = []
        self._start_fresh_session()
        return True

    # Internals

    def _start_fresh_session(self) -> str:
        session_id = self.session_ids.rotate()
        self.state = SessionState(session_id, self.module_type)
        self.input = ""
        self._input_state.set("")
        self._input_state.dismiss()
        self.drafts.clear(CHAT_DRAFT_KEY)
        return session_id

    def _is_current(self, session_id: str) -> bool:
        return self.session_id == session_id

    def _prompt_messages(self) -> List[Dict[str, str]]:
        return [message.to_prompt() for message in self.messages if message.content]

    def _append(self, message: Message) -> None:
        self.state.messages.append(message)
        self.reconciler.maybe_generate_title(self.state)
        self._sync()

    def _append_error(self, exc: Exception) -> Message:
        message = Message(role="assistant", content=ERROR_REPLY.format(error=exc))
        self._append(message)
        return message

    def _remember(self, role: str, content: str) -> None:
        if self.memory is None or not self.user_id:
            return
        try:
            self.memory.save_memory(self.user_id, role, content, "chat")
        except Exception as exc:
            _LOGGER.warning("Could not save %s turn to memory: %s", role, exc)

    def _discard_partial(self, reply: Message) -> None:
        if reply.streaming:
            if reply.content.strip():
                reply.finish_stream(parse_ai_response(reply.content))
            else:
                self.state.messages.remove(reply)

    def _sync(self) -> bool:
        if not self.user_id:
            return False
        return self.reconciler.sync(self.user_id, self.state, metadata={"language": self.language})
