"""Tests for the chat session lifecycle against an in-memory history store."""

from __future__ import annotations

import pytest

from mentor_api.client.api_client import ApiError
from mentor_api.client.chat import CHAT_DRAFT_KEY, EMPTY_TOPIC_NOTICE, ChatController
from mentor_api.client.drafts import DraftStore, MemoryDraftStorage
from mentor_api.client.history import HistoryReconciler
from mentor_api.client.session_ids import SessionIdentityManager
from mentor_api.services import history_service, memory_service
from mentor_api.utils.text import STREAM_ERROR_MARKER, generate_title

USER_ID = "student-1"


class FakeTimer:
    created = []

    def __init__(self, interval, function, args=None):
        FakeTimer.created.append(self)
        self.function = function
        self.args = args or ()
        self.cancelled = False

    def start(self):
        pass

    def cancel(self):
        self.cancelled = True


class FakeCompletion:
    """Stands in for MentorApiClient; ``during_stream`` runs after the first chunk."""

    def __init__(self, chunks=(), error=None, stream_error=None, during_stream=None):
        self.chunks = list(chunks)
        self.error = error
        self.stream_error = stream_error
        self.during_stream = during_stream
        self.requests = []
        self.concept = {"concept": "Mass attracts mass", "example": "An apple falls", "takeaway": "Gravity pulls"}
        self.weakness = {
            "weakAreas": ["units"],
            "whyWeak": "Skips unit conversion.",
            "nextActions": ["Redo 3 problems with units"],
            "confidence": "medium",
        }

    def stream_chat(self, messages, language, first_name=None):
        self.requests.append(messages)
        if self.error is not None:
            raise self.error
        return self._iter_chunks()

    def _iter_chunks(self):
        for index, chunk in enumerate(self.chunks):
            yield chunk
            if index == 0 and self.during_stream is not None:
                self.during_stream()
        if self.stream_error is not None:
            raise self.stream_error

    def explain_concept(self, topic, language, first_name=None):
        self.requests.append(topic)
        if self.error is not None:
            raise self.error
        return self.concept

    def analyze_weakness(self, messages, language):
        self.requests.append(messages)
        if self.error is not None:
            raise self.error
        return self.weakness


class CountingTitles:
    def __init__(self):
        self.calls = 0

    def __call__(self, first_message, max_words):
        self.calls += 1
        return generate_title(first_message, max_words)


def _controller(
    completion, user_id=USER_ID, store=history_service, titles=None, drafts=None, session_store=None, memory=None
):
    return ChatController(
        completion,
        HistoryReconciler(store, title_generator=titles or CountingTitles()),
        SessionIdentityManager({} if session_store is None else session_store),
        drafts or DraftStore(MemoryDraftStorage(), timer_factory=FakeTimer),
        user_id=user_id,
        language="English",
        memory=memory,
    )


def _send(controller, text):
    controller.set_input(text)
    return controller.send()


def test_streamed_reply_is_reassembled_and_parsed():
    completion = FakeCompletion([
        b"Pho",
        b"to",
        b"synthesis is how plants make food.\nConfidence: High\nAsk-Me-Back: Which gas do plants release?",
    ])
    controller = _controller(completion)

    reply = _send(controller, "What is photosynthesis?")

    assert reply.content == "Photosynthesis is how plants make food."
    assert reply.confidence == "high"
    assert reply.follow_up_question == "Which gas do plants release?"
    assert reply.streaming is False
    assert [message.role for message in controller.messages] == ["user", "assistant"]
    assert completion.requests[0] == [{"role": "user", "content": "What is photosynthesis?"}]
    assert controller.input == ""
    assert controller.busy is False


def test_reply_is_written_through_to_history():
    controller = _controller(FakeCompletion([b"Gravity pulls things down."]))

    _send(controller, "Explain gravity")

    item = history_service.get_history_by_session(USER_ID, controller.session_id)
    assert item["title"] == "Explain gravity"
    assert item["metadata"] == {"language": "English"}
    assert [message["content"] for message in item["content"]["messages"]] == [
        "Explain gravity",
        "Gravity pulls things down.",
    ]


def test_multibyte_characters_split_across_chunks():
    encoded = "નમસ્તે दोस्त".encode("utf-8")
    controller = _controller(FakeCompletion([encoded[:4], encoded[4:11], encoded[11:]]))

    reply = _send(controller, "hello")

    assert reply.content == "નમસ્તે दोस्त"


def test_title_is_generated_once_per_session():
    titles = CountingTitles()
    controller = _controller(FakeCompletion([b"Answer"]), titles=titles)

    _send(controller, "How does photosynthesis work in desert plants during summer?")
    _send(controller, "And at night?")

    assert titles.calls == 1
    assert controller.title == "How does photosynthesis work in desert plants..."


def test_request_failure_appends_error_message():
    controller = _controller(FakeCompletion(error=ApiError(500, "upstream down")))

    reply = _send(controller, "hi")

    assert reply.content == "Sorry, I encountered an error: upstream down. Please try again."
    assert [message.role for message in controller.messages] == ["user", "assistant"]
    assert controller.busy is False


def test_failure_mid_stream_keeps_partial_text():
    controller = _controller(FakeCompletion([b"Partial answer"], stream_error=ConnectionError("reset by peer")))

    reply = _send(controller, "hi")

    assert [message.content for message in controller.messages] == [
        "hi",
        "Partial answer",
        "Sorry, I encountered an error: reset by peer. Please try again.",
    ]
    assert reply is controller.messages[-1]
    assert controller.messages[1].streaming is False


@pytest.mark.parametrize("chunks", [[], [b"  \n"]])
def test_empty_reply_becomes_error_message(chunks):
    controller = _controller(FakeCompletion(chunks))

    reply = _send(controller, "hi")

    assert reply.content == "Sorry, I encountered an error: The mentor returned an empty response. Please try again."
    assert [message.content for message in controller.messages] == ["hi", reply.content]

    saved = history_service.get_history_by_session(USER_ID, controller.session_id)
    assert [message["content"] for message in saved["content"]["messages"]] == ["hi", reply.content]


def test_error_marker_at_end_of_stream_keeps_partial_text():
    marker = (STREAM_ERROR_MARKER + "upstream down").encode("utf-8")
    controller = _controller(FakeCompletion([b"Partial ", b"answer", marker]))

    _send(controller, "hi")

    expected = ["hi", "Partial answer", "Sorry, I encountered an error: upstream down. Please try again."]
    assert [message.content for message in controller.messages] == expected
    saved = history_service.get_history_by_session(USER_ID, controller.session_id)
    assert [message["content"] for message in saved["content"]["messages"]] == expected


def test_error_marker_without_text_drops_the_reply():
    controller = _controller(FakeCompletion([(STREAM_ERROR_MARKER + "rate limited").encode("utf-8")]))

    reply = _send(controller, "hi")

    assert [message.content for message in controller.messages] == ["hi", reply.content]
    assert "rate limited" in reply.content


def test_late_chunks_are_dropped_after_session_change():
    completion = FakeCompletion([b"Pho", b"tosynthesis"])
    controller = _controller(completion)
    completion.during_stream = controller.new_chat

    old_session = controller.session_id
    result = _send(controller, "What is photosynthesis?")

    assert result is None
    assert controller.session_id != old_session
    assert controller.messages == []
    assert controller.busy is False
    assert history_service.get_history_by_session(USER_ID, controller.session_id) is None

    saved = history_service.get_history_by_session(USER_ID, old_session)
    assert "tosynthesis" not in saved["content"]["messages"][-1]["content"]


def test_send_is_blocked_while_busy():
    completion = FakeCompletion([b"one", b"two"])
    controller = _controller(completion)
    blocked = []

    def try_second_send():
        controller.input = "second question"
        blocked.append(controller.send())

    completion.during_stream = try_second_send

    _send(controller, "first question")

    assert blocked == [None]
    assert len(completion.requests) == 1


def test_blank_input_is_not_sent():
    completion = FakeCompletion([b"x"])
    controller = _controller(completion)

    assert _send(controller, "   ") is None
    assert completion.requests == []


def test_new_chat_saves_and_starts_fresh():
    FakeTimer.created = []
    drafts = DraftStore(MemoryDraftStorage(), timer_factory=FakeTimer)
    controller = _controller(FakeCompletion([b"Answer"]), drafts=drafts)
    _send(controller, "First topic")
    old_session = controller.session_id
    controller.set_input("half typed")

    new_session = controller.new_chat()

    assert new_session != old_session
    assert controller.messages == []
    assert controller.title == "New Chat"
    assert controller.state.title_generated is False
    assert controller.input == ""
    assert all(timer.cancelled for timer in FakeTimer.created)
    assert drafts.restore(CHAT_DRAFT_KEY) is None
    assert history_service.get_history_by_session(USER_ID, old_session) is not None


def test_reset_chat_keeps_history():
    controller = _controller(FakeCompletion([b"Answer"]))
    _send(controller, "Keep me")
    old_session = controller.session_id

    controller.reset_chat()

    assert controller.messages == []
    assert [item["session_id"] for item in controller.refresh_sessions()] == [old_session]


def test_empty_session_is_never_saved():
    controller = _controller(FakeCompletion())

    controller.new_chat()

    assert history_service.list_history(USER_ID) == []


def test_select_session_restores_transcript():
    titles = CountingTitles()
    controller = _controller(FakeCompletion([b"Answer"]), titles=titles)
    _send(controller, "Tell me about atoms")
    first_session = controller.session_id
    controller.new_chat()
    _send(controller, "Tell me about cells")

    controller.select_session(first_session)

    assert controller.session_id == first_session
    assert controller.title == "Tell me about atoms"
    assert [message.content for message in controller.messages] == ["Tell me about atoms", "Answer"]

    _send(controller, "More on electrons")
    assert titles.calls == 2
    assert controller.title == "Tell me about atoms"


def test_constructor_loads_active_session():
    session_store = {}
    first = _controller(FakeCompletion([b"Answer"]), session_store=session_store)
    _send(first, "Remember me")

    second = _controller(FakeCompletion(), session_store=session_store)

    assert second.session_id == first.session_id
    assert [message.content for message in second.messages] == ["Remember me", "Answer"]
    assert second.state.title_generated is True


def test_delete_all_chats_does_not_resurrect_session():
    controller = _controller(FakeCompletion([b"Answer"]))
    _send(controller, "Soon gone")
    old_session = controller.session_id

    assert controller.delete_all_chats() is True

    assert controller.messages == []
    assert controller.session_id != old_session
    assert history_service.get_history_by_session(USER_ID, old_session) is None
    assert history_service.list_history(USER_ID, "chat") == []


def test_delete_all_chats_failure_keeps_state():
    class BrokenStore:
        def __getattr__(self, name):
            return getattr(history_service, name)

        def delete_all_by_module(self, user_id, module_type):
            raise RuntimeError("database offline")

    controller = _controller(FakeCompletion([b"Answer"]), store=BrokenStore())
    _send(controller, "Still here")
    session_id = controller.session_id

    assert controller.delete_all_chats() is False
    assert controller.session_id == session_id
    assert len(controller.messages) == 2


def test_delete_current_session_starts_fresh():
    controller = _controller(FakeCompletion([b"Answer"]))
    _send(controller, "Delete me")
    old_session = controller.session_id
    controller.refresh_sessions()

    assert controller.delete_session(old_session) is True

    assert controller.sessions == []
    assert controller.session_id != old_session
    assert controller.messages == []
    assert history_service.get_history_by_session(USER_ID, old_session) is None


def test_reset_input_can_be_undone():
    clock_now = [100.0]
    controller = ChatController(
        FakeCompletion(),
        HistoryReconciler(history_service),
        SessionIdentityManager({}),
        DraftStore(MemoryDraftStorage(), timer_factory=FakeTimer),
        user_id=USER_ID,
        clock=lambda: clock_now[0],
    )
    controller.set_input("a long question")

    controller.reset_input()
    assert controller.input == ""
    assert controller.undo_available

    assert controller.undo_reset() is True
    assert controller.input == "a long question"

    controller.reset_input()
    clock_now[0] = 111.0
    assert controller.undo_reset() is False
    assert controller.input == ""


def test_input_draft_is_restored():
    storage = MemoryDraftStorage()
    storage.write(CHAT_DRAFT_KEY, {"key": CHAT_DRAFT_KEY, "value": "unsent words", "savedAt": 0})

    controller = _controller(FakeCompletion(), drafts=DraftStore(storage, timer_factory=FakeTimer))

    assert controller.input == "unsent words"


def test_concept_card_needs_a_topic():
    completion = FakeCompletion()
    controller = _controller(completion)

    notice = controller.explain_concept()

    assert notice.content == EMPTY_TOPIC_NOTICE
    assert completion.requests == []


def test_concept_card_is_appended():
    controller = _controller(FakeCompletion())
    controller.set_input("gravity")

    card = controller.explain_concept()

    assert card.kind == "concept"
    assert card.content == ""
    assert card.concept_data["topic"] == "gravity"
    assert card.concept_data["takeaway"] == "Gravity pulls"


def test_weakness_summary_uses_transcript():
    completion = FakeCompletion([b"Use SI units."])
    controller = _controller(completion)
    _send(controller, "I keep getting physics numericals wrong")

    summary = controller.analyze_weakness()

    assert summary.kind == "weakness"
    assert summary.weakness_data["whyWeak"] == "Skips unit conversion."
    assert completion.requests[-1] == [
        {"role": "user", "content": "I keep getting physics numericals wrong"},
        {"role": "assistant", "content": "Use SI units."},
    ]


def test_weakness_needs_messages():
    assert _controller(FakeCompletion()).analyze_weakness() is None


@pytest.mark.parametrize("method", ["explain_concept", "analyze_weakness"])
def test_structured_failures_become_error_messages(method):
    completion = FakeCompletion([b"Answer"])
    controller = _controller(completion)
    _send(controller, "topic question")
    completion.error = ApiError(500, "Invalid structured response")

    message = getattr(controller, method)("topic") if method == "explain_concept" else controller.analyze_weakness()

    assert message.content == "Sorry, I encountered an error: Invalid structured response. Please try again."


def test_chat_turns_are_logged_to_memory():
    controller = _controller(FakeCompletion([b"Mass attracts mass.\nConfidence: High"]), memory=memory_service)

    _send(controller, "Why do apples fall?")
    controller.explain_concept("gravity")

    rows = memory_service.get_recent_memory(USER_ID, "chat")
    logged = sorted((row["role"], row["content"]) for row in rows)
    assert ("user", "Why do apples fall?") in logged
    assert ("assistant", "Mass attracts mass.") in logged
    assert any(content.startswith("2-Min Concept: ") for role, content in logged)
    assert len(rows) == 3


def test_memory_failures_do_not_break_send():
    class BrokenMemory:
        def save_memory(self, user_id, role, content, interaction_type):
            raise ApiError(503, "Memory feature is not enabled.")

    controller = _controller(FakeCompletion([b"Still answered"]), memory=BrokenMemory())

    reply = _send(controller, "hi")

    assert reply.content == "Still answered"
    assert [message.role for message in controller.messages] == ["user", "assistant"]


def test_failed_reply_is_not_logged_to_memory():
    controller = _controller(FakeCompletion([]), memory=memory_service)

    _send(controller, "hi")

    rows = memory_service.get_recent_memory(USER_ID, "chat")
    assert [(row["role"], row["content"]) for row in rows] == [("user", "hi")]


def test_nothing_is_persisted_without_a_user():
    controller = _controller(FakeCompletion([b"Answer"]), user_id=None)

    _send(controller, "anonymous question")

    assert len(controller.messages) == 2
    assert history_service.list_history(USER_ID) == []
    assert controller.delete_session(controller.session_id) is False
