"""Tests for the career and exam planner form controllers."""

from __future__ import annotations

import json

import pytest

from mentor_api.client.api_client import ApiError
from mentor_api.client.drafts import DraftStore, MemoryDraftStorage
from mentor_api.client.forms import (
    CAREER_DRAFT_KEY,
    EXAM_DRAFT_KEY,
    career_form,
    exam_planner_form,
    prefill_career_goal,
)


class FakeTimer:
    created = []

    def __init__(self, interval, function, args=None):
        self.function = function
        self.args = args or ()
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        pass

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args)


class FakeClient:
    def __init__(self, error=None):
        self.error = error
        self.submitted = []

    def career_roadmap(self, form, user_id=None):
        self.submitted.append((form, user_id))
        if self.error is not None:
            raise self.error
        return "Roadmap for " + form["interests"]

    def exam_plan(self, form, user_id=None):
        self.submitted.append((form, user_id))
        if self.error is not None:
            raise self.error
        return "Plan for " + form["examName"]


@pytest.fixture
def drafts():
    FakeTimer.created = []
    return DraftStore(MemoryDraftStorage(), timer_factory=FakeTimer)


def _fire_latest():
    FakeTimer.created[-1].fire()


def test_career_submit_success_clears_draft(drafts):
    client = FakeClient()
    form = career_form(client, drafts, user_id="student-1")
    form.update(currentEducation="B.Sc", interests="biology", strengths="memory")
    _fire_latest()
    assert drafts.restore(CAREER_DRAFT_KEY)["interests"] == "biology"

    result = form.submit()

    assert result == "Roadmap for biology"
    assert form.result == result
    assert form.error == ""
    assert client.submitted[0][1] == "student-1"
    assert drafts.restore(CAREER_DRAFT_KEY) is None


def test_submit_failure_keeps_form_and_reports_error(drafts):
    form = career_form(FakeClient(error=ApiError(400, "Missing required fields")), drafts)
    form.update(interests="art")
    _fire_latest()

    assert form.submit() is None
    assert form.error == "Missing required fields"
    assert form.busy is False
    assert form.form["interests"] == "art"
    assert drafts.restore(CAREER_DRAFT_KEY) is not None


def test_exam_draft_ignores_default_daily_hours(drafts):
    form = exam_planner_form(FakeClient(), drafts)

    form.update(dailyHours="6")
    assert all(timer.cancelled for timer in FakeTimer.created)

    form.update(examName="JEE Mains")
    _fire_latest()
    assert drafts.restore(EXAM_DRAFT_KEY) == {
        "examName": "JEE Mains",
        "examDate": "",
        "subjects": "",
        "dailyHours": "6",
    }


def test_form_is_restored_from_draft(drafts):
    drafts.storage.write(
        EXAM_DRAFT_KEY,
        {"key": EXAM_DRAFT_KEY, "value": {"examName": "NEET", "subjects": "Biology"}, "savedAt": 0},
    )

    form = exam_planner_form(FakeClient(), drafts)

    assert form.form == {"examName": "NEET", "examDate": "", "subjects": "Biology", "dailyHours": "2"}


def test_reset_fields_is_undoable(drafts):
    form = career_form(FakeClient(), drafts)
    form.update(currentEducation="Class 10", interests="music", strengths="rhythm")

    form.reset_fields("interests", "strengths")
    assert form.form["interests"] == ""
    assert form.form["currentEducation"] == "Class 10"
    assert form.undo_available

    assert form.undo() is True
    assert form.form["interests"] == "music"
    assert form.undo() is False


def test_reset_all_clears_draft_until_undone(drafts):
    form = exam_planner_form(FakeClient(), drafts)
    form.update(examName="Boards", subjects="Maths")
    _fire_latest()

    form.reset_all()
    assert form.form["examName"] == ""
    assert form.form["dailyHours"] == "2"
    assert drafts.restore(EXAM_DRAFT_KEY) is None

    form.undo()
    _fire_latest()
    assert drafts.restore(EXAM_DRAFT_KEY)["examName"] == "Boards"


def test_unknown_field_rejected(drafts):
    form = career_form(FakeClient(), drafts)

    with pytest.raises(ValueError):
        form.update(favouriteColour="blue")
    with pytest.raises(ValueError):
        form.reset_fields("favouriteColour")


def test_prefill_career_goal(drafts):
    form = career_form(FakeClient(), drafts)
    form.update(interests="chemistry")

    row = {"content": json.dumps({"interests": "physics", "goals": "Research scientist"})}
    assert prefill_career_goal(form, row) is True

    assert form.form["interests"] == "chemistry"
    assert form.form["goals"] == "Research scientist"


def test_prefill_plain_text_goal(drafts):
    form = career_form(FakeClient(), drafts)

    assert prefill_career_goal(form, {"content": "Become a pilot"}) is True
    assert form.form["goals"] == "Become a pilot"
    assert prefill_career_goal(form, None) is False
