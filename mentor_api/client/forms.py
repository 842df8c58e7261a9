"""Form state for the career and exam planner pages."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

from mentor_api.client.drafts import DraftStore, is_blank
from mentor_api.client.undo import DEFAULT_UNDO_SECONDS, ResettableState

_LOGGER = logging.getLogger(__name__)

CAREER_DRAFT_KEY = "career-form-draft"
CAREER_INITIAL = {"currentEducation": "", "interests": "", "strengths": "", "goals": ""}

EXAM_DRAFT_KEY = "exam-planner-form-draft"
EXAM_INITIAL = {"examName": "", "examDate": "", "subjects": "", "dailyHours": "2"}
# dailyHours always has a default, so it alone does not make a draft worth keeping.
EXAM_DRAFT_FIELDS = ("examName", "examDate", "subjects")


class FormController:
    """
    Form fields with debounced draft saving, undoable resets and submission.

    Args:
        draft_key: Key the draft is stored under.
        initial: Field names and their reset values.
        submit: Called with the form; returns the generated text or raises.
        drafts: Draft store.
        draft_fields: Fields that decide whether the form is worth saving.
            Defaults to every field.
    """

    def __init__(
        self,
        draft_key: str,
        initial: Dict[str, str],
        submit: Callable[[Dict[str, str]], str],
        drafts: DraftStore,
        draft_fields: Optional[Iterable[str]] = None,
        undo_timeout: float = DEFAULT_UNDO_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.draft_key = draft_key
        self.initial = dict(initial)
        self.drafts = drafts
        self.draft_fields = tuple(draft_fields) if draft_fields is not None else tuple(initial)
        self._submit = submit
        self._state = ResettableState(dict(initial), on_reset=self._autosave, timeout=undo_timeout, clock=clock)

        self.result = ""
        self.error = ""
        self.busy = False

        restored = drafts.restore(draft_key)
        if isinstance(restored, dict):
            self._state.set({name: str(restored.get(name, value)) for name, value in self.initial.items()})

    @property
    def form(self) -> Dict[str, str]:
        return dict(self._state.current)

    @property
    def undo_available(self) -> bool:
        return self._state.undo_available

    def update(self, **fields: str) -> None:
        unknown = set(fields) - set(self.initial)
        if unknown:
            raise ValueError(f"Unknown form fields: {', '.join(sorted(unknown))}")

        form = {**self._state.current, **fields}
        self._state.set(form)
        self._autosave(form)

    def prefill(self, values: Dict[str, Any]) -> None:
        """Fill empty fields from remembered values without opening an undo window."""
        form = self.form
        for name, value in values.items():
            if name in form and not form[name].strip() and isinstance(value, str):
                form[name] = value
        self._state.set(form)

    def reset_fields(self, *names: str) -> None:
        """Put ``names`` back to their initial values; undoable."""
        form = self.form
        for name in names:
            if name not in self.initial:
                raise ValueError(f"Unknown form field: {name}")
            form[name] = self.initial[name]
        self._state.reset(form)

    def reset_all(self) -> None:
        """Clear the whole form and its draft; undoable."""
        self._state.reset(dict(self.initial))
        self.drafts.clear(self.draft_key)

    def undo(self) -> bool:
        return self._state.undo()

    def dismiss_undo(self) -> None:
        self._state.dismiss()

    def submit(self) -> Optional[str]:
        """Submit the form; on failure the message is kept in ``error``."""
        if self.busy:
            return None

        self.busy = True
        self.error = ""
        self.result = ""
        try:
            result = self._submit(self.form)
        except Exception as exc:
            _LOGGER.warning("Form %s submission failed: %s", self.draft_key, exc)
            self.error = str(exc) or "Request failed"
            return None
        finally:
            self.busy = False

        self.result = result
        self.drafts.clear(self.draft_key)
        return result

    def _autosave(self, form: Dict[str, str]) -> None:
        if all(is_blank(form.get(name)) for name in self.draft_fields):
            # Blank values cancel any pending save.
            self.drafts.save(self.draft_key, None)
            return
        self.drafts.save(self.draft_key, form)


def career_form(client, drafts: DraftStore, user_id: Optional[str] = None, **kwargs) -> FormController:
    return FormController(
        CAREER_DRAFT_KEY,
        CAREER_INITIAL,
        lambda form: client.career_roadmap(form, user_id),
        drafts,
        **kwargs,
    )


def exam_planner_form(client, drafts: DraftStore, user_id: Optional[str] = None, **kwargs) -> FormController:
    return FormController(
        EXAM_DRAFT_KEY,
        EXAM_INITIAL,
        lambda form: client.exam_plan(form, user_id),
        drafts,
        draft_fields=EXAM_DRAFT_FIELDS,
        **kwargs,
    )


def prefill_career_goal(form: FormController, memory_row: Optional[Dict[str, Any]]) -> bool:
    """Fill the career form from the last remembered ``career_goal`` row."""
    if not memory_row or not memory_row.get("content"):
        return False

    try:
        values = json.loads(memory_row["content"])
    except ValueError:
        values = {"goals": memory_row["content"]}
    if not isinstance(values, dict):
        values = {"goals": memory_row["content"]}

    form.prefill(values)
    return True
