"""/api/exam-planner endpoint generating day-wise study plans."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, jsonify, request

from mentor_api.prompts import get_exam_planner_prompt
from mentor_api.services import completion_service
from mentor_api.utils.auth import require_user

bp = Blueprint("exam_planner", __name__, url_prefix="/api/exam-planner")

REQUIRED_FIELDS = ("examName", "examDate", "subjects", "dailyHours")


def parse_exam_date(value: str) -> Optional[date]:
    """Parse an ISO date or datetime string into a calendar date."""
    text = value.strip()
    # fromisoformat only accepts a Z suffix from Python 3.11.
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def days_until(exam_date: date, today: Optional[date] = None) -> int:
    """Whole calendar days from today (at midnight) to the exam."""
    return (exam_date - (today or date.today())).days


def split_subjects(subjects: str) -> List[str]:
    return [subject.strip() for subject in subjects.split(",") if subject.strip()]


@bp.post("")
def generate_study_plan():
    """Return a day-wise plan for an upcoming exam."""
    _, error_response = require_user()
    if error_response is not None:
        return error_response

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    fields = {name: str(payload.get(name) or "").strip() for name in REQUIRED_FIELDS}

    subjects = split_subjects(fields["subjects"])
    if not all(fields.values()) or not subjects:
        return jsonify(error="Missing required fields"), 400

    exam_date = parse_exam_date(fields["examDate"])
    if exam_date is None:
        return jsonify(error="Invalid exam date"), 400

    remaining = days_until(exam_date)
    if remaining < 1:
        return jsonify(error="Exam date must be in the future"), 400

    prompt = get_exam_planner_prompt(
        fields["examName"],
        fields["examDate"],
        remaining,
        subjects,
        fields["dailyHours"],
    )

    try:
        plan = completion_service.complete([{"role": "user", "content": prompt}], "exam_planner", "Hinglish")
    except Exception as exc:
        current_app.logger.exception("Exam planner request failed")
        return jsonify(error=str(exc) or "Failed to generate study plan"), 500

    return jsonify(plan=plan), 200
