"""Validation rules for feedback payloads — checked before anything is staged or sent."""
from __future__ import annotations
import math
from numbers import Number

from app.domain.common.result import Result
from app.domain.course.rules import validate_course_id
from app.domain.feedback.models import FeedbackPayload, RATING_LABELS

RATING_MIN = 1
RATING_MAX = 5
MAX_COMMENT_LENGTH = 1000


def _clean(value) -> str:
    return str(value).strip() if value is not None else ""


def validate_ratings(ratings) -> Result[list]:
    if not isinstance(ratings, (list, tuple)) or len(ratings) != len(RATING_LABELS):
        return Result.fail(f"Exactly {len(RATING_LABELS)} ratings are required ({', '.join(RATING_LABELS)}).")

    cleaned = []
    for label, rating in zip(RATING_LABELS, ratings):
        if isinstance(rating, bool) or not isinstance(rating, Number) or not math.isfinite(rating):
            return Result.fail(f"Rating '{label}' must be a finite number, got {rating!r}.")
        if int(rating) != rating:
            return Result.fail(f"Rating '{label}' must be a whole number, got {rating!r}.")
        if not RATING_MIN <= rating <= RATING_MAX:
            return Result.fail(f"Rating '{label}' must be between {RATING_MIN} and {RATING_MAX}, got {rating!r}.")
        cleaned.append(int(rating))
    return Result.ok(cleaned)


def validate_feedback_payload(data: dict) -> Result[FeedbackPayload]:
    student_address = _clean(data.get("student_address"))
    teacher_id = _clean(data.get("teacher_id"))

    missing = [
        name for name, value in (
            ("student_address", student_address),
            ("course_id", _clean(data.get("course_id"))),
            ("teacher_id", teacher_id),
        ) if not value
    ]
    if missing:
        return Result.fail(f"Missing required field(s): {', '.join(missing)}.")

    course_id = validate_course_id(data.get("course_id"))
    if not course_id.is_success:
        return Result.fail(course_id.error)

    ratings = validate_ratings(data.get("ratings"))
    if not ratings.is_success:
        return Result.fail(ratings.error)

    comment = data.get("comment")
    if comment is None:
        comment = ""
    if not isinstance(comment, str):
        return Result.fail(f"Comment must be text, got {type(comment).__name__}.")
    if len(comment) > MAX_COMMENT_LENGTH:
        return Result.fail(f"Comment is longer than {MAX_COMMENT_LENGTH} characters.")

    return Result.ok(FeedbackPayload(
        student_address=student_address,
        course_id=course_id.value,
        teacher_id=teacher_id,
        ratings=ratings.value,
        comment=comment,
    ))
