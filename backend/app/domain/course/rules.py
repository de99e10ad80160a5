"""Business rules for course creation requests."""
from __future__ import annotations
from typing import List

from app.domain.common.result import Result
from app.domain.course.models import TeacherRequest


def validate_course_id(course_id) -> Result[str]:
    """Course IDs are caller-supplied positive integers, carried as decimal strings."""
    raw = str(course_id).strip() if course_id is not None else ""
    if not raw.isdigit() or int(raw) <= 0:
        return Result.fail(f"Course ID must be a positive integer, got {course_id!r}.")
    return Result.ok(str(int(raw)))


def validate_teacher_entries(teachers) -> Result[List[TeacherRequest]]:
    if not isinstance(teachers, list) or not teachers:
        return Result.fail("At least one teacher is required.")

    cleaned: List[TeacherRequest] = []
    seen = set()
    for entry in teachers:
        teacher_id = str(entry.get("teacher_id") or "").strip()
        teacher_name = str(entry.get("teacher_name") or "").strip()
        if not teacher_id or not teacher_name:
            return Result.fail("Each teacher must have teacher_id and teacher_name.")
        if teacher_id in seen:
            continue
        seen.add(teacher_id)
        cleaned.append(TeacherRequest(teacher_id=teacher_id, teacher_name=teacher_name))
    return Result.ok(cleaned)


def validate_course_request(data: dict) -> Result[dict]:
    course_id = validate_course_id(data.get("course_id"))
    if not course_id.is_success:
        return Result.fail(course_id.error)

    course_name = (data.get("course_name") or "").strip()
    if not course_name:
        return Result.fail("Course 'course_name' is required and cannot be empty.")

    teachers = validate_teacher_entries(data.get("teachers"))
    if not teachers.is_success:
        return Result.fail(teachers.error)

    return Result.ok({
        "course_id": course_id.value,
        "course_name": course_name,
        "teachers": teachers.value,
        "branch": (data.get("branch") or "").strip() or None,
        "course_time": (data.get("course_time") or "").strip() or None,
    })
