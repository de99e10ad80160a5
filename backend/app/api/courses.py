"""Teacher and course API endpoints."""
from __future__ import annotations
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.application.aggregation_service import ReadSideAggregator
from app.application.registration_service import RegistrationOrchestrator
from app.container import get_aggregation_service, get_registration_service
from app.domain.course.models import Course, CourseCreationResult, Teacher
from app.domain.feedback.models import NoFeedbackYet, RATING_LABELS
from app.domain.registration.models import RegistrationResult

router = APIRouter(tags=["courses"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class TeacherBody(BaseModel):
    teacher_id: str
    teacher_name: str


class CourseBody(BaseModel):
    course_id: Union[int, str]
    course_name: str
    teachers: List[TeacherBody] = []
    branch: Optional[str] = None
    course_time: Optional[str] = None
    sender: Optional[str] = None


# ------------------------------------------------------------------
# Serializers
# ------------------------------------------------------------------
def _serialize_registration(r: RegistrationResult) -> dict:
    return {
        "kind": r.kind,
        "key": r.key,
        "state": r.state.value,
        "created": r.created,
        "tx_hash": r.tx_hash,
        "block_number": r.block_number,
        "sender": r.sender,
    }


def _serialize_teacher(t: Teacher) -> dict:
    return {"teacher_id": t.teacher_id, "name": t.name}


def _serialize_course(c: Course) -> dict:
    return {
        "course_id": c.course_id,
        "course_name": c.course_name,
        "branch": c.branch,
        "course_time": c.course_time,
        "teacher_ids": c.teacher_ids,
        "teachers": [_serialize_teacher(t) for t in c.teachers],
        "tx_hash": c.tx_hash,
        "block_number": c.block_number,
        "created_at": c.created_at or None,
    }


def _serialize_creation(result: CourseCreationResult) -> dict:
    return {
        "tx_hash": result.tx_hash,
        "block_number": result.block_number,
        "course": _serialize_course(result.course),
        "warnings": [
            {"teacher_id": w.teacher_id, "stage": w.stage, "message": w.message}
            for w in result.warnings
        ],
    }


# ------------------------------------------------------------------
# Teachers
# ------------------------------------------------------------------
@router.post("/teachers/", status_code=status.HTTP_201_CREATED)
def register_teacher(
    body: TeacherBody,
    response: Response,
    svc: RegistrationOrchestrator = Depends(get_registration_service),
):
    result = svc.register_teacher(body.teacher_id, body.teacher_name)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return _serialize_registration(result)


@router.get("/teachers/{teacher_id}/courses")
def list_teacher_courses(
    teacher_id: str,
    svc: ReadSideAggregator = Depends(get_aggregation_service),
):
    return [_serialize_course(c) for c in svc.list_teacher_courses(teacher_id)]


# ------------------------------------------------------------------
# Courses
# ------------------------------------------------------------------
@router.post("/courses/", status_code=status.HTTP_201_CREATED)
def create_course(
    body: CourseBody,
    svc: RegistrationOrchestrator = Depends(get_registration_service),
):
    result = svc.create_course(
        course_id=body.course_id,
        course_name=body.course_name,
        teachers=[t.model_dump() for t in body.teachers],
        branch=body.branch,
        course_time=body.course_time,
        sender_hint=body.sender,
    )
    return _serialize_creation(result)


@router.get("/courses/")
def list_courses(svc: ReadSideAggregator = Depends(get_aggregation_service)):
    return [_serialize_course(c) for c in svc.list_courses()]


@router.get("/courses/{course_id}")
def get_course(
    course_id: str,
    svc: ReadSideAggregator = Depends(get_aggregation_service),
):
    return _serialize_course(svc.get_course(course_id))


@router.get("/courses/{course_id}/teachers/{teacher_id}/results")
def get_teacher_course_results(
    course_id: str,
    teacher_id: str,
    svc: ReadSideAggregator = Depends(get_aggregation_service),
):
    averages = svc.get_teacher_course_averages(teacher_id, course_id)
    if isinstance(averages, NoFeedbackYet):
        return {
            "course_id": course_id,
            "teacher_id": teacher_id,
            "has_feedback": False,
            "averages": None,
        }
    return {
        "course_id": course_id,
        "teacher_id": teacher_id,
        "has_feedback": True,
        "averages": dict(zip(RATING_LABELS, averages)),
        "overall": round(sum(averages) / len(averages), 2),
    }
