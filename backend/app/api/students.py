"""Student registration and submission lookup endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from app.api.courses import _serialize_registration
from app.application.feedback_service import FeedbackSubmissionCoordinator
from app.application.registration_service import RegistrationOrchestrator
from app.container import get_feedback_service, get_registration_service

router = APIRouter(tags=["students"])


class StudentBody(BaseModel):
    wallet_address: str
    name: str


@router.post("/students/", status_code=status.HTTP_201_CREATED)
def register_student(
    body: StudentBody,
    response: Response,
    svc: RegistrationOrchestrator = Depends(get_registration_service),
):
    result = svc.register_student(body.wallet_address, body.name)
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return _serialize_registration(result)


@router.get("/students/{address}/submissions")
def list_student_submissions(
    address: str,
    svc: FeedbackSubmissionCoordinator = Depends(get_feedback_service),
):
    return [
        {
            "course_id": s.course_id,
            "teacher_id": s.teacher_id,
            "tx_hash": s.tx_hash,
            "submitted_at": s.submitted_at,
        }
        for s in svc.list_student_submissions(address)
    ]
