"""Feedback submission, listing and staging endpoints."""
from __future__ import annotations
from typing import Any, List, Union

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.application.aggregation_service import ReadSideAggregator
from app.application.feedback_service import FeedbackSubmissionCoordinator
from app.container import get_aggregation_service, get_feedback_service
from app.domain.feedback.models import FeedbackRecord, StagedFeedback

router = APIRouter(tags=["feedback"])


# ------------------------------------------------------------------
# Pydantic schemas
# ------------------------------------------------------------------
class FeedbackBody(BaseModel):
    student_address: str
    course_id: Union[int, str]
    teacher_id: str
    # checked by the domain rules so bad ratings answer 400, not 422
    ratings: List[Any] = []
    comment: str = ""


# ------------------------------------------------------------------
# Serializers
# ------------------------------------------------------------------
def _serialize_record(r: FeedbackRecord) -> dict:
    return {
        "feedback_id": r.feedback_id,
        "student_wallet": r.student_wallet,
        "teacher_id": r.teacher_id,
        "course_id": r.course_id,
        "ratings": r.ratings,
        "total_score": r.total_score,
        "average_score": r.average_score,
        "comments": r.comments,
        "timestamp": r.timestamp,
    }


def _serialize_staged(s: StagedFeedback) -> dict:
    return {
        "id": s.id,
        "student_address": s.student_address,
        "course_id": s.course_id,
        "teacher_id": s.teacher_id,
        "ratings": s.ratings,
        "sender": s.sender,
        "sponsored": s.sponsored,
        "status": s.status,
        "tx_hash": s.tx_hash,
        "error": s.error,
        "created_at": s.created_at,
        "updated_at": s.updated_at,
        "expires_at": s.expires_at,
    }


# ------------------------------------------------------------------
# Submission
# ------------------------------------------------------------------
@router.post("/feedback/", status_code=status.HTTP_201_CREATED)
def submit_feedback(
    body: FeedbackBody,
    svc: FeedbackSubmissionCoordinator = Depends(get_feedback_service),
):
    data = body.model_dump()
    data["course_id"] = str(data["course_id"])
    receipt = svc.submit(data)
    return {
        "tx_hash": receipt.tx_hash,
        "staging_id": receipt.staging_id,
        "staged": receipt.staged,
        "sponsored": receipt.sponsored,
        "block_number": receipt.block_number,
    }


@router.get("/feedback/")
def list_feedback(
    group: bool = False,
    svc: ReadSideAggregator = Depends(get_aggregation_service),
):
    records = svc.list_all_feedback()
    if not group:
        return [_serialize_record(r) for r in records]
    groups = svc.group_feedback(records)
    return {
        "by_course": {k: [_serialize_record(r) for r in v] for k, v in groups.by_course.items()},
        "by_teacher": {k: [_serialize_record(r) for r in v] for k, v in groups.by_teacher.items()},
    }


@router.get("/feedback/status/{address}/{course_id}/{teacher_id}")
def submission_status(
    address: str,
    course_id: str,
    teacher_id: str,
    svc: FeedbackSubmissionCoordinator = Depends(get_feedback_service),
):
    return svc.has_submitted(address, course_id, teacher_id)


# ------------------------------------------------------------------
# Staging
# ------------------------------------------------------------------
@router.get("/feedback/staging")
def list_staging(svc: FeedbackSubmissionCoordinator = Depends(get_feedback_service)):
    return [_serialize_staged(s) for s in svc.list_staging()]


@router.delete("/feedback/staging")
def purge_staging(
    include_unexpired: bool = False,
    svc: FeedbackSubmissionCoordinator = Depends(get_feedback_service),
):
    return {"purged": svc.purge_staging(include_unexpired=include_unexpired)}
