"""Feedback submission coordinator — stage, send, then track."""
from __future__ import annotations
import logging
import uuid
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Union

from app.application.admin_identity import AdminIdentityResolver
from app.domain.common.errors import (
    AlreadyExistsError,
    ConflictError,
    FeedbackLedgerError,
    LedgerTimeoutError,
    SenderUnavailableError,
)
from app.domain.course.rules import validate_course_id
from app.domain.feedback.models import (
    CONFIRMED,
    FAILED,
    PENDING,
    TIMED_OUT,
    FeedbackPayload,
    FeedbackReceipt,
    StagedFeedback,
    SubmissionRecord,
)
from app.domain.feedback.rules import validate_feedback_payload
from app.ledger.client import LedgerClient
from app.ledger.wallet import normalize_address
from app.persistence.interfaces.feedback_repository import StagingRepository, SubmissionRepository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedbackSubmissionCoordinator:
    """
    One feedback per (student, course, teacher).

    A submission is staged as PENDING before the ledger write and settles to
    CONFIRMED, FAILED or TIMED_OUT. The tracking row that blocks duplicates is
    written only once the ledger confirms. A TIMED_OUT triple is reconciled
    against ``hasSubmittedFeedback`` before any resubmission.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        identity: AdminIdentityResolver,
        staging: StagingRepository,
        submissions: SubmissionRepository,
        sponsorship_enabled: bool = False,
        staging_ttl: int = 86400,
        staging_max: int = 10000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._ledger = ledger
        self._identity = identity
        self._staging = staging
        self._submissions = submissions
        self._sponsorship_enabled = sponsorship_enabled
        self._staging_ttl = staging_ttl
        self._staging_max = staging_max
        self._clock = clock

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    # ------------------------------------------------------------------
    # SUBMIT
    # ------------------------------------------------------------------
    def submit(self, payload: Union[FeedbackPayload, dict]) -> FeedbackReceipt:
        data = asdict(payload) if isinstance(payload, FeedbackPayload) else payload
        feedback = validate_feedback_payload(data).unwrap()
        student = normalize_address(feedback.student_address, "student address")
        course_id, teacher_id = feedback.course_id, feedback.teacher_id

        purged = self._staging.purge_expired(self._now_iso())
        if purged:
            logger.info("Purged %d expired staging record(s)", purged)

        if self._submissions.exists(student, course_id, teacher_id):
            raise ConflictError(
                f"Feedback from {student} for teacher {teacher_id} in course {course_id} was already submitted."
            )
        self._reconcile_timed_out(student, course_id, teacher_id)

        sender, sponsored = self._resolve_sender(student)

        now = self._clock()
        staged = StagedFeedback(
            id=str(uuid.uuid4()),
            student_address=student,
            course_id=course_id,
            teacher_id=teacher_id,
            ratings=feedback.ratings,
            comment=feedback.comment,
            sender=sender,
            sponsored=sponsored,
            status=PENDING,
            created_at=now.isoformat(),
            updated_at=now.isoformat(),
            expires_at=(now + timedelta(seconds=self._staging_ttl)).isoformat(),
        )
        self._staging.add(staged)
        self._staging.trim(self._staging_max, keep_statuses=(PENDING, TIMED_OUT))
        logger.info("Feedback %s staged (%s, course %s, teacher %s)", staged.id, student, course_id, teacher_id)

        try:
            receipt = self._ledger.send(
                "submitFeedback",
                [student, teacher_id, course_id, feedback.ratings, feedback.comment],
                sender,
            )
        except LedgerTimeoutError as exc:
            self._staging.update_status(staged.id, TIMED_OUT, self._now_iso(), tx_hash=exc.tx_hash, error=exc.message)
            logger.warning("Feedback %s timed out waiting for confirmation (tx %s)", staged.id, exc.tx_hash)
            raise
        except AlreadyExistsError as exc:
            self._staging.update_status(staged.id, FAILED, self._now_iso(), tx_hash=exc.tx_hash, error=exc.message)
            logger.warning("Feedback %s rejected on-chain as duplicate", staged.id)
            raise ConflictError(
                f"Feedback from {student} for teacher {teacher_id} in course {course_id} was already submitted."
            ) from exc
        except FeedbackLedgerError as exc:
            self._staging.update_status(staged.id, FAILED, self._now_iso(), error=exc.message)
            logger.error("Feedback %s failed: %s", staged.id, exc.message)
            raise

        self._staging.update_status(staged.id, CONFIRMED, self._now_iso(), tx_hash=receipt.tx_hash)
        self._submissions.record(SubmissionRecord(
            student_address=student,
            course_id=course_id,
            teacher_id=teacher_id,
            tx_hash=receipt.tx_hash,
            staging_id=staged.id,
            submitted_at=self._now_iso(),
        ))
        logger.info("Feedback %s confirmed (tx %s)", staged.id, receipt.tx_hash)
        return FeedbackReceipt(
            tx_hash=receipt.tx_hash,
            staging_id=staged.id,
            sponsored=sponsored,
            block_number=receipt.block_number,
        )

    def _resolve_sender(self, student: str) -> tuple:
        if self._ledger.can_sign(student):
            return student, False
        if self._sponsorship_enabled:
            sender = self._identity.admin_sender()
            logger.info("Student %s cannot sign, feedback sponsored by admin %s", student, sender)
            return sender, True
        raise SenderUnavailableError(student, "student")

    def _reconcile_timed_out(self, student: str, course_id: str, teacher_id: str) -> None:
        timed_out = self._staging.find_for_triple(student, course_id, teacher_id, status=TIMED_OUT)
        if not timed_out:
            return

        mined = self._ledger.call("hasSubmittedFeedback", student, teacher_id, course_id)
        latest = timed_out[0]
        if mined:
            logger.info("Timed-out feedback %s was mined after all (tx %s)", latest.id, latest.tx_hash)
            self._staging.update_status(latest.id, CONFIRMED, self._now_iso(), tx_hash=latest.tx_hash)
            self._submissions.record(SubmissionRecord(
                student_address=student,
                course_id=course_id,
                teacher_id=teacher_id,
                tx_hash=latest.tx_hash or "",
                staging_id=latest.id,
                submitted_at=self._now_iso(),
            ))
            raise ConflictError(
                f"Feedback from {student} for teacher {teacher_id} in course {course_id} was already submitted."
            )

        for record in timed_out:
            logger.info("Timed-out feedback %s never landed, marking failed", record.id)
            self._staging.update_status(record.id, FAILED, self._now_iso(), error="not found on-chain after timeout")

    # ------------------------------------------------------------------
    # STATUS
    # ------------------------------------------------------------------
    def has_submitted(self, student_address: str, course_id: str, teacher_id: str) -> dict:
        student = normalize_address(student_address, "student address")
        course_id = validate_course_id(course_id).unwrap()
        teacher_id = (teacher_id or "").strip()
        tracked = self._submissions.exists(student, course_id, teacher_id)
        on_chain = bool(self._ledger.call("hasSubmittedFeedback", student, teacher_id, course_id))
        staged = self._staging.find_for_triple(student, course_id, teacher_id)
        return {
            "submitted": tracked or on_chain,
            "tracked": tracked,
            "on_chain": on_chain,
            "staging_status": staged[0].status if staged else None,
        }

    def list_student_submissions(self, student_address: str) -> List[SubmissionRecord]:
        return self._submissions.list_for_student(normalize_address(student_address, "student address"))

    # ------------------------------------------------------------------
    # STAGING
    # ------------------------------------------------------------------
    def list_staging(self) -> List[StagedFeedback]:
        return self._staging.list_all()

    def purge_staging(self, include_unexpired: bool = False) -> int:
        if include_unexpired:
            removed = self._staging.purge_all()
        else:
            removed = self._staging.purge_expired(self._now_iso())
        logger.info("Purged %d staging record(s)", removed)
        return removed
