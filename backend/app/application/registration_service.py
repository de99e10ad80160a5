"""Registration orchestrator — teachers, students and courses, register-or-link."""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import List, Optional

from app.application.admin_identity import AdminIdentityResolver
from app.domain.common.errors import AlreadyExistsError, ConflictError, FeedbackLedgerError, ValidationError
from app.domain.course.models import Course, CourseCreationResult, Teacher, TeacherWarning
from app.domain.course.rules import validate_course_request
from app.domain.registration.models import RegistrationResult, RegistrationState, Student
from app.ledger.client import LedgerClient
from app.ledger.decoding import COURSE_FIELDS, STUDENT_FIELDS, TEACHER_FIELDS, decode_struct
from app.ledger.wallet import normalize_address
from app.persistence.interfaces.course_repository import CourseRepository, TeacherRepository
from app.persistence.interfaces.user_repository import UserRepository

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RegistrationOrchestrator:
    """
    Every registration first asks the ledger whether the entity exists, and
    treats an "already registered" revert from a lost race as success.
    Off-chain rows are written only after the ledger agrees the entity exists.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        identity: AdminIdentityResolver,
        courses: CourseRepository,
        teachers: TeacherRepository,
        users: UserRepository,
    ):
        self._ledger = ledger
        self._identity = identity
        self._courses = courses
        self._teachers = teachers
        self._users = users

    # ------------------------------------------------------------------
    # Teachers
    # ------------------------------------------------------------------
    def register_teacher(self, teacher_id: str, teacher_name: str, sender: Optional[str] = None) -> RegistrationResult:
        teacher_id = (teacher_id or "").strip()
        teacher_name = (teacher_name or "").strip()
        if not teacher_id or not teacher_name:
            raise ValidationError("Teacher registration needs teacher_id and teacher_name.")

        on_chain = decode_struct(self._ledger.call("teachers", teacher_id), TEACHER_FIELDS)
        if on_chain["isRegistered"]:
            logger.info("Teacher %s already registered on-chain, linking", teacher_id)
            self._teachers.upsert(Teacher(teacher_id=teacher_id, name=teacher_name, created_at=_now_iso()))
            return RegistrationResult(kind="teacher", key=teacher_id, state=RegistrationState.PRE_EXISTING)

        sender = sender or self._identity.admin_sender()
        logger.info("Teacher %s: %s", teacher_id, RegistrationState.REGISTERING.value)
        try:
            receipt = self._ledger.send("addTeacher", [teacher_id, teacher_name], sender)
        except AlreadyExistsError:
            logger.info("Teacher %s registered concurrently, linking", teacher_id)
            self._teachers.upsert(Teacher(teacher_id=teacher_id, name=teacher_name, created_at=_now_iso()))
            return RegistrationResult(
                kind="teacher", key=teacher_id, state=RegistrationState.PRE_EXISTING, sender=sender
            )

        self._teachers.upsert(Teacher(
            teacher_id=teacher_id,
            name=teacher_name,
            tx_hash=receipt.tx_hash,
            created_at=_now_iso(),
        ))
        logger.info("Teacher %s: %s (tx %s)", teacher_id, RegistrationState.REGISTERED.value, receipt.tx_hash)
        return RegistrationResult(
            kind="teacher",
            key=teacher_id,
            state=RegistrationState.REGISTERED,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            sender=sender,
        )

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------
    def _save_student(self, address: str, name: str, tx_hash: Optional[str] = None, block_number: Optional[int] = None) -> None:
        now = _now_iso()
        self._users.save_student(Student(
            wallet_address=address,
            name=name,
            tx_hash=tx_hash,
            block_number=block_number,
            created_at=now,
            updated_at=now,
        ))

    def register_student(self, wallet_address: str, name: str) -> RegistrationResult:
        address = normalize_address(wallet_address, "student address")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Student name is required.")

        on_chain = decode_struct(self._ledger.call("students", address), STUDENT_FIELDS)
        if on_chain["isRegistered"]:
            logger.info("Student %s already registered on-chain", address)
            self._save_student(address, on_chain["name"] or name)
            return RegistrationResult(kind="student", key=address, state=RegistrationState.PRE_EXISTING)

        # students sign for themselves when we hold their key, otherwise the admin sponsors
        if self._ledger.can_sign(address):
            sender = address
        else:
            sender = self._identity.admin_sender()
            logger.info("Student %s cannot sign, registration sponsored by admin %s", address, sender)

        try:
            receipt = self._ledger.send("addStudent", [address, name], sender)
        except AlreadyExistsError:
            logger.info("Student %s registered concurrently", address)
            self._save_student(address, name)
            return RegistrationResult(kind="student", key=address, state=RegistrationState.PRE_EXISTING, sender=sender)

        self._save_student(address, name, receipt.tx_hash, receipt.block_number)
        logger.info("Student %s registered (tx %s)", address, receipt.tx_hash)
        return RegistrationResult(
            kind="student",
            key=address,
            state=RegistrationState.REGISTERED,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            sender=sender,
        )

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------
    def create_course(
        self,
        course_id,
        course_name: str,
        teachers: List[dict],
        branch: Optional[str] = None,
        course_time: Optional[str] = None,
        sender_hint: Optional[str] = None,
    ) -> CourseCreationResult:
        data = validate_course_request({
            "course_id": course_id,
            "course_name": course_name,
            "teachers": teachers,
            "branch": branch,
            "course_time": course_time,
        }).unwrap()
        course_id = data["course_id"]

        existing = decode_struct(self._ledger.call("courses", course_id), COURSE_FIELDS)
        if existing["exists"]:
            raise ConflictError(f"Course {course_id} already exists.")

        if sender_hint:
            sender = self._identity.resolve_sender_for(sender_hint, "course creator")
        else:
            sender = self._identity.admin_sender()

        warnings: List[TeacherWarning] = []
        registered: List[Teacher] = []
        for request in data["teachers"]:
            try:
                self.register_teacher(request.teacher_id, request.teacher_name, sender=sender)
            except FeedbackLedgerError as exc:
                logger.warning("Course %s: skipping teacher %s, registration failed: %s", course_id, request.teacher_id, exc.message)
                warnings.append(TeacherWarning(teacher_id=request.teacher_id, stage="register", message=exc.message))
                continue
            registered.append(Teacher(teacher_id=request.teacher_id, name=request.teacher_name))

        try:
            receipt = self._ledger.send("addCourse", [course_id, data["course_name"]], sender)
        except AlreadyExistsError as exc:
            raise ConflictError(f"Course {course_id} already exists.") from exc

        linked: List[Teacher] = []
        for teacher in registered:
            try:
                self._ledger.send("assignTeacherToCourse", [course_id, teacher.teacher_id], sender)
            except AlreadyExistsError:
                logger.info("Teacher %s already assigned to course %s", teacher.teacher_id, course_id)
            except FeedbackLedgerError as exc:
                logger.warning("Course %s: assigning teacher %s failed: %s", course_id, teacher.teacher_id, exc.message)
                warnings.append(TeacherWarning(teacher_id=teacher.teacher_id, stage="assign", message=exc.message))
                continue
            linked.append(teacher)

        now = _now_iso()
        course = Course(
            course_id=course_id,
            course_name=data["course_name"],
            branch=data["branch"],
            course_time=data["course_time"],
            teacher_ids=[t.teacher_id for t in linked],
            teachers=linked,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            created_at=now,
            updated_at=now,
        )
        self._courses.save_course(course)
        logger.info(
            "Course %s created (tx %s), %d teacher(s) linked, %d warning(s)",
            course_id, receipt.tx_hash, len(linked), len(warnings),
        )
        return CourseCreationResult(
            course=course,
            tx_hash=receipt.tx_hash,
            block_number=receipt.block_number,
            warnings=warnings,
        )
