"""Read-side aggregator — course, teacher and feedback views built from ledger reads."""
from __future__ import annotations
import logging
from collections import defaultdict
from typing import Any, List, Union

from app.domain.common.errors import FeedbackLedgerError, NotFoundError, RevertError, ValidationError
from app.domain.course.models import Course, Teacher
from app.domain.course.rules import validate_course_id
from app.domain.feedback.models import RATING_LABELS, FeedbackGroups, FeedbackRecord, NoFeedbackYet
from app.ledger.client import LedgerClient
from app.ledger.decoding import COURSE_FIELDS, FEEDBACK_FIELDS, TEACHER_FIELDS, as_int_list, decode_struct
from app.persistence.interfaces.course_repository import CourseRepository

logger = logging.getLogger(__name__)


def _to_feedback_record(raw: Any) -> FeedbackRecord:
    fields = decode_struct(raw, FEEDBACK_FIELDS)
    return FeedbackRecord(
        feedback_id=int(fields["id"] or 0),
        student_wallet=fields["studentWallet"] or "",
        teacher_id=fields["facultyId"] or "",
        course_id=fields["courseId"] or "",
        ratings=as_int_list(fields["ratings"]),
        total_score=int(fields["totalScore"] or 0),
        comments=fields["comments"] or "",
        timestamp=int(fields["timestamp"] or 0),
    )


class ReadSideAggregator:
    """Every read goes to the ledger; nothing is cached between calls."""

    def __init__(
        self,
        ledger: LedgerClient,
        courses: CourseRepository,
        probe_limit: int = 1000,
        probe_max_gap: int = 3,
        native_enumeration: bool = True,
    ):
        self._ledger = ledger
        self._courses = courses
        self._probe_limit = probe_limit
        self._probe_max_gap = probe_max_gap
        self._native_enumeration = native_enumeration

    # ------------------------------------------------------------------
    # Courses
    # ------------------------------------------------------------------
    def _probe_course_teachers(self, course_id: str) -> List[Teacher]:
        """Walk courseTeacherList(course_id, i) until it reverts.

        Blank entries and unregistered teachers are holes. Probing gives up
        after ``probe_max_gap`` holes in a row or ``probe_limit`` indices.
        """
        found: List[Teacher] = []
        seen = set()
        gap = 0
        for index in range(self._probe_limit):
            try:
                teacher_id = self._ledger.call("courseTeacherList", course_id, index)
            except RevertError:
                break
            teacher_id = (teacher_id or "").strip()
            on_chain = decode_struct(self._ledger.call("teachers", teacher_id), TEACHER_FIELDS) if teacher_id else None
            if not on_chain or not on_chain["isRegistered"]:
                gap += 1
                logger.debug("Course %s: hole at teacher index %d", course_id, index)
                if gap >= self._probe_max_gap:
                    break
                continue
            gap = 0
            if teacher_id not in seen:
                seen.add(teacher_id)
                found.append(Teacher(teacher_id=teacher_id, name=on_chain["name"] or ""))
        else:
            logger.warning("Course %s: teacher probing hit the limit of %d", course_id, self._probe_limit)
        return found

    def get_course(self, course_id) -> Course:
        course_id = validate_course_id(course_id).unwrap()
        on_chain = decode_struct(self._ledger.call("courses", course_id), COURSE_FIELDS)
        if not on_chain["exists"]:
            raise NotFoundError(f"Course {course_id} not found.")

        teachers = self._probe_course_teachers(course_id)
        course = Course(
            course_id=course_id,
            course_name=on_chain["courseName"] or "",
            teacher_ids=[t.teacher_id for t in teachers],
            teachers=teachers,
        )
        stored = self._courses.get_by_id(course_id)
        if stored:
            course.branch = stored.branch
            course.course_time = stored.course_time
            course.tx_hash = stored.tx_hash
            course.block_number = stored.block_number
            course.created_at = stored.created_at
            course.updated_at = stored.updated_at
        return course

    def _course_ids(self) -> List[str]:
        if self._native_enumeration:
            return [str(c) for c in (self._ledger.call("getAllCourseIds") or [])]
        return [c.course_id for c in self._courses.list_all()]

    def list_courses(self) -> List[Course]:
        courses: List[Course] = []
        for course_id in self._course_ids():
            try:
                courses.append(self.get_course(course_id))
            except FeedbackLedgerError as exc:
                logger.warning("Skipping course %s: %s", course_id, exc.message)
        return courses

    def list_teacher_courses(self, teacher_id: str) -> List[Course]:
        teacher_id = (teacher_id or "").strip()
        if not teacher_id:
            raise ValidationError("teacher_id is required.")
        return [c for c in self.list_courses() if teacher_id in c.teacher_ids]

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------
    def get_teacher_course_averages(self, teacher_id: str, course_id) -> Union[List[float], NoFeedbackYet]:
        """Arithmetic mean of each rating dimension for the (teacher, course) pair.

        The ledger decides whether any feedback exists. Its own averages are
        floor-divided, so the means are computed from the feedback records and
        the ledger values are only used when none of the records can be read.
        """
        teacher_id = (teacher_id or "").strip()
        if not teacher_id:
            raise ValidationError("teacher_id is required.")
        course_id = validate_course_id(course_id).unwrap()
        try:
            floored = self._ledger.call("getTeacherCourseAverages", teacher_id, course_id)
        except RevertError as exc:
            if "no feedback" in (exc.reason or "").lower():
                return NoFeedbackYet(teacher_id=teacher_id, course_id=course_id)
            raise

        records = [
            r for r in self.list_all_feedback()
            if r.teacher_id == teacher_id and r.course_id == course_id and len(r.ratings) == len(RATING_LABELS)
        ]
        if not records:
            logger.warning("No readable feedback records for %s in course %s; using ledger averages", teacher_id, course_id)
            return [float(v) for v in as_int_list(floored)]
        return [sum(r.ratings[i] for r in records) / len(records) for i in range(len(RATING_LABELS))]

    def _probe_feedbacks(self) -> List[Any]:
        count = int(self._ledger.call("feedbackCount") or 0)
        if count > self._probe_limit:
            logger.warning("Feedback probing capped at %d of %d records", self._probe_limit, count)
        raws = []
        for index in range(min(count, self._probe_limit)):
            try:
                raws.append(self._ledger.call("getFeedback", index))
            except RevertError as exc:
                logger.debug("Hole at feedback index %d: %s", index, exc.reason)
        return raws

    def list_all_feedback(self) -> List[FeedbackRecord]:
        if self._native_enumeration:
            raws = self._ledger.call("getAllFeedbacks") or []
        else:
            raws = self._probe_feedbacks()
        return [_to_feedback_record(raw) for raw in raws]

    def group_feedback(self, records: List[FeedbackRecord]) -> FeedbackGroups:
        by_course = defaultdict(list)
        by_teacher = defaultdict(list)
        for record in records:
            by_course[record.course_id].append(record)
            by_teacher[record.teacher_id].append(record)
        return FeedbackGroups(by_course=dict(by_course), by_teacher=dict(by_teacher))
