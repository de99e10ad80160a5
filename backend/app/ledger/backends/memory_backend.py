"""In-memory contract simulator.

Implements the feedback contract's rules (admin-only registration, one
feedback per student/teacher/course, revert reasons) plus per-sender nonces,
so the whole stack can run without a node. Selected with LEDGER_BACKEND=memory.
Failure injection hooks let callers rehearse reverts, timeouts and nonce races.
"""
from __future__ import annotations
import hashlib
import logging
import threading
import time
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from app.domain.common.errors import (
    LedgerTimeoutError,
    NonceConflictError,
    RevertError,
    classify_revert,
)
from app.ledger.interfaces.ledger_backend import LedgerBackend, Receipt
from app.ledger.wallet import normalize_address

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40
ONLY_ADMIN = "Only admin can perform this action"
BASE_GAS = 21000


class _Injection:
    def __init__(self, reason: Optional[str], when: Optional[Callable[..., bool]], times: int):
        self.reason = reason
        self.when = when
        self.times = times

    def matches(self, args: Sequence[Any]) -> bool:
        return self.times > 0 and (self.when is None or self.when(*args))


class InMemoryLedgerBackend(LedgerBackend):

    def __init__(self, accounts: Sequence[str], admin: Optional[str] = None, clock: Callable[[], float] = time.time):
        if not accounts:
            raise ValueError("the in-memory ledger needs at least one account")
        self._lock = threading.RLock()
        self._clock = clock
        self._accounts = [normalize_address(a) for a in accounts]
        self._admin = normalize_address(admin) if admin else self._accounts[0]

        self._nonces: Dict[str, int] = defaultdict(int)
        self._students: Dict[str, tuple] = {}
        self._teachers: Dict[str, tuple] = {}
        self._courses: Dict[str, tuple] = {}
        self._course_ids: List[str] = []
        self._course_teachers: Dict[str, List[str]] = defaultdict(list)
        self._feedbacks: List[tuple] = []
        self._submitted: set = set()
        self._block_number = 0

        self._reverts: Dict[str, List[_Injection]] = defaultdict(list)
        self._timeouts: Dict[str, List[_Injection]] = defaultdict(list)
        self.transactions: List[Tuple[str, tuple, Receipt]] = []

        self._views = {
            "admin": lambda: self._admin,
            "students": self._view_student,
            "teachers": lambda teacher_id: self._teachers.get(teacher_id, ("", "", False)),
            "courses": lambda course_id: self._courses.get(course_id, ("", "", False)),
            "courseTeacherList": self._view_course_teacher,
            "getAllCourseIds": lambda: list(self._course_ids),
            "hasSubmittedFeedback": lambda student, teacher_id, course_id: (
                (student.lower(), teacher_id, course_id) in self._submitted
            ),
            "getTeacherCourseAverages": self._view_averages,
            "feedbackCount": lambda: len(self._feedbacks),
            "getFeedback": self._view_feedback,
            "getAllFeedbacks": lambda: list(self._feedbacks),
        }
        self._mutators = {
            "changeAdmin": self._change_admin,
            "addStudent": self._add_student,
            "addTeacher": self._add_teacher,
            "addCourse": self._add_course,
            "assignTeacherToCourse": self._assign_teacher,
            "submitFeedback": self._submit_feedback,
        }

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------
    def inject_revert(self, method: str, reason: str, when: Optional[Callable[..., bool]] = None, times: int = 1) -> None:
        """Make the next ``times`` matching calls/sends of ``method`` revert with ``reason``."""
        self._reverts[method].append(_Injection(reason, when, times))

    def inject_timeout(self, method: str, when: Optional[Callable[..., bool]] = None, times: int = 1) -> None:
        """Apply the next matching send, then report it as unconfirmed."""
        self._timeouts[method].append(_Injection(None, when, times))

    def bump_nonce(self, address: str, count: int = 1) -> None:
        """Simulate transactions sent for ``address`` by someone else."""
        with self._lock:
            self._nonces[normalize_address(address).lower()] += count

    def landed(self, method: Optional[str] = None) -> List[Receipt]:
        return [receipt for name, _, receipt in self.transactions if method is None or name == method]

    def _take(self, injections: Dict[str, List[_Injection]], method: str, args: Sequence[Any]) -> Optional[_Injection]:
        for injection in injections.get(method, []):
            if injection.matches(args):
                injection.times -= 1
                return injection
        return None

    # ------------------------------------------------------------------
    # LedgerBackend
    # ------------------------------------------------------------------
    def node_accounts(self) -> List[str]:
        return list(self._accounts)

    def call(self, method: str, args: Sequence[Any], from_address: Optional[str] = None) -> Any:
        with self._lock:
            injected = self._take(self._reverts, method, args)
            if injected:
                raise classify_revert(method, injected.reason)
            view = self._views.get(method)
            if view is None:
                raise RevertError(method, "function not found")
            return view(*args)

    def pending_nonce(self, address: str) -> int:
        with self._lock:
            return self._nonces[normalize_address(address).lower()]

    def send_transaction(
        self,
        method: str,
        args: Sequence[Any],
        from_address: str,
        gas: int,
        nonce: int,
        private_key: Optional[str] = None,
        timeout: float = 60.0,
    ) -> Receipt:
        with self._lock:
            sender = normalize_address(from_address)
            if private_key is None and sender not in self._accounts:
                raise RevertError(method, f"sender account {sender} not recognized")

            expected = self._nonces[sender.lower()]
            if nonce != expected:
                raise NonceConflictError(method, nonce, "nonce too low" if nonce < expected else "nonce too high")

            mutator = self._mutators.get(method)
            if mutator is None:
                raise RevertError(method, "function not found")

            # mined from here on, even if it reverts
            self._nonces[sender.lower()] += 1
            self._block_number += 1
            tx_hash = "0x" + hashlib.sha256(f"{sender}:{nonce}:{method}".encode("utf-8")).hexdigest()

            injected = self._take(self._reverts, method, args)
            if injected:
                raise classify_revert(method, injected.reason, tx_hash)
            mutator(sender, *args)

            receipt = Receipt(
                tx_hash=tx_hash,
                block_number=self._block_number,
                sender=sender,
                nonce=nonce,
                gas_used=min(gas, BASE_GAS),
            )
            self.transactions.append((method, tuple(args), receipt))
            logger.debug("memory ledger: %s from %s landed in block %d", method, sender, self._block_number)

            if self._take(self._timeouts, method, args):
                raise LedgerTimeoutError(method, tx_hash)
            return receipt

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def _view_student(self, wallet: str) -> tuple:
        return self._students.get(wallet.lower(), (ZERO_ADDRESS, "", False))

    def _view_course_teacher(self, course_id: str, index: int) -> str:
        teachers = self._course_teachers.get(course_id, [])
        if not 0 <= int(index) < len(teachers):
            raise RevertError("courseTeacherList", "index out of bounds")
        return teachers[int(index)]

    def _view_averages(self, teacher_id: str, course_id: str) -> list:
        rows = [fb for fb in self._feedbacks if fb[1] == teacher_id and fb[2] == course_id]
        if not rows:
            raise RevertError("getTeacherCourseAverages", "No feedback for this teacher and course")
        # uint256 arithmetic on-chain: integer division
        return [sum(fb[3][i] for fb in rows) // len(rows) for i in range(4)]

    def _view_feedback(self, index: int) -> tuple:
        if not 0 <= int(index) < len(self._feedbacks):
            raise RevertError("getFeedback", "index out of bounds")
        return self._feedbacks[int(index)]

    # ------------------------------------------------------------------
    # State-changing functions
    # ------------------------------------------------------------------
    def _require(self, condition: bool, method: str, reason: str) -> None:
        if not condition:
            raise classify_revert(method, reason)

    def _only_admin(self, sender: str, method: str) -> None:
        self._require(sender == self._admin, method, ONLY_ADMIN)

    def _change_admin(self, sender: str, new_admin: str) -> None:
        self._only_admin(sender, "changeAdmin")
        new_admin = normalize_address(new_admin)
        self._require(new_admin != ZERO_ADDRESS, "changeAdmin", "Invalid admin address")
        self._admin = new_admin

    def _add_student(self, sender: str, wallet: str, name: str) -> None:
        wallet = normalize_address(wallet)
        self._require(sender in (self._admin, wallet), "addStudent", "Not authorized to register this student")
        self._require(wallet.lower() not in self._students, "addStudent", "Student already registered")
        self._students[wallet.lower()] = (wallet, name, True)

    def _add_teacher(self, sender: str, teacher_id: str, name: str) -> None:
        self._only_admin(sender, "addTeacher")
        self._require(teacher_id not in self._teachers, "addTeacher", "Teacher already registered")
        self._teachers[teacher_id] = (teacher_id, name, True)

    def _add_course(self, sender: str, course_id: str, course_name: str) -> None:
        self._only_admin(sender, "addCourse")
        self._require(course_id not in self._courses, "addCourse", "Course already exists")
        self._courses[course_id] = (course_id, course_name, True)
        self._course_ids.append(course_id)

    def _assign_teacher(self, sender: str, course_id: str, teacher_id: str) -> None:
        method = "assignTeacherToCourse"
        self._only_admin(sender, method)
        self._require(course_id in self._courses, method, "Course not found")
        self._require(teacher_id in self._teachers, method, "Teacher not found")
        self._require(teacher_id not in self._course_teachers[course_id], method, "Teacher already assigned to course")
        self._course_teachers[course_id].append(teacher_id)

    def _submit_feedback(self, sender: str, student: str, teacher_id: str, course_id: str, ratings, comments: str) -> None:
        method = "submitFeedback"
        student = normalize_address(student)
        self._require(sender in (student, self._admin), method, "Not authorized to submit for this student")
        self._require(student.lower() in self._students, method, "Student not registered")
        self._require(course_id in self._courses, method, "Course not found")
        self._require(teacher_id in self._course_teachers.get(course_id, []), method, "Teacher not assigned to course")
        ratings = [int(r) for r in ratings]
        self._require(len(ratings) == 4 and all(1 <= r <= 5 for r in ratings), method, "Invalid rating")
        key = (student.lower(), teacher_id, course_id)
        self._require(key not in self._submitted, method, "Feedback already submitted")

        self._submitted.add(key)
        feedback_id = len(self._feedbacks) + 1
        self._feedbacks.append((
            student,
            teacher_id,
            course_id,
            ratings,
            sum(ratings),
            feedback_id,
            comments,
            int(self._clock()),
        ))
