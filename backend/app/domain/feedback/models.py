"""Feedback domain models."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

RATING_LABELS = ("teaching", "communication", "fairness", "engagement")

# Staging lifecycle
PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
FAILED = "FAILED"
TIMED_OUT = "TIMED_OUT"


@dataclass
class FeedbackPayload:
    student_address: str
    course_id: str
    teacher_id: str
    ratings: List[int]
    comment: str = ""


@dataclass
class StagedFeedback:
    id: str
    student_address: str
    course_id: str
    teacher_id: str
    ratings: List[int]
    comment: str
    sender: str
    sponsored: bool
    status: str
    created_at: str
    updated_at: str
    expires_at: str
    tx_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SubmissionRecord:
    """Off-chain tracking row; exists only for confirmed submissions."""
    student_address: str
    course_id: str
    teacher_id: str
    tx_hash: str
    staging_id: Optional[str]
    submitted_at: str


@dataclass
class FeedbackReceipt:
    tx_hash: str
    staging_id: str
    sponsored: bool = False
    block_number: Optional[int] = None
    staged: bool = True


@dataclass
class FeedbackRecord:
    """One feedback entry as stored on the ledger."""
    feedback_id: int
    student_wallet: str
    teacher_id: str
    course_id: str
    ratings: List[int]
    total_score: int
    comments: str
    timestamp: int

    @property
    def average_score(self) -> float:
        return round(self.total_score / len(RATING_LABELS), 2)


@dataclass
class NoFeedbackYet:
    """Nothing has been submitted for the (teacher, course) pair. Not a zero average."""
    teacher_id: str
    course_id: str


@dataclass
class FeedbackGroups:
    by_course: dict = field(default_factory=dict)
    by_teacher: dict = field(default_factory=dict)
