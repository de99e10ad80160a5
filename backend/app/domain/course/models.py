"""Course and teacher domain models — pure Python, no DB or ledger dependencies."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Teacher:
    teacher_id: str
    name: str
    tx_hash: Optional[str] = None
    created_at: str = ""


@dataclass
class TeacherRequest:
    """One entry of the teacher set sent with a course creation request."""
    teacher_id: str
    teacher_name: str


@dataclass
class Course:
    course_id: str
    course_name: str
    branch: Optional[str] = None
    course_time: Optional[str] = None
    teacher_ids: List[str] = field(default_factory=list)
    teachers: List[Teacher] = field(default_factory=list)
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class TeacherWarning:
    teacher_id: str
    stage: str  # register | assign
    message: str


@dataclass
class CourseCreationResult:
    course: Course
    tx_hash: str
    block_number: Optional[int] = None
    warnings: List[TeacherWarning] = field(default_factory=list)

    @property
    def linked_teacher_ids(self) -> List[str]:
        return list(self.course.teacher_ids)
