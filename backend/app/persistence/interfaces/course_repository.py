"""Abstract repository interfaces for courses and teachers."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from app.domain.course.models import Course, Teacher


class CourseRepository(ABC):

    @abstractmethod
    def save_course(self, course: Course) -> None:
        """Insert or update the course row and replace its teacher links."""
        ...

    @abstractmethod
    def get_by_id(self, course_id: str) -> Optional[Course]:
        """Return the course with teacher_ids populated, or None."""
        ...

    @abstractmethod
    def list_all(self) -> List[Course]:
        ...


class TeacherRepository(ABC):

    @abstractmethod
    def upsert(self, teacher: Teacher) -> None:
        """Insert the teacher, or refresh its name and keep the first known tx hash."""
        ...

    @abstractmethod
    def get_by_id(self, teacher_id: str) -> Optional[Teacher]:
        ...
