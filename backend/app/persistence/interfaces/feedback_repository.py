"""Abstract repositories for feedback staging and confirmed-submission tracking."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Optional

from app.domain.feedback.models import StagedFeedback, SubmissionRecord


class StagingRepository(ABC):

    @abstractmethod
    def add(self, record: StagedFeedback) -> None:
        ...

    @abstractmethod
    def update_status(
        self,
        staging_id: str,
        status: str,
        updated_at: str,
        tx_hash: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        ...

    @abstractmethod
    def get(self, staging_id: str) -> Optional[StagedFeedback]:
        ...

    @abstractmethod
    def find_for_triple(self, student_address: str, course_id: str, teacher_id: str, status: Optional[str] = None) -> List[StagedFeedback]:
        """Staged records for a (student, course, teacher) triple, newest first."""
        ...

    @abstractmethod
    def list_all(self) -> List[StagedFeedback]:
        """All staged records, newest first."""
        ...

    @abstractmethod
    def purge_expired(self, now: str) -> int:
        """Delete records whose expires_at is before ``now``. Returns the count."""
        ...

    @abstractmethod
    def purge_all(self) -> int:
        ...

    @abstractmethod
    def trim(self, max_records: int, keep_statuses: tuple) -> int:
        """Drop the oldest records not in ``keep_statuses`` until at most ``max_records`` remain."""
        ...


class SubmissionRepository(ABC):

    @abstractmethod
    def record(self, submission: SubmissionRecord) -> bool:
        """Insert the tracking row. Returns False if the triple was already recorded."""
        ...

    @abstractmethod
    def exists(self, student_address: str, course_id: str, teacher_id: str) -> bool:
        ...

    @abstractmethod
    def list_for_student(self, student_address: str) -> List[SubmissionRecord]:
        ...
