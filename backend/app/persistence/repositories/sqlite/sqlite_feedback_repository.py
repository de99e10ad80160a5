"""SQLite implementations of the staging and submission-tracking repositories."""
from __future__ import annotations
import json
import sqlite3
from typing import List, Optional

from app.domain.feedback.models import StagedFeedback, SubmissionRecord
from app.persistence.interfaces.feedback_repository import StagingRepository, SubmissionRepository
from app.persistence.db import get_connection


def _row_to_staged(row) -> StagedFeedback:
    return StagedFeedback(
        id=row["id"],
        student_address=row["student_address"],
        course_id=row["course_id"],
        teacher_id=row["teacher_id"],
        ratings=json.loads(row["ratings"] or "[]"),
        comment=row["comment"],
        sender=row["sender"],
        sponsored=bool(row["sponsored"]),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        expires_at=row["expires_at"],
        tx_hash=row["tx_hash"],
        error=row["error"],
    )


def _row_to_submission(row) -> SubmissionRecord:
    return SubmissionRecord(
        student_address=row["student_address"],
        course_id=row["course_id"],
        teacher_id=row["teacher_id"],
        tx_hash=row["tx_hash"],
        staging_id=row["staging_id"],
        submitted_at=row["submitted_at"],
    )


class SqliteStagingRepository(StagingRepository):

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    def add(self, record: StagedFeedback) -> None:
        conn = get_connection(self._db_path)
        conn.execute(
            """
            INSERT INTO feedback_staging (
                id, student_address, course_id, teacher_id, ratings, comment,
                sender, sponsored, status, tx_hash, error,
                created_at, updated_at, expires_at
            ) VALUES (
                :id, :student_address, :course_id, :teacher_id, :ratings, :comment,
                :sender, :sponsored, :status, :tx_hash, :error,
                :created_at, :updated_at, :expires_at
            )
            """,
            {
                "id": record.id,
                "student_address": record.student_address.lower(),
                "course_id": record.course_id,
                "teacher_id": record.teacher_id,
                "ratings": json.dumps(record.ratings),
                "comment": record.comment,
                "sender": record.sender,
                "sponsored": 1 if record.sponsored else 0,
                "status": record.status,
                "tx_hash": record.tx_hash,
                "error": record.error,
                "created_at": record.created_at,
                "updated_at": record.updated_at,
                "expires_at": record.expires_at,
            },
        )
        conn.commit()
        conn.close()

    def update_status(
        self,
        staging_id: str,
        status: str,
        updated_at: str,
        tx_hash: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        conn = get_connection(self._db_path)
        conn.execute(
            """
            UPDATE feedback_staging
            SET status = ?, updated_at = ?, tx_hash = COALESCE(?, tx_hash), error = ?
            WHERE id = ?
            """,
            (status, updated_at, tx_hash, error, staging_id),
        )
        conn.commit()
        conn.close()

    def get(self, staging_id: str) -> Optional[StagedFeedback]:
        conn = get_connection(self._db_path)
        row = conn.execute("SELECT * FROM feedback_staging WHERE id = ?", (staging_id,)).fetchone()
        conn.close()
        return _row_to_staged(row) if row else None

    def find_for_triple(
        self, student_address: str, course_id: str, teacher_id: str, status: Optional[str] = None
    ) -> List[StagedFeedback]:
        sql = (
            "SELECT * FROM feedback_staging "
            "WHERE student_address = ? AND course_id = ? AND teacher_id = ?"
        )
        params: list = [student_address.lower(), course_id, teacher_id]
        if status:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY created_at DESC"
        conn = get_connection(self._db_path)
        rows = conn.execute(sql, params).fetchall()
        conn.close()
        return [_row_to_staged(r) for r in rows]

    def list_all(self) -> List[StagedFeedback]:
        conn = get_connection(self._db_path)
        rows = conn.execute("SELECT * FROM feedback_staging ORDER BY created_at DESC").fetchall()
        conn.close()
        return [_row_to_staged(r) for r in rows]

    def purge_expired(self, now: str) -> int:
        conn = get_connection(self._db_path)
        cur = conn.execute("DELETE FROM feedback_staging WHERE expires_at < ?", (now,))
        count = cur.rowcount
        conn.commit()
        conn.close()
        return count

    def purge_all(self) -> int:
        conn = get_connection(self._db_path)
        cur = conn.execute("DELETE FROM feedback_staging")
        count = cur.rowcount
        conn.commit()
        conn.close()
        return count

    def trim(self, max_records: int, keep_statuses: tuple) -> int:
        conn = get_connection(self._db_path)
        try:
            total = conn.execute("SELECT COUNT(*) FROM feedback_staging").fetchone()[0]
            excess = total - max_records
            if excess <= 0:
                return 0
            placeholders = ",".join("?" for _ in keep_statuses) or "''"
            cur = conn.execute(
                f"""
                DELETE FROM feedback_staging WHERE id IN (
                    SELECT id FROM feedback_staging
                    WHERE status NOT IN ({placeholders})
                    ORDER BY created_at ASC
                    LIMIT ?
                )
                """,
                (*keep_statuses, excess),
            )
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()


class SqliteSubmissionRepository(SubmissionRepository):

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    def record(self, submission: SubmissionRecord) -> bool:
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                INSERT INTO feedback_submissions (
                    student_address, course_id, teacher_id, tx_hash, staging_id, submitted_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    submission.student_address.lower(),
                    submission.course_id,
                    submission.teacher_id,
                    submission.tx_hash,
                    submission.staging_id,
                    submission.submitted_at,
                ),
            )
            conn.commit()
            return True
        except sqlite3.IntegrityError:
            return False
        finally:
            conn.close()

    def exists(self, student_address: str, course_id: str, teacher_id: str) -> bool:
        conn = get_connection(self._db_path)
        row = conn.execute(
            """
            SELECT 1 FROM feedback_submissions
            WHERE student_address = ? AND course_id = ? AND teacher_id = ?
            """,
            (student_address.lower(), course_id, teacher_id),
        ).fetchone()
        conn.close()
        return row is not None

    def list_for_student(self, student_address: str) -> List[SubmissionRecord]:
        conn = get_connection(self._db_path)
        rows = conn.execute(
            "SELECT * FROM feedback_submissions WHERE student_address = ? ORDER BY submitted_at",
            (student_address.lower(),),
        ).fetchall()
        conn.close()
        return [_row_to_submission(r) for r in rows]
