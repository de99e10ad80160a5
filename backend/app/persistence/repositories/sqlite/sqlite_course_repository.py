"""SQLite implementations of CourseRepository and TeacherRepository."""
from __future__ import annotations
import json
from typing import List, Optional

from app.domain.course.models import Course, Teacher
from app.persistence.interfaces.course_repository import CourseRepository, TeacherRepository
from app.persistence.db import get_connection


def _row_to_course(row) -> Course:
    return Course(
        course_id=row["course_id"],
        course_name=row["course_name"],
        branch=row["branch"],
        course_time=row["course_time"],
        teacher_ids=json.loads(row["teacher_ids"] or "[]"),
        tx_hash=row["tx_hash"],
        block_number=row["block_number"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_teacher(row) -> Teacher:
    return Teacher(
        teacher_id=row["teacher_id"],
        name=row["name"],
        tx_hash=row["tx_hash"],
        created_at=row["created_at"],
    )


class SqliteCourseRepository(CourseRepository):

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    def save_course(self, course: Course) -> None:
        conn = get_connection(self._db_path)
        conn.execute(
            """
            INSERT INTO courses (
                course_id, course_name, branch, course_time, teacher_ids,
                tx_hash, block_number, created_at, updated_at
            ) VALUES (
                :course_id, :course_name, :branch, :course_time, :teacher_ids,
                :tx_hash, :block_number, :created_at, :updated_at
            )
            ON CONFLICT(course_id) DO UPDATE SET
                course_name  = excluded.course_name,
                branch       = excluded.branch,
                course_time  = excluded.course_time,
                teacher_ids  = excluded.teacher_ids,
                tx_hash      = COALESCE(excluded.tx_hash, courses.tx_hash),
                block_number = COALESCE(excluded.block_number, courses.block_number),
                updated_at   = excluded.updated_at
            """,
            {
                "course_id": course.course_id,
                "course_name": course.course_name,
                "branch": course.branch,
                "course_time": course.course_time,
                "teacher_ids": json.dumps(course.teacher_ids),
                "tx_hash": course.tx_hash,
                "block_number": course.block_number,
                "created_at": course.created_at,
                "updated_at": course.updated_at,
            },
        )
        conn.commit()
        conn.close()

    def get_by_id(self, course_id: str) -> Optional[Course]:
        conn = get_connection(self._db_path)
        row = conn.execute("SELECT * FROM courses WHERE course_id = ?", (course_id,)).fetchone()
        conn.close()
        return _row_to_course(row) if row else None

    def list_all(self) -> List[Course]:
        conn = get_connection(self._db_path)
        rows = conn.execute("SELECT * FROM courses ORDER BY CAST(course_id AS INTEGER)").fetchall()
        conn.close()
        return [_row_to_course(r) for r in rows]


class SqliteTeacherRepository(TeacherRepository):

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    def upsert(self, teacher: Teacher) -> None:
        conn = get_connection(self._db_path)
        conn.execute(
            """
            INSERT INTO teachers (teacher_id, name, tx_hash, created_at)
            VALUES (:teacher_id, :name, :tx_hash, :created_at)
            ON CONFLICT(teacher_id) DO UPDATE SET
                name    = excluded.name,
                tx_hash = COALESCE(teachers.tx_hash, excluded.tx_hash)
            """,
            {
                "teacher_id": teacher.teacher_id,
                "name": teacher.name,
                "tx_hash": teacher.tx_hash,
                "created_at": teacher.created_at,
            },
        )
        conn.commit()
        conn.close()

    def get_by_id(self, teacher_id: str) -> Optional[Teacher]:
        conn = get_connection(self._db_path)
        row = conn.execute("SELECT * FROM teachers WHERE teacher_id = ?", (teacher_id,)).fetchone()
        conn.close()
        return _row_to_teacher(row) if row else None
