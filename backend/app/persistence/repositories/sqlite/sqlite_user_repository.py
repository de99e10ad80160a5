"""SQLite implementation of UserRepository."""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional

from app.domain.registration.models import Student
from app.persistence.interfaces.user_repository import UserRepository
from app.persistence.db import get_connection


def _row_to_student(row) -> Student:
    return Student(
        wallet_address=row["wallet_address"],
        name=row["name"],
        role=row["role"],
        tx_hash=row["tx_hash"],
        block_number=row["block_number"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SqliteUserRepository(UserRepository):

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path

    def save_student(self, student: Student) -> None:
        conn = get_connection(self._db_path)
        # An admin row keeps its role when the same wallet registers as a student.
        conn.execute(
            """
            INSERT INTO users (wallet_address, name, role, tx_hash, block_number, created_at, updated_at)
            VALUES (:wallet_address, :name, :role, :tx_hash, :block_number, :created_at, :updated_at)
            ON CONFLICT(wallet_address) DO UPDATE SET
                name         = excluded.name,
                role         = CASE WHEN users.role = 'admin' THEN 'admin' ELSE excluded.role END,
                tx_hash      = COALESCE(excluded.tx_hash, users.tx_hash),
                block_number = COALESCE(excluded.block_number, users.block_number),
                updated_at   = excluded.updated_at
            """,
            {
                "wallet_address": student.wallet_address.lower(),
                "name": student.name,
                "role": student.role,
                "tx_hash": student.tx_hash,
                "block_number": student.block_number,
                "created_at": student.created_at,
                "updated_at": student.updated_at,
            },
        )
        conn.commit()
        conn.close()

    def get_by_wallet(self, wallet_address: str) -> Optional[Student]:
        conn = get_connection(self._db_path)
        row = conn.execute(
            "SELECT * FROM users WHERE wallet_address = ?", (wallet_address.lower(),)
        ).fetchone()
        conn.close()
        return _row_to_student(row) if row else None

    def get_admin_address(self) -> Optional[str]:
        conn = get_connection(self._db_path)
        row = conn.execute(
            "SELECT wallet_address FROM users WHERE role = 'admin' ORDER BY updated_at DESC LIMIT 1"
        ).fetchone()
        conn.close()
        return row["wallet_address"] if row else None

    def set_admin_address(self, wallet_address: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        address = wallet_address.lower()
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                "UPDATE users SET role = 'user', updated_at = ? WHERE role = 'admin' AND wallet_address != ?",
                (now, address),
            )
            conn.execute(
                """
                INSERT INTO users (wallet_address, name, role, created_at, updated_at)
                VALUES (?, 'admin', 'admin', ?, ?)
                ON CONFLICT(wallet_address) DO UPDATE SET
                    role       = 'admin',
                    updated_at = excluded.updated_at
                """,
                (address, now, now),
            )
            conn.commit()
        finally:
            conn.close()
