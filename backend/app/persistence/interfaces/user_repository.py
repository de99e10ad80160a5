"""Abstract repository for students and the cached admin address."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

from app.domain.registration.models import Student


class UserRepository(ABC):

    @abstractmethod
    def save_student(self, student: Student) -> None:
        """Insert or update a student keyed by wallet address."""
        ...

    @abstractmethod
    def get_by_wallet(self, wallet_address: str) -> Optional[Student]:
        ...

    @abstractmethod
    def get_admin_address(self) -> Optional[str]:
        """The admin address last seen on-chain, or None."""
        ...

    @abstractmethod
    def set_admin_address(self, wallet_address: str) -> None:
        """Make ``wallet_address`` the only row with role 'admin'."""
        ...
