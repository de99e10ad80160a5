"""Registration and admin identity models."""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RegistrationState(str, Enum):
    ABSENT = "absent"
    REGISTERING = "registering"
    REGISTERED = "registered"
    PRE_EXISTING = "pre_existing"  # registered by an earlier or concurrent attempt


@dataclass
class RegistrationResult:
    kind: str  # teacher | student
    key: str
    state: RegistrationState
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    sender: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.state == RegistrationState.REGISTERED


@dataclass
class Student:
    wallet_address: str
    name: str
    role: str = "student"
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class AdminRotation:
    rotated: bool
    previous: str
    current: str
    tx_hash: Optional[str] = None
