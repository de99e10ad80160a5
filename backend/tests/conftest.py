"""Shared fixtures: services wired over the in-memory ledger and a temp SQLite file."""
from types import SimpleNamespace

import pytest
from eth_account import Account

from app.application.admin_identity import AdminIdentityResolver
from app.application.aggregation_service import ReadSideAggregator
from app.application.feedback_service import FeedbackSubmissionCoordinator
from app.application.registration_service import RegistrationOrchestrator
from app.ledger.backends.memory_backend import InMemoryLedgerBackend
from app.ledger.client import LedgerClient
from app.ledger.wallet import SigningWallet
from app.persistence.db import init_db
from app.persistence.repositories.sqlite.sqlite_course_repository import (
    SqliteCourseRepository,
    SqliteTeacherRepository,
)
from app.persistence.repositories.sqlite.sqlite_feedback_repository import (
    SqliteStagingRepository,
    SqliteSubmissionRepository,
)
from app.persistence.repositories.sqlite.sqlite_user_repository import SqliteUserRepository

# Node-unlocked accounts of the simulated ledger; the first one is the admin.
ADMIN = "0x1000000000000000000000000000000000000001"
SECOND_NODE = "0x3000000000000000000000000000000000000003"

# Students whose keys this process holds.
STUDENT_KEY = "0x" + "11" * 32
STUDENT2_KEY = "0x" + "22" * 32
STUDENT = Account.from_key(STUDENT_KEY).address
STUDENT2 = Account.from_key(STUDENT2_KEY).address

# A student nobody here can sign for.
OUTSIDER = "0x2000000000000000000000000000000000000002"


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "test.db")
    init_db(path)
    return path


@pytest.fixture
def repos(db_path):
    return SimpleNamespace(
        courses=SqliteCourseRepository(db_path),
        teachers=SqliteTeacherRepository(db_path),
        users=SqliteUserRepository(db_path),
        staging=SqliteStagingRepository(db_path),
        submissions=SqliteSubmissionRepository(db_path),
    )


@pytest.fixture
def backend():
    return InMemoryLedgerBackend(accounts=[ADMIN, SECOND_NODE])


@pytest.fixture
def ledger(backend):
    return LedgerClient(
        backend,
        wallet=SigningWallet([STUDENT_KEY, STUDENT2_KEY]),
        retry_backoff=0,
    )


@pytest.fixture
def identity(ledger, repos):
    return AdminIdentityResolver(ledger, repos.users)


@pytest.fixture
def registration(ledger, identity, repos):
    return RegistrationOrchestrator(ledger, identity, repos.courses, repos.teachers, repos.users)


@pytest.fixture
def feedback(ledger, identity, repos):
    return FeedbackSubmissionCoordinator(ledger, identity, repos.staging, repos.submissions)


@pytest.fixture
def aggregator(ledger, repos):
    return ReadSideAggregator(ledger, repos.courses, probe_limit=50, probe_max_gap=3)


@pytest.fixture
def course_ready(registration):
    """Course 101 taught by T1 and T2, with STUDENT and STUDENT2 registered."""
    registration.create_course(
        "101",
        "Algorithms",
        [{"teacher_id": "T1", "teacher_name": "Ada"}, {"teacher_id": "T2", "teacher_name": "Grace"}],
        branch="CSE",
        course_time="Mon 09:00",
    )
    registration.register_student(STUDENT, "Sam")
    registration.register_student(STUDENT2, "Kim")
    return "101"
