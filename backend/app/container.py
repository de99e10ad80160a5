"""Dependency injection container — wires implementations to interfaces."""
from __future__ import annotations
import logging
from functools import lru_cache

from app.core import config
from app.application.admin_identity import AdminIdentityResolver
from app.application.aggregation_service import ReadSideAggregator
from app.application.feedback_service import FeedbackSubmissionCoordinator
from app.application.registration_service import RegistrationOrchestrator
from app.ledger.backends.memory_backend import InMemoryLedgerBackend
from app.ledger.backends.web3_backend import Web3LedgerBackend, load_abi
from app.ledger.client import LedgerClient
from app.ledger.interfaces.ledger_backend import LedgerBackend
from app.ledger.wallet import SigningWallet
from app.persistence.repositories.sqlite.sqlite_course_repository import (
    SqliteCourseRepository,
    SqliteTeacherRepository,
)
from app.persistence.repositories.sqlite.sqlite_feedback_repository import (
    SqliteStagingRepository,
    SqliteSubmissionRepository,
)
from app.persistence.repositories.sqlite.sqlite_user_repository import SqliteUserRepository

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Repositories
# ------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_course_repo() -> SqliteCourseRepository:
    return SqliteCourseRepository()


@lru_cache(maxsize=1)
def get_teacher_repo() -> SqliteTeacherRepository:
    return SqliteTeacherRepository()


@lru_cache(maxsize=1)
def get_user_repo() -> SqliteUserRepository:
    return SqliteUserRepository()


@lru_cache(maxsize=1)
def get_staging_repo() -> SqliteStagingRepository:
    return SqliteStagingRepository()


@lru_cache(maxsize=1)
def get_submission_repo() -> SqliteSubmissionRepository:
    return SqliteSubmissionRepository()


# ------------------------------------------------------------------
# Ledger
# ------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_ledger_backend() -> LedgerBackend:
    if config.LEDGER_BACKEND == "memory":
        logger.info("Using the in-memory ledger with %d account(s)", len(config.LEDGER_MEMORY_ACCOUNTS))
        return InMemoryLedgerBackend(accounts=config.LEDGER_MEMORY_ACCOUNTS)
    logger.info("Using web3 ledger at %s (contract %s)", config.LEDGER_RPC_URL, config.CONTRACT_ADDRESS)
    return Web3LedgerBackend(
        rpc_url=config.LEDGER_RPC_URL,
        contract_address=config.CONTRACT_ADDRESS,
        abi=load_abi(config.CONTRACT_ABI_PATH),
        request_timeout=config.LEDGER_REQUEST_TIMEOUT,
        poll_latency=config.LEDGER_POLL_INTERVAL,
    )


@lru_cache(maxsize=1)
def get_ledger_client() -> LedgerClient:
    return LedgerClient(
        backend=get_ledger_backend(),
        wallet=SigningWallet(config.LEDGER_PRIVATE_KEYS),
        default_gas=config.LEDGER_DEFAULT_GAS,
        confirmation_timeout=config.LEDGER_CONFIRMATION_TIMEOUT,
        nonce_retries=config.LEDGER_NONCE_RETRIES,
        call_retries=config.LEDGER_CALL_RETRIES,
    )


# ------------------------------------------------------------------
# Application services
# ------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_admin_identity() -> AdminIdentityResolver:
    return AdminIdentityResolver(
        ledger=get_ledger_client(),
        users=get_user_repo(),
        resolution_order=config.ADMIN_RESOLUTION_ORDER,
        configured_address=config.ADMIN_ADDRESS or None,
    )


@lru_cache(maxsize=1)
def get_registration_service() -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        ledger=get_ledger_client(),
        identity=get_admin_identity(),
        courses=get_course_repo(),
        teachers=get_teacher_repo(),
        users=get_user_repo(),
    )


@lru_cache(maxsize=1)
def get_feedback_service() -> FeedbackSubmissionCoordinator:
    return FeedbackSubmissionCoordinator(
        ledger=get_ledger_client(),
        identity=get_admin_identity(),
        staging=get_staging_repo(),
        submissions=get_submission_repo(),
        sponsorship_enabled=config.FEEDBACK_SPONSORSHIP_ENABLED,
        staging_ttl=config.STAGING_TTL_SECONDS,
        staging_max=config.STAGING_MAX_RECORDS,
    )


@lru_cache(maxsize=1)
def get_aggregation_service() -> ReadSideAggregator:
    return ReadSideAggregator(
        ledger=get_ledger_client(),
        courses=get_course_repo(),
        probe_limit=config.LEDGER_PROBE_LIMIT,
        probe_max_gap=config.LEDGER_PROBE_MAX_GAP,
        native_enumeration=config.LEDGER_NATIVE_ENUMERATION,
    )
