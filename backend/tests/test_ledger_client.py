"""Ledger client: sender resolution, gas ceilings, nonce races, retries, revert classification."""
import threading

import pytest

from app.domain.common.errors import (
    AlreadyExistsError,
    LedgerUnavailableError,
    NonceConflictError,
    RevertError,
    SenderUnavailableError,
    ValidationError,
    classify_revert,
)
from app.ledger.client import LedgerClient
from app.ledger.wallet import SigningWallet, normalize_address
from conftest import ADMIN, OUTSIDER, SECOND_NODE, STUDENT


# ------------------------------------------------------------------
# Sender resolution
# ------------------------------------------------------------------
def test_can_sign_node_accounts_and_imported_keys(ledger):
    assert ledger.can_sign(ADMIN)
    assert ledger.can_sign(SECOND_NODE)
    assert ledger.can_sign(STUDENT)
    assert not ledger.can_sign(OUTSIDER)


def test_send_from_unsignable_address_names_the_remedy(ledger, backend):
    with pytest.raises(SenderUnavailableError) as err:
        ledger.send("addTeacher", ["T1", "Ada"], OUTSIDER)
    assert normalize_address(OUTSIDER) in err.value.message
    assert "LEDGER_PRIVATE_KEYS" in err.value.message
    assert backend.transactions == []


def test_malformed_sender_is_a_validation_error(ledger):
    with pytest.raises(ValidationError):
        ledger.send("addTeacher", ["T1", "Ada"], "0x1234")


def test_import_key_rejects_garbage():
    with pytest.raises(ValidationError):
        SigningWallet(["not-a-key"])


# ------------------------------------------------------------------
# Gas
# ------------------------------------------------------------------
def test_every_send_carries_an_explicit_gas_ceiling(ledger, backend, monkeypatch):
    seen = {}
    real = backend.send_transaction

    def spy(method, args, from_address, gas, nonce, private_key=None, timeout=60.0):
        seen[method] = gas
        return real(method, args, from_address, gas=gas, nonce=nonce, private_key=private_key, timeout=timeout)

    monkeypatch.setattr(backend, "send_transaction", spy)
    ledger.send("addTeacher", ["T1", "Ada"], ADMIN)
    ledger.send("addCourse", ["101", "Algorithms"], ADMIN)
    ledger.send("assignTeacherToCourse", ["101", "T1"], ADMIN)

    assert seen == {"addTeacher": 300000, "addCourse": 300000, "assignTeacherToCourse": 200000}
    assert ledger.gas_limit("submitFeedback") == 500000
    assert ledger.gas_limit("somethingElse") == 300000


# ------------------------------------------------------------------
# Nonces
# ------------------------------------------------------------------
def test_nonce_conflict_is_retried_with_a_fresh_nonce(ledger, backend, monkeypatch):
    backend.bump_nonce(ADMIN, 2)
    real = backend.pending_nonce
    reads = []

    def stale_then_real(address):
        reads.append(address)
        return 0 if len(reads) == 1 else real(address)

    monkeypatch.setattr(backend, "pending_nonce", stale_then_real)
    receipt = ledger.send("addTeacher", ["T1", "Ada"], ADMIN)

    assert receipt.nonce == 2
    assert len(backend.landed("addTeacher")) == 1


def test_nonce_conflicts_give_up_after_the_retry_budget(backend, monkeypatch):
    client = LedgerClient(backend, nonce_retries=3, retry_backoff=0)
    backend.bump_nonce(ADMIN, 10)
    monkeypatch.setattr(backend, "pending_nonce", lambda address: 0)

    with pytest.raises(NonceConflictError):
        client.send("addTeacher", ["T1", "Ada"], ADMIN)
    assert backend.transactions == []


def test_concurrent_sends_from_one_sender_get_distinct_nonces(ledger, backend):
    errors = []

    def register(i):
        try:
            ledger.send("addTeacher", [f"T{i}", f"Teacher {i}"], ADMIN)
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=register, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    nonces = sorted(r.nonce for r in backend.landed("addTeacher"))
    assert nonces == list(range(8))


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------
def test_reads_retry_transport_failures(backend, monkeypatch):
    client = LedgerClient(backend, call_retries=2, retry_backoff=0)
    real = backend.call
    failures = {"left": 2}

    def flaky(method, args, from_address=None):
        if failures["left"]:
            failures["left"] -= 1
            raise LedgerUnavailableError(method, "connection refused")
        return real(method, args, from_address)

    monkeypatch.setattr(backend, "call", flaky)
    assert client.call("admin") == normalize_address(ADMIN)


def test_reads_give_up_after_the_retry_budget(backend, monkeypatch):
    client = LedgerClient(backend, call_retries=1, retry_backoff=0)

    def down(method, args, from_address=None):
        raise LedgerUnavailableError(method, "connection refused")

    monkeypatch.setattr(backend, "call", down)
    with pytest.raises(LedgerUnavailableError):
        client.call("admin")


# ------------------------------------------------------------------
# Reverts
# ------------------------------------------------------------------
def test_already_registered_revert_is_classified(ledger):
    ledger.send("addTeacher", ["T1", "Ada"], ADMIN)
    with pytest.raises(AlreadyExistsError) as err:
        ledger.send("addTeacher", ["T1", "Ada"], ADMIN)
    assert err.value.reason == "Teacher already registered"


def test_other_reverts_keep_their_reason(ledger):
    with pytest.raises(RevertError) as err:
        ledger.send("addTeacher", ["T1", "Ada"], SECOND_NODE)
    assert not isinstance(err.value, AlreadyExistsError)
    assert err.value.reason == "Only admin can perform this action"


def test_classify_revert():
    assert isinstance(classify_revert("addCourse", "Course already exists"), AlreadyExistsError)
    plain = classify_revert("submitFeedback", "Invalid rating")
    assert type(plain) is RevertError
    assert plain.http_status == 502
