"""web3 backend pieces that need no node: ABI loading and error translation."""
import json
from types import SimpleNamespace

import pytest
import requests

from app.core import config
from app.domain.common.errors import (
    AlreadyExistsError,
    LedgerTimeoutError,
    LedgerUnavailableError,
    NonceConflictError,
    RevertError,
)
from app.ledger.backends.web3_backend import Web3LedgerBackend, _revert_reason, load_abi

CONTRACT = "0x5000000000000000000000000000000000000005"


@pytest.fixture
def web3_backend():
    # nothing is sent until a method is called
    return Web3LedgerBackend("http://127.0.0.1:1", CONTRACT, load_abi(config.CONTRACT_ABI_PATH))


def test_shipped_abi_covers_the_contract():
    names = {entry["name"] for entry in load_abi(config.CONTRACT_ABI_PATH) if entry.get("type") == "function"}
    assert {
        "admin", "changeAdmin", "students", "teachers", "courses", "courseTeacherList",
        "getAllCourseIds", "addStudent", "addTeacher", "addCourse", "assignTeacherToCourse",
        "submitFeedback", "hasSubmittedFeedback", "getTeacherCourseAverages",
        "feedbackCount", "getFeedback", "getAllFeedbacks",
    } <= names


def test_load_abi_accepts_build_artifacts(tmp_path):
    artifact = tmp_path / "Feedback.json"
    artifact.write_text(json.dumps({"contractName": "Feedback", "abi": [{"type": "function", "name": "admin"}]}))
    assert load_abi(str(artifact)) == [{"type": "function", "name": "admin"}]


def test_missing_contract_address():
    with pytest.raises(LedgerUnavailableError):
        Web3LedgerBackend("http://127.0.0.1:1", "", [])


@pytest.mark.parametrize(
    "message, reason",
    [
        ("execution reverted: Course already exists", "Course already exists"),
        ("VM Exception while processing transaction: revert Invalid rating", "Invalid rating"),
        ("something else", "something else"),
    ],
)
def test_revert_reason(message, reason):
    assert _revert_reason(message) == reason


def _raise_inside(backend, exc, nonce=None):
    with backend._translate("addCourse", nonce=nonce):
        raise exc


def test_translate_reverts(web3_backend):
    with pytest.raises(AlreadyExistsError):
        _raise_inside(web3_backend, ValueError("execution reverted: Course already exists"))
    with pytest.raises(RevertError) as err:
        _raise_inside(web3_backend, ValueError("execution reverted: Only admin can perform this action"))
    assert err.value.reason == "Only admin can perform this action"


def test_translate_nonce_conflicts(web3_backend):
    with pytest.raises(NonceConflictError) as err:
        _raise_inside(web3_backend, ValueError("nonce too low"), nonce=7)
    assert err.value.nonce == 7


def test_translate_transport_failures(web3_backend):
    with pytest.raises(LedgerTimeoutError):
        _raise_inside(web3_backend, requests.exceptions.ReadTimeout("slow"))
    with pytest.raises(LedgerUnavailableError):
        _raise_inside(web3_backend, requests.exceptions.ConnectionError("refused"))
    with pytest.raises(LedgerUnavailableError):
        _raise_inside(web3_backend, ValueError("header not found"))


def test_already_known_without_a_local_hash_is_a_timeout(web3_backend):
    with pytest.raises(LedgerTimeoutError) as err:
        _raise_inside(web3_backend, ValueError("already known"), nonce=7)
    assert err.value.tx_hash is None


class _FakeFunction:
    def build_transaction(self, params):
        return dict(params)


def test_already_known_signed_transaction_is_awaited(web3_backend, monkeypatch):
    signed_hash = b"\xab" * 32
    waited = []

    def send_raw_transaction(raw):
        raise ValueError("already known")

    def wait_for_transaction_receipt(tx_hash, timeout, poll_latency):
        waited.append(tx_hash)
        return {"status": 1, "blockNumber": 9, "gasUsed": 21000}

    eth = SimpleNamespace(
        chain_id=1337,
        account=SimpleNamespace(
            sign_transaction=lambda tx, key: SimpleNamespace(raw_transaction=b"raw", hash=signed_hash)
        ),
        send_raw_transaction=send_raw_transaction,
        wait_for_transaction_receipt=wait_for_transaction_receipt,
    )
    monkeypatch.setattr(web3_backend, "_w3", SimpleNamespace(eth=eth))
    monkeypatch.setattr(web3_backend, "_function", lambda method, args: _FakeFunction())

    receipt = web3_backend.send_transaction(
        "addCourse", ["1", "Algorithms"], CONTRACT, gas=300000, nonce=4, private_key="0x" + "11" * 32
    )

    assert waited == [signed_hash]
    assert receipt.tx_hash == "0x" + "ab" * 32
    assert (receipt.block_number, receipt.nonce) == (9, 4)
