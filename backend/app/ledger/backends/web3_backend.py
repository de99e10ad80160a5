"""web3.py implementation of LedgerBackend over a JSON-RPC HTTP endpoint."""
from __future__ import annotations
import json
import logging
from contextlib import contextmanager
from typing import Any, List, Optional, Sequence

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3RPCError

from app.domain.common.errors import (
    LedgerTimeoutError,
    LedgerUnavailableError,
    NonceConflictError,
    classify_revert,
)
from app.ledger.interfaces.ledger_backend import LedgerBackend, Receipt

logger = logging.getLogger(__name__)

_NONCE_MARKERS = (
    "nonce too low",
    "nonce too high",
    "replacement transaction underpriced",
)
# the identical transaction is already in the pool
_KNOWN_TX_MARKERS = (
    "already known",
    "known transaction",
)
_REVERT_PREFIXES = (
    "execution reverted:",
    "VM Exception while processing transaction: revert",
)


def load_abi(path: str) -> list:
    """Read a contract ABI file; accepts a bare array or a build artifact with an ``abi`` key."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else data["abi"]


def _is_known_transaction(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in _KNOWN_TX_MARKERS)


def _revert_reason(message: str) -> str:
    for prefix in _REVERT_PREFIXES:
        idx = message.find(prefix)
        if idx >= 0:
            return message[idx + len(prefix):].strip()
    return message


class Web3LedgerBackend(LedgerBackend):

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        abi: list,
        request_timeout: float = 10.0,
        poll_latency: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        if not contract_address:
            raise LedgerUnavailableError("connect", "CONTRACT_ADDRESS is not configured")
        self._session = session or requests.Session()
        provider = Web3.HTTPProvider(
            rpc_url,
            request_kwargs={"timeout": request_timeout},
            session=self._session,
        )
        self._w3 = Web3(provider)
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=abi,
        )
        self._poll_latency = poll_latency

    @contextmanager
    def _translate(self, method: str, nonce: Optional[int] = None):
        try:
            yield
        except ContractLogicError as exc:
            reason = getattr(exc, "message", None) or str(exc)
            raise classify_revert(method, _revert_reason(reason)) from exc
        except requests.exceptions.Timeout as exc:
            raise LedgerTimeoutError(method, detail="RPC request timed out") from exc
        except requests.exceptions.ConnectionError as exc:
            raise LedgerUnavailableError(method, f"RPC endpoint unreachable: {exc}") from exc
        except (Web3RPCError, ValueError) as exc:
            message = str(exc)
            lowered = message.lower()
            if nonce is not None and _is_known_transaction(exc):
                raise LedgerTimeoutError(method, detail="identical transaction already pending, hash unknown") from exc
            if nonce is not None and any(marker in lowered for marker in _NONCE_MARKERS):
                raise NonceConflictError(method, nonce, message) from exc
            if "revert" in lowered:
                raise classify_revert(method, _revert_reason(message)) from exc
            raise LedgerUnavailableError(method, message) from exc

    def _function(self, method: str, args: Sequence[Any]):
        return getattr(self._contract.functions, method)(*args)

    # ------------------------------------------------------------------
    # LedgerBackend
    # ------------------------------------------------------------------
    def node_accounts(self) -> List[str]:
        with self._translate("eth_accounts"):
            return [Web3.to_checksum_address(a) for a in self._w3.eth.accounts]

    def call(self, method: str, args: Sequence[Any], from_address: Optional[str] = None) -> Any:
        params = {"from": from_address} if from_address else {}
        with self._translate(method):
            return self._function(method, args).call(params)

    def pending_nonce(self, address: str) -> int:
        with self._translate("eth_getTransactionCount"):
            return self._w3.eth.get_transaction_count(address, "pending")

    def send_transaction(
        self,
        method: str,
        args: Sequence[Any],
        from_address: str,
        gas: int,
        nonce: int,
        private_key: Optional[str] = None,
        timeout: float = 60.0,
    ) -> Receipt:
        fn = self._function(method, args)
        params = {"from": from_address, "gas": gas, "nonce": nonce}

        with self._translate(method, nonce=nonce):
            if private_key is None:
                tx_hash = fn.transact(params)
            else:
                tx = fn.build_transaction({**params, "chainId": self._w3.eth.chain_id})
                signed = self._w3.eth.account.sign_transaction(tx, private_key)
                try:
                    tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
                except (Web3RPCError, ValueError) as exc:
                    if not _is_known_transaction(exc):
                        raise
                    tx_hash = signed.hash
                    logger.info("%s: transaction %s already pending, waiting on it", method, Web3.to_hex(tx_hash))
        tx_hex = Web3.to_hex(tx_hash)

        try:
            with self._translate(method):
                receipt = self._w3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=timeout, poll_latency=self._poll_latency
                )
        except TimeExhausted as exc:
            raise LedgerTimeoutError(method, tx_hex) from exc

        if receipt["status"] != 1:
            raise classify_revert(method, self._replay_reason(fn, params, receipt["blockNumber"]), tx_hex)

        return Receipt(
            tx_hash=tx_hex,
            block_number=receipt["blockNumber"],
            sender=from_address,
            nonce=nonce,
            gas_used=receipt.get("gasUsed"),
        )

    def _replay_reason(self, fn, params: dict, block_number: int) -> str:
        """Re-run a mined-but-failed transaction as a call to recover its revert reason."""
        call_params = {"from": params["from"], "gas": params["gas"]}
        try:
            fn.call(call_params, block_identifier=block_number)
        except ContractLogicError as exc:
            return _revert_reason(getattr(exc, "message", None) or str(exc))
        except (Web3RPCError, ValueError, requests.exceptions.RequestException) as exc:
            logger.debug("Could not replay failed transaction for its reason: %s", exc)
        return "transaction reverted"
