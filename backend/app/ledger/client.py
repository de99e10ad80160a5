"""Ledger client — the single place that talks to the contract.

Reads go through ``call``; state changes go through ``send``, which resolves a
signing key for the sender, applies an explicit gas ceiling, serializes sends
per sender address and retries nonce conflicts with a fresh nonce.
"""
from __future__ import annotations
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

from app.domain.common.errors import (
    LedgerUnavailableError,
    NonceConflictError,
    RevertError,
    SenderUnavailableError,
)
from app.ledger.interfaces.ledger_backend import LedgerBackend, Receipt
from app.ledger.wallet import SigningWallet, normalize_address

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMITS: Dict[str, int] = {
    "addStudent": 300000,
    "addTeacher": 300000,
    "addCourse": 300000,
    "assignTeacherToCourse": 200000,
    "submitFeedback": 500000,
    "changeAdmin": 150000,
}


class LedgerClient:
    def __init__(
        self,
        backend: LedgerBackend,
        wallet: Optional[SigningWallet] = None,
        gas_limits: Optional[Dict[str, int]] = None,
        default_gas: int = 300000,
        confirmation_timeout: float = 60.0,
        nonce_retries: int = 3,
        call_retries: int = 2,
        retry_backoff: float = 0.5,
    ):
        self._backend = backend
        self._wallet = wallet or SigningWallet()
        self._gas_limits = {**DEFAULT_GAS_LIMITS, **(gas_limits or {})}
        self._default_gas = default_gas
        self._confirmation_timeout = confirmation_timeout
        self._nonce_retries = nonce_retries
        self._call_retries = call_retries
        self._retry_backoff = retry_backoff

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._node_accounts: Optional[List[str]] = None

    # ------------------------------------------------------------------
    # Sender resolution
    # ------------------------------------------------------------------
    def node_accounts(self, refresh: bool = False) -> List[str]:
        if self._node_accounts is None or refresh:
            self._node_accounts = self._backend.node_accounts()
        return list(self._node_accounts)

    @property
    def wallet_addresses(self) -> List[str]:
        return self._wallet.addresses

    def can_sign(self, address: str) -> bool:
        address = normalize_address(address)
        if self._wallet.has_key(address):
            return True
        if address in self.node_accounts():
            return True
        # accounts can be unlocked on the node after startup
        return address in self.node_accounts(refresh=True)

    def gas_limit(self, method: str) -> int:
        return self._gas_limits.get(method, self._default_gas)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def call(self, method: str, *args: Any, from_address: Optional[str] = None) -> Any:
        attempt = 0
        while True:
            try:
                return self._backend.call(method, args, from_address)
            except LedgerUnavailableError:
                if attempt >= self._call_retries:
                    raise
                attempt += 1
                logger.warning("Ledger call %s unavailable, retry %d/%d", method, attempt, self._call_retries)
                time.sleep(self._retry_backoff * attempt)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def _lock_for(self, address: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(address)
            if lock is None:
                lock = self._locks[address] = threading.Lock()
            return lock

    def send(self, method: str, args: Sequence[Any], from_address: str) -> Receipt:
        sender = normalize_address(from_address, "sender")
        private_key = self._wallet.key_for(sender)
        if private_key is None and not self.can_sign(sender):
            raise SenderUnavailableError(sender)

        gas = self.gas_limit(method)
        with self._lock_for(sender):
            nonce = self._backend.pending_nonce(sender)
            attempt = 0
            while True:
                logger.info("Sending %s from %s (nonce %d, gas %d)", method, sender, nonce, gas)
                try:
                    receipt = self._backend.send_transaction(
                        method,
                        list(args),
                        sender,
                        gas=gas,
                        nonce=nonce,
                        private_key=private_key,
                        timeout=self._confirmation_timeout,
                    )
                except NonceConflictError as exc:
                    if attempt >= self._nonce_retries:
                        logger.error("Giving up on %s from %s after %d nonce conflicts", method, sender, attempt + 1)
                        raise
                    attempt += 1
                    fresh = self._backend.pending_nonce(sender)
                    nonce = max(fresh, exc.nonce + 1)
                    logger.warning("Nonce conflict on %s from %s, retrying with nonce %d", method, sender, nonce)
                    continue
                except RevertError as exc:
                    logger.warning("%s from %s reverted: %s", method, sender, exc.reason)
                    raise
                logger.info("%s confirmed in block %s (tx %s)", method, receipt.block_number, receipt.tx_hash)
                return receipt
