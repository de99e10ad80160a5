"""Abstract ledger backend — the raw contract transport the LedgerClient drives."""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence


@dataclass
class Receipt:
    tx_hash: str
    block_number: Optional[int]
    sender: str
    nonce: int
    gas_used: Optional[int] = None


class LedgerBackend(ABC):

    @abstractmethod
    def node_accounts(self) -> List[str]:
        """Checksummed addresses the connected node can sign for without a local key."""
        ...

    @abstractmethod
    def call(self, method: str, args: Sequence[Any], from_address: Optional[str] = None) -> Any:
        """Read-only contract call. Raises RevertError, LedgerTimeoutError or LedgerUnavailableError."""
        ...

    @abstractmethod
    def pending_nonce(self, address: str) -> int:
        """Next nonce for the address, counting transactions still in the pool."""
        ...

    @abstractmethod
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
        """Submit a state-changing call and wait up to ``timeout`` seconds for its receipt.

        Raises RevertError, NonceConflictError, LedgerTimeoutError or LedgerUnavailableError.
        ``private_key`` is None when the node signs (unlocked account).
        """
        ...
