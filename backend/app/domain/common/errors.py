"""Error taxonomy shared by the ledger adapter, the application services and the API."""
from __future__ import annotations
from typing import Optional


class FeedbackLedgerError(Exception):
    """Base class. ``http_status`` is what the API layer answers with."""

    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FeedbackLedgerError):
    """Bad input. Raised before anything reaches the ledger."""

    http_status = 400


class NotFoundError(FeedbackLedgerError):
    http_status = 404


class ConflictError(FeedbackLedgerError):
    """Duplicate course ID or duplicate feedback. Never retried."""

    http_status = 409


# ------------------------------------------------------------------
# Ledger failures
# ------------------------------------------------------------------
class LedgerError(FeedbackLedgerError):
    http_status = 502

    def __init__(self, method: str, message: str):
        super().__init__(f"{method}: {message}")
        self.method = method


class RevertError(LedgerError):
    """The contract rejected the call or transaction with a reason string."""

    def __init__(self, method: str, reason: str, tx_hash: Optional[str] = None):
        super().__init__(method, f"reverted: {reason}")
        self.reason = reason
        self.tx_hash = tx_hash


class AlreadyExistsError(RevertError):
    """A revert saying the entity is already registered. Registration treats it as success."""

    http_status = 409


class LedgerTimeoutError(LedgerError):
    """No confirmation within the bounded wait. The transaction may still be mined."""

    http_status = 504

    def __init__(self, method: str, tx_hash: Optional[str] = None, detail: str = "timed out waiting for the ledger"):
        super().__init__(method, detail if tx_hash is None else f"{detail} (tx {tx_hash})")
        self.tx_hash = tx_hash


class LedgerUnavailableError(LedgerError):
    """The RPC endpoint could not be reached."""

    http_status = 503


class NonceConflictError(LedgerError):
    """The nonce used for a send was already taken. The client retries these."""

    http_status = 503

    def __init__(self, method: str, nonce: int, detail: str = "nonce conflict"):
        super().__init__(method, f"{detail} (nonce {nonce})")
        self.nonce = nonce


class SenderUnavailableError(FeedbackLedgerError):
    """No key is available to sign for the address. Needs an operator, never retried."""

    http_status = 503

    def __init__(self, address: str, label: str = "sender"):
        super().__init__(
            f"{label} address {address} cannot sign transactions: import its private key "
            f"via LEDGER_PRIVATE_KEYS or unlock the account on the node"
        )
        self.address = address
        self.label = label


_ALREADY_EXISTS_MARKERS = ("already",)


def classify_revert(method: str, reason: str, tx_hash: Optional[str] = None) -> RevertError:
    """Turn a raw revert reason into the matching RevertError subclass."""
    lowered = (reason or "").lower()
    if any(marker in lowered for marker in _ALREADY_EXISTS_MARKERS):
        return AlreadyExistsError(method, reason, tx_hash)
    return RevertError(method, reason or "transaction reverted", tx_hash)
