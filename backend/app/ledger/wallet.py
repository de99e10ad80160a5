"""Signing wallet — private keys imported at startup, keyed by checksum address."""
from __future__ import annotations
import logging
from typing import Dict, Iterable, List, Optional

from eth_account import Account
from web3 import Web3

from app.domain.common.errors import ValidationError

logger = logging.getLogger(__name__)


def normalize_address(address: str, label: str = "address") -> str:
    """Checksum an address, raising ValidationError when it is malformed."""
    raw = (address or "").strip().lower()
    if not raw or not Web3.is_address(raw):
        raise ValidationError(f"{label} {address!r} is not a valid ledger address.")
    return Web3.to_checksum_address(raw)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class SigningWallet:
    def __init__(self, private_keys: Iterable[str] = ()):
        self._keys: Dict[str, str] = {}
        for key in private_keys:
            self.import_key(key)

    def import_key(self, private_key: str) -> str:
        try:
            address = Account.from_key(private_key).address
        except (ValueError, TypeError) as exc:
            raise ValidationError(f"Could not import private key: {exc}") from exc
        self._keys[address] = private_key
        logger.info("Imported signing key for %s", address)
        return address

    def key_for(self, address: str) -> Optional[str]:
        return self._keys.get(Web3.to_checksum_address(address))

    def has_key(self, address: str) -> bool:
        return self.key_for(address) is not None

    @property
    def addresses(self) -> List[str]:
        return list(self._keys)
