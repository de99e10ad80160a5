"""Admin identity resolution — which address signs privileged ledger writes."""
from __future__ import annotations
import logging
from typing import Callable, Dict, List, Optional, Sequence

from app.domain.common.errors import NotFoundError, SenderUnavailableError, ValidationError
from app.domain.registration.models import AdminRotation
from app.ledger.client import LedgerClient
from app.ledger.wallet import normalize_address, same_address
from app.persistence.interfaces.user_repository import UserRepository

logger = logging.getLogger(__name__)

RESOLUTION_STEPS = ("env", "store", "wallet", "node")


class AdminIdentityResolver:
    """
    The on-chain ``admin()`` is the only authority on who the admin is.
    The users table caches it; it is refreshed after every successful
    read or rotation and never consulted to decide who may sign.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        users: UserRepository,
        resolution_order: Sequence[str] = RESOLUTION_STEPS,
        configured_address: Optional[str] = None,
    ):
        unknown = [step for step in resolution_order if step not in RESOLUTION_STEPS]
        if unknown:
            raise ValidationError(
                f"Unknown admin resolution step(s): {', '.join(unknown)}. "
                f"Allowed: {', '.join(RESOLUTION_STEPS)}."
            )
        self._ledger = ledger
        self._users = users
        self._order = list(resolution_order)
        self._configured_address = configured_address

    # ------------------------------------------------------------------
    # On-chain admin
    # ------------------------------------------------------------------
    def resolve_on_chain_admin(self) -> str:
        admin = normalize_address(self._ledger.call("admin"), "on-chain admin")
        if not same_address(self._users.get_admin_address(), admin):
            logger.info("Caching on-chain admin %s", admin)
            self._users.set_admin_address(admin)
        return admin

    def resolve_sender_for(self, desired: str, label: str = "sender") -> str:
        """Return ``desired`` checksummed if this process can sign for it.

        Never falls back to another address.
        """
        address = normalize_address(desired, label)
        if not self._ledger.can_sign(address):
            logger.error("No signing key for %s %s", label, address)
            raise SenderUnavailableError(address, label)
        return address

    def admin_sender(self) -> str:
        return self.resolve_sender_for(self.resolve_on_chain_admin(), "admin")

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------
    def ensure_admin(self, desired: str) -> AdminRotation:
        desired = normalize_address(desired, "desired admin")
        current = self.resolve_on_chain_admin()
        if same_address(current, desired):
            logger.info("Admin already %s, nothing to rotate", current)
            return AdminRotation(rotated=False, previous=current, current=current)

        # changeAdmin is onlyAdmin: only the current admin can hand over
        if not self._ledger.can_sign(current):
            logger.error("Cannot rotate admin to %s: no key for current admin %s", desired, current)
            raise SenderUnavailableError(current, "current admin")

        logger.info("Rotating admin %s -> %s", current, desired)
        receipt = self._ledger.send("changeAdmin", [desired], current)
        self._users.set_admin_address(desired)
        return AdminRotation(rotated=True, previous=current, current=desired, tx_hash=receipt.tx_hash)

    # ------------------------------------------------------------------
    # Configured admin
    # ------------------------------------------------------------------
    def _candidates(self) -> Dict[str, Callable[[], Optional[str]]]:
        return {
            "env": lambda: self._configured_address,
            "store": self._users.get_admin_address,
            "wallet": lambda: _first(self._ledger.wallet_addresses),
            "node": lambda: _first(self._ledger.node_accounts()),
        }

    def configured_admin(self) -> str:
        """Walk the resolution order and return the first address it yields."""
        candidates = self._candidates()
        for step in self._order:
            candidate = candidates[step]()
            if candidate:
                logger.info("Admin resolution: %s -> %s", step, candidate)
                return normalize_address(candidate, f"admin from {step}")
            logger.info("Admin resolution: %s -> nothing", step)
        raise NotFoundError(
            f"No admin address could be resolved (order: {', '.join(self._order)}). "
            f"Set ADMIN_ADDRESS or import a key via LEDGER_PRIVATE_KEYS."
        )

    def sync_configured_admin(self) -> AdminRotation:
        return self.ensure_admin(self.configured_admin())


def _first(addresses: List[str]) -> Optional[str]:
    return addresses[0] if addresses else None
