"""Admin identity endpoints and the health check."""
from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.application.admin_identity import AdminIdentityResolver
from app.container import get_admin_identity, get_ledger_client
from app.ledger.client import LedgerClient

router = APIRouter(tags=["admin"])


class EnsureAdminBody(BaseModel):
    # empty means "whatever ADMIN_RESOLUTION_ORDER yields"
    address: Optional[str] = None


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
@router.get("/health")
def health():
    return {"status": "ok"}


# ------------------------------------------------------------------
# Admin identity
# ------------------------------------------------------------------
@router.get("/admin/")
def get_admin(
    identity: AdminIdentityResolver = Depends(get_admin_identity),
    ledger: LedgerClient = Depends(get_ledger_client),
):
    admin = identity.resolve_on_chain_admin()
    return {"admin": admin, "can_sign": ledger.can_sign(admin)}


@router.post("/admin/ensure")
def ensure_admin(
    body: EnsureAdminBody,
    identity: AdminIdentityResolver = Depends(get_admin_identity),
):
    desired = body.address or identity.configured_admin()
    rotation = identity.ensure_admin(desired)
    return {
        "rotated": rotation.rotated,
        "previous": rotation.previous,
        "current": rotation.current,
        "tx_hash": rotation.tx_hash,
    }
