"""Maps the error taxonomy onto HTTP responses."""
from __future__ import annotations
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.domain.common.errors import FeedbackLedgerError

logger = logging.getLogger(__name__)


def _error_body(exc: FeedbackLedgerError) -> dict:
    body = {"detail": exc.message, "error": type(exc).__name__}
    tx_hash = getattr(exc, "tx_hash", None)
    if tx_hash:
        body["tx_hash"] = tx_hash
    return body


async def feedback_ledger_error_handler(request: Request, exc: FeedbackLedgerError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.http_status, exc.message)
    return JSONResponse(status_code=exc.http_status, content=_error_body(exc))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FeedbackLedgerError, feedback_ledger_error_handler)
