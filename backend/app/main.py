"""FastAPI application entry point."""
from __future__ import annotations
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core import config
from app.core.logging import setup_logging
from app.domain.common.errors import FeedbackLedgerError
from app.persistence.db import init_db
from app.api import admin, courses, feedback, students
from app.api.errors import register_error_handlers
from app.container import get_admin_identity

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# App creation
# ------------------------------------------------------------------
app = FastAPI(
    title="Course Feedback Ledger API",
    description="Course feedback recorded on a smart contract, tracked in SQLite",
    version="1.0.0",
)

# CORS: allow everything for local dev (restrict for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


# ------------------------------------------------------------------
# Startup: logging, DB schema, optional admin sync
# ------------------------------------------------------------------
@app.on_event("startup")
def on_startup():
    setup_logging(config.LOG_LEVEL)
    init_db()
    if config.ADMIN_SYNC_ON_STARTUP:
        try:
            rotation = get_admin_identity().sync_configured_admin()
            logger.info("Admin sync: %s -> %s (rotated=%s)", rotation.previous, rotation.current, rotation.rotated)
        except FeedbackLedgerError as exc:
            # reads keep working; privileged writes fail until the keys are fixed
            logger.error("Admin sync failed: %s", exc.message)


# ------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------
app.include_router(admin.router)
app.include_router(courses.router)
app.include_router(students.router)
app.include_router(feedback.router)
