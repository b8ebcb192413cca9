# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Liveness endpoint.

Always answers 200 so that orchestrators can tell a running process from
a dead one; the database state is reported in the body.
"""

import logging
import time
from datetime import datetime
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from src import __version__
from src.core.config import get_settings
from src.infrastructure.database.connection import check_database_connection
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

_started_at = time.monotonic()


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    timestamp: datetime
    version: str
    environment: str
    uptime_seconds: int
    database: Literal["healthy", "unhealthy"]


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    database_ok = await check_database_connection()
    if not database_ok:
        logger.warning("Health check: database unreachable")

    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        timestamp=utc_now(),
        version=__version__,
        environment=get_settings().environment,
        uptime_seconds=int(time.monotonic() - _started_at),
        database="healthy" if database_ok else "unhealthy",
    )
