"""Liveness endpoint."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from ticketing import __version__

router = APIRouter(tags=["health"])


@router.get("/ping")
async def ping() -> dict[str, Any]:
    """Root health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "ticket-checkout",
        "version": __version__,
    }
