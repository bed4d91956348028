"""Core router – health."""

import asyncio

from fastapi import APIRouter

import main
from models import HealthResponse
from config import WORKER_COUNT

router = APIRouter()


def _disconnected(error: str) -> HealthResponse:
    return HealthResponse(
        success=True,  # Worker is running
        opticstudio_connected=False,
        worker_count=WORKER_COUNT,
        connection_error=error,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Reports the worker and OpticStudio connection status without connecting.
    Waits at most 2 seconds for _zospy_lock so a long footprint evaluation
    shows up as "busy" rather than blocking the probe.
    """
    try:
        await asyncio.wait_for(main._zospy_lock.acquire(), timeout=2.0)
    except asyncio.TimeoutError:
        return _disconnected("Health check timed out (worker busy)")

    try:
        if main.zospy_handler is None:
            return _disconnected(main._last_connection_error)

        try:
            status = main.zospy_handler.get_status()
        except Exception as e:
            main.logger.error(f"Health check failed: {e}")
            return _disconnected(str(e))

        return HealthResponse(
            success=True,
            opticstudio_connected=status.get("connected", False),
            version=status.get("opticstudio_version"),
            zospy_version=status.get("zospy_version"),
            worker_count=WORKER_COUNT,
        )
    finally:
        main._zospy_lock.release()
