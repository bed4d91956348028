"""
Footprint Worker

FastAPI worker that evaluates the footprint user operand outside an
optimization run. It loads an uploaded .zmx into its own standalone
OpticStudio instance and runs the same patch / compute / parse sequence as
the UDOC plugin (operand.py).

Prerequisites:
- Windows 10/11
- Zemax OpticStudio (Professional or Premium license for API access)
- ZosPy >= 1.2.0

Each uvicorn worker is a separate process with its own OpticStudio
connection and consumes one license seat.

Examples:
  python main.py --workers 2
  WEB_CONCURRENCY=2 python -m uvicorn main:app
"""

import sys
# Router modules do `import main`; when run as a script this module is
# "__main__", so alias it to avoid importing main.py a second time.
sys.modules.setdefault("main", sys.modules[__name__])

import asyncio
import base64
import logging
import os
import tempfile
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, HTTPException, Header
from pydantic import BaseModel

from zospy_handler import ZosPyHandler, ZosPyError
from config import (
    NOT_CONNECTED_ERROR, DEFAULT_PORT, DEFAULT_HOST, ZEMAX_API_KEY,
    WORKER_COUNT, _RECONNECT_BACKOFF_BASE, _RECONNECT_BACKOFF_MAX,
    _RECONNECT_COM_RELEASE_DELAY,
)
from utils.timing import timed_operation, timed_lock_acquire
from log_buffer import log_buffer

# Configure logging
logging.basicConfig(level=logging.INFO)
logging.getLogger().addHandler(log_buffer)
# Uvicorn sets propagate=False on its loggers; attach the buffer directly.
for _uv_name in ("uvicorn.error", "uvicorn.access"):
    logging.getLogger(_uv_name).addHandler(log_buffer)
# Raw report text is logged at DEBUG (root is INFO)
logging.getLogger("zemax.raw").setLevel(logging.DEBUG)
logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

zospy_handler: Optional[ZosPyHandler] = None
_last_connection_error: Optional[str] = None

_reconnect_failures = 0
_last_reconnect_attempt: float = 0.0

# Serializes OpticStudio calls within this process
_zospy_lock = asyncio.Lock()


# =============================================================================
# Connection Management
# =============================================================================


def _init_zospy() -> Optional[ZosPyHandler]:
    """Connect to a standalone OpticStudio, recording the error on failure."""
    global _last_connection_error
    try:
        handler = ZosPyHandler(mode="standalone")
    except ZosPyError as e:
        logger.error(f"Failed to initialize ZosPy: {e}")
        _last_connection_error = str(e)
        return None

    logger.info("ZosPy connection established.")
    _last_connection_error = None
    return handler


def _backoff_delay() -> float:
    """Current exponential backoff delay in seconds."""
    return min(
        _RECONNECT_BACKOFF_BASE * (2 ** (_reconnect_failures - 1)),
        _RECONNECT_BACKOFF_MAX,
    )


async def _reconnect_zospy() -> Optional[ZosPyHandler]:
    """
    (Re)connect to OpticStudio with exponential backoff.

    Caller MUST hold _zospy_lock.
    """
    global zospy_handler, _reconnect_failures, _last_reconnect_attempt

    now = time.monotonic()
    if _reconnect_failures > 0:
        remaining = _backoff_delay() - (now - _last_reconnect_attempt)
        if remaining > 0:
            logger.warning(
                f"Reconnect backoff: {remaining:.1f}s remaining "
                f"(attempt {_reconnect_failures})"
            )
            return None

    _last_reconnect_attempt = now

    if zospy_handler:
        zospy_handler.close()
        zospy_handler = None
        # COM needs a moment to release the license seat
        logger.info(f"Waiting {_RECONNECT_COM_RELEASE_DELAY}s for COM license release...")
        await asyncio.sleep(_RECONNECT_COM_RELEASE_DELAY)

    logger.info("Attempting to connect to OpticStudio...")
    zospy_handler = _init_zospy()

    if zospy_handler is not None:
        _reconnect_failures = 0
    else:
        _reconnect_failures += 1
        logger.warning(
            f"Reconnect failed (attempt {_reconnect_failures}, "
            f"next backoff {_backoff_delay():.0f}s)"
        )

    return zospy_handler


async def _ensure_connected() -> Optional[ZosPyHandler]:
    """Connect if needed. Caller MUST hold _zospy_lock."""
    if zospy_handler is None:
        await _reconnect_zospy()
    return zospy_handler


def _not_connected_error() -> str:
    """Not-connected message, with the last connection error if known."""
    if _last_connection_error:
        return f"{NOT_CONNECTED_ERROR}: {_last_connection_error}"
    return NOT_CONNECTED_ERROR


async def verify_api_key(x_api_key: Optional[str] = Header(None, alias="X-API-Key")):
    """Verify API key if configured."""
    if ZEMAX_API_KEY is not None:
        if x_api_key != ZEMAX_API_KEY:
            raise HTTPException(status_code=401, detail="Invalid API key")


# =============================================================================
# Endpoint Helpers
# =============================================================================


async def _run_endpoint(
    endpoint_name: str,
    response_cls: type[BaseModel],
    request: BaseModel,
    handler: Callable[[], dict[str, Any]],
) -> BaseModel:
    """
    timed_operation -> lock -> ensure_connected -> load_system -> handler -> response.

    The handler returns a dict with "success" and either result fields or
    "error" (plus any other response fields, e.g. "error_kind"). Keys the
    response model does not declare are dropped.

    A ValueError is a bad request. Any other exception may mean a broken
    connection, so the handler is replaced by a fresh connection.
    """
    with timed_operation(logger, endpoint_name):
        async with timed_lock_acquire(_zospy_lock, logger, name="zospy"):
            if await _ensure_connected() is None:
                return response_cls(success=False, error=_not_connected_error())

            try:
                _load_system_from_request(request)
                result = handler()
            except ValueError as e:
                return response_cls(success=False, error=str(e))
            except Exception as e:
                logger.error(f"{endpoint_name} {type(e).__name__}: {e}")
                await _reconnect_zospy()
                return response_cls(success=False, error=str(e))

            model_fields = set(response_cls.model_fields.keys())
            success = bool(result.get("success", True))
            fields = {
                k: v for k, v in result.items()
                if k != "success" and k in model_fields
            }
            if not success and not fields.get("error"):
                fields["error"] = f"{endpoint_name} failed"
            return response_cls(success=success, **fields)


def _load_system_from_request(request: BaseModel) -> dict[str, Any]:
    """
    Load the request's base64 .zmx into OpticStudio.

    Raises:
        ValueError: zmx_content is missing or not base64
        ZosPyError: Loading fails or the system is empty
    """
    zmx_content = getattr(request, "zmx_content", None)
    if not zmx_content:
        raise ValueError("Request must include 'zmx_content'")

    try:
        zmx_bytes = base64.b64decode(zmx_content, validate=True)
    except Exception as e:
        raise ValueError(f"Invalid base64 zmx_content: {e}") from e

    logger.info(f"Loading system from ZMX: {len(zmx_bytes)} bytes")

    with tempfile.NamedTemporaryFile(mode="wb", suffix=".zmx", delete=False) as f:
        f.write(zmx_bytes)
        temp_file = f.name

    try:
        result = zospy_handler.load_zmx_file(temp_file)
        if result.get("num_surfaces", 0) == 0:
            raise ZosPyError("System loaded but has no surfaces")
        logger.info(f"Loaded system: {result.get('num_surfaces')} surfaces")
        return result
    finally:
        if os.path.exists(temp_file):
            os.unlink(temp_file)


# =============================================================================
# Application Setup
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect lazily on first request; disconnect on shutdown."""
    global zospy_handler

    logger.info("Starting Footprint Worker (lazy connection mode)")
    logger.info(f"Reporting worker_count={WORKER_COUNT}")

    yield

    if zospy_handler:
        zospy_handler.close()
        zospy_handler = None
    logger.info("Footprint Worker stopped.")


app = FastAPI(
    title="Footprint Worker",
    description="Footprint user operand evaluation against Zemax OpticStudio via ZosPy",
    version="0.1.0",
    lifespan=lifespan,
)

# Routers use `import main`, so register them after the globals above exist.
from routers import register_routers
register_routers(app)


if __name__ == "__main__":
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Footprint Worker")
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Number of uvicorn worker processes (overrides WEB_CONCURRENCY)",
    )
    args = parser.parse_args()

    port = int(os.getenv("PORT", str(DEFAULT_PORT)))
    host = os.getenv("HOST", DEFAULT_HOST)

    num_workers = args.workers if args.workers is not None else int(os.getenv("WEB_CONCURRENCY", "1"))
    # Child processes read this to report worker_count in /health
    os.environ["WEB_CONCURRENCY"] = str(num_workers)

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        workers=num_workers,
        log_level="info",
    )
