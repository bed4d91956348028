"""
Timing utilities for profiling OpticStudio calls.

All timing logs use the [TIMING] prefix for easy grep filtering:
    grep "\\[TIMING\\]" footprint_operand.log
"""

import asyncio
import time
import logging
from contextlib import contextmanager, asynccontextmanager
from typing import Generator, AsyncGenerator


@contextmanager
def timed_operation(
    logger: logging.Logger, operation: str, level: str = "info"
) -> Generator[None, None, None]:
    """
    Context manager that logs operation timing with success/failure distinction.

    Usage:
        with timed_operation(logger, "footprint-operand"):
            # ... OpticStudio calls ...

    Logs:
        [TIMING] footprint-operand START
        [TIMING] footprint-operand COMPLETE: 812.4ms   (or FAILED on exception)
    """
    start = time.perf_counter()
    log_fn = getattr(logger, level, logger.info)
    log_fn(f"[TIMING] {operation} START")
    success = True
    try:
        yield
    except Exception:
        success = False
        raise
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        status = "COMPLETE" if success else "FAILED"
        log_fn(f"[TIMING] {operation} {status}: {elapsed_ms:.1f}ms")


def log_timing(logger: logging.Logger, operation: str, elapsed_ms: float) -> None:
    """
    Log a single timing measurement.

    Logs:
        [TIMING] Footprint.ApplyAndWaitForCompletion: 640.2ms
    """
    logger.info(f"[TIMING] {operation}: {elapsed_ms:.1f}ms")


@asynccontextmanager
async def timed_lock_acquire(
    lock: asyncio.Lock, logger: logging.Logger, name: str = "lock"
) -> AsyncGenerator[None, None]:
    """
    Acquire an asyncio lock, logging only the time spent waiting for it.

    Usage:
        async with timed_lock_acquire(_zospy_lock, logger, name="zospy"):
            ...

    Logs:
        [TIMING] zospy_lock_wait: 12.3ms
    """
    start = time.perf_counter()
    await lock.acquire()
    log_timing(logger, f"{name}_lock_wait", (time.perf_counter() - start) * 1000)
    try:
        yield
    finally:
        lock.release()
