"""
Utility functions for the footprint operand and worker.
"""

from .files import remove_file_quietly
from .timing import (
    timed_operation,
    log_timing,
    timed_lock_acquire,
)

__all__ = [
    "remove_file_quietly",
    "timed_operation",
    "log_timing",
    "timed_lock_acquire",
]
