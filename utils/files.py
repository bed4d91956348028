"""
Transient file helpers.

Settings exports and text reports only live for a single operand
evaluation; these helpers make sure they are gone afterwards.
"""

import logging
import os

logger = logging.getLogger(__name__)


def remove_file_quietly(path: str) -> None:
    """Delete a transient file if present, logging (not raising) on failure."""
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Failed to remove temp file {path}: {e}")
