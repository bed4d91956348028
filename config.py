"""
Footprint Operand Configuration

Centralized constants for the operand plugin, the worker process and the
ZosPy handler.
"""

import os

# =============================================================================
# Worker server configuration
# =============================================================================

# Error messages
NOT_CONNECTED_ERROR = "OpticStudio not connected"

# Default server configuration
DEFAULT_PORT = 8787
DEFAULT_HOST = "0.0.0.0"

# API key for authentication (optional but recommended)
ZEMAX_API_KEY = os.getenv("ZEMAX_API_KEY", None)

# Number of uvicorn workers behind this URL. Defaults to 1 if unset.
WORKER_COUNT = int(os.getenv("WEB_CONCURRENCY", "1"))

# =============================================================================
# Reconnect backoff
# =============================================================================

_RECONNECT_BACKOFF_BASE = 3.0   # seconds
_RECONNECT_BACKOFF_MAX = 60.0   # seconds
_RECONNECT_COM_RELEASE_DELAY = 2.0  # seconds to wait after close() for COM cleanup

# =============================================================================
# Settings patch
# =============================================================================

# Settings field patched when the guard argument is positive
FOOTPRINT_PATCH_KEY = os.getenv("FOOTPRINT_PATCH_KEY", "FOO_SURFACE")

# Patch only when guard > threshold
FOOTPRINT_PATCH_THRESHOLD = float(os.getenv("FOOTPRINT_PATCH_THRESHOLD", "0"))

# Operand argument (1-4, i.e. Hx, Hy, Px, Py) used as guard / patched value
FOOTPRINT_GUARD_ARGUMENT = int(os.getenv("FOOTPRINT_GUARD_ARGUMENT", "1"))
FOOTPRINT_VALUE_ARGUMENT = int(os.getenv("FOOTPRINT_VALUE_ARGUMENT", "1"))

SETTINGS_TEMP_PREFIX = "footprint_settings_"
SETTINGS_TEMP_SUFFIX = ".cfg"

# =============================================================================
# Result report
# =============================================================================

# Text export written by GetTextFile, relative to the host SamplesDir
FOOTPRINT_REPORT_FILENAME = os.getenv(
    "FOOTPRINT_REPORT_FILENAME", "Footprint_diagram_results.txt"
)

# Overrides the host SamplesDir as the report directory when set
FOOTPRINT_REPORT_DIR = os.getenv("FOOTPRINT_REPORT_DIR", None)

# Non-data lines at the top of the footprint text export
REPORT_HEADER_LINES = 8

# Data lines following the header, in report order
REPORT_FIELDS = ("x_min", "x_max", "y_min", "y_max")

# =============================================================================
# Operand plugin logging
# =============================================================================

FOOTPRINT_OPERAND_LOG_FILE = os.getenv("FOOTPRINT_OPERAND_LOG_FILE", None)
FOOTPRINT_OPERAND_LOG_LEVEL = os.getenv("FOOTPRINT_OPERAND_LOG_LEVEL", "INFO")

# Maximum characters per raw output log message
_RAW_LOG_MAX_CHARS = 4000
