"""
ZosPy Handler

Manages the connection to Zemax OpticStudio. Two connection modes exist:

- "operand":    the process was launched by OpticStudio as a user operand and
                attaches to that instance via ConnectToApplication().
- "standalone": the worker starts its own headless OpticStudio instance.

Note: This code runs on Windows only, where OpticStudio is installed.
"""

import logging
import os
import time
from typing import Any, Optional

import numpy as np

from utils.files import remove_file_quietly
from utils.timing import log_timing

# Configure module logger
logger = logging.getLogger(__name__)

# =============================================================================
# Lazy ZosPy Import
# =============================================================================
#
# `import zospy` loads pythonnet and the ZOSAPI DLLs into the CLR, which can
# hang or fail on machines without OpticStudio. The import is deferred until
# a handler is constructed so the worker can serve /health and the test suite
# can import this package without OpticStudio.
# =============================================================================

# Lazy-loaded module references
_zp = None  # zospy module
_ZOSPY_IMPORT_ATTEMPTED = False
_ZOSPY_AVAILABLE = False


def _ensure_zospy_imported() -> bool:
    """
    Lazily import ZosPy on first use.

    Returns:
        True if ZosPy is available, False otherwise.
    """
    global _zp, _ZOSPY_IMPORT_ATTEMPTED, _ZOSPY_AVAILABLE

    if _ZOSPY_IMPORT_ATTEMPTED:
        return _ZOSPY_AVAILABLE

    _ZOSPY_IMPORT_ATTEMPTED = True
    logger.info("Lazily importing ZosPy (this may take a moment)...")

    try:
        import zospy as zp_module
        _zp = zp_module
        _ZOSPY_AVAILABLE = True
        logger.info(f"ZosPy {zp_module.__version__} imported successfully")
        return True
    except ImportError as e:
        logger.error(f"Failed to import ZosPy: {e}")
        _ZOSPY_AVAILABLE = False
        return False
    except Exception as e:
        logger.error(f"Unexpected error importing ZosPy: {e}")
        _ZOSPY_AVAILABLE = False
        return False


def get_zospy_module():
    """Get the zospy module, importing it lazily if needed."""
    _ensure_zospy_imported()
    return _zp


def is_zospy_available() -> bool:
    """Check if ZosPy is available (imports lazily if not yet attempted)."""
    return _ensure_zospy_imported()


def _enum_name(value: Any) -> str:
    """Name of a ZOSAPI enum value ('ZOSAPI.ZOSAPI_Mode.Operand' -> 'Operand')."""
    if hasattr(value, "name"):
        return str(value.name)
    return str(value).split(".")[-1]


class ZosPyError(Exception):
    """Exception raised when ZosPy operations fail."""
    pass


class HostStateError(ZosPyError):
    """Connected, but OpticStudio cannot serve this plugin (licence or mode)."""
    pass


class ZosPyHandlerBase:
    """
    Handler for ZosPy/OpticStudio operations.

    Owns the connection lifecycle. Analysis code lives in mixins and
    receives analyses from _new_analysis().
    """

    def __init__(self, mode: str = "standalone"):
        """Initialize ZosPy and connect to OpticStudio."""
        if mode not in ("standalone", "operand"):
            raise ValueError(f"Unknown connection mode: {mode}")
        self.mode = mode
        self.zos = None
        self.application = None
        self.oss = None

        if not is_zospy_available():
            raise ZosPyError("ZosPy is not available. Install it with: pip install zospy")

        self._zp = get_zospy_module()
        if self._zp is None:
            raise ZosPyError("ZosPy module not loaded")

        try:
            self.zos = self._zp.ZOS()
            self._log_opticstudio_directory()
            if mode == "operand":
                self._connect_as_operand()
            else:
                self.oss = self.zos.connect(mode="standalone")
                self.application = getattr(self.zos, "Application", None)

            if self.oss is None:
                raise ZosPyError("Failed to connect to OpticStudio")

            logger.info(f"Connected to OpticStudio ({mode}): {self.get_version()}")

        except ZosPyError:
            self.close()
            raise
        except Exception as e:
            # Standalone mode may have launched an OpticStudio process; don't orphan it.
            self.close()
            raise ZosPyError(f"Failed to initialize ZosPy: {e}") from e

    def _log_opticstudio_directory(self) -> None:
        try:
            directory = self.zos.ZOSAPI_NetHelper.ZOSAPI_Initializer.GetZemaxDirectory()
            logger.info(f"Found OpticStudio at: {directory}")
        except Exception as e:
            logger.debug(f"Could not read OpticStudio directory: {e}")

    def _connect_as_operand(self) -> None:
        """Attach to the OpticStudio instance that launched this process as a user operand."""
        connection = self.zos.ZOSAPI.ZOSAPI_Connection()
        try:
            # Raises if the process was not launched from OpticStudio
            application = connection.ConnectToApplication()
        except Exception as e:
            raise ZosPyError(f"Failed to connect to OpticStudio: {e}") from e
        if application is None:
            raise ZosPyError("An unknown connection error occurred!")

        self.application = application
        self.check_operand_state()
        self.oss = application.PrimarySystem

    def check_operand_state(self) -> None:
        """
        Verify the API licence and that OpticStudio started us in Operand mode.

        Raises:
            HostStateError: Licence invalid or wrong mode.
        """
        app = self.application
        if not app.IsValidLicenseForAPI:
            raise HostStateError(f"Failed to connect to OpticStudio: {app.LicenseStatus}")

        mode_name = _enum_name(app.Mode)
        if mode_name != "Operand":
            raise HostStateError(
                f"User plugin was started in the wrong mode: expected Operand, found {mode_name}"
            )

    def close(self) -> None:
        """
        Close the connection to OpticStudio.

        In operand mode the host instance belongs to OpticStudio and is
        left running.
        """
        if self.mode == "operand":
            self.application = None
            self.oss = None
            return
        try:
            if self.zos:
                self.zos.disconnect()
        except Exception as e:
            logger.warning(f"Error closing ZosPy connection: {e}")

    def get_version(self) -> str:
        """OpticStudio version string, or "Unknown" if unavailable."""
        try:
            return str(self.application.ZemaxVersion) if self.application else "Unknown"
        except Exception:
            return "Unknown"

    def get_status(self) -> dict[str, Any]:
        """
        Get current connection status.

        Returns:
            Dict with keys connected, opticstudio_version, zospy_version.
        """
        try:
            zospy_version = self._zp.__version__
        except Exception:
            zospy_version = "Unknown"

        return {
            "connected": self.oss is not None,
            "opticstudio_version": self.get_version(),
            "zospy_version": zospy_version,
        }

    def get_samples_dir(self) -> str:
        """OpticStudio's Samples directory (base directory for text exports)."""
        samples_dir = getattr(self.application, "SamplesDir", None) if self.application else None
        if not samples_dir:
            raise ZosPyError("OpticStudio did not report a SamplesDir")
        return str(samples_dir)

    def load_zmx_file(self, file_path: str) -> dict[str, Any]:
        """
        Load an optical system from a .zmx file into the connected OpticStudio.

        Args:
            file_path: Absolute path to the .zmx file

        Returns:
            Dict with num_surfaces
        """
        if not os.path.exists(file_path):
            raise ZosPyError(f"ZMX file not found: {file_path}")

        load_start = time.perf_counter()
        try:
            self.oss.load(file_path)
        finally:
            log_timing(logger, "oss.load", (time.perf_counter() - load_start) * 1000)

        return {"num_surfaces": self.oss.LDE.NumberOfSurfaces - 1}  # Exclude object surface

    # =========================================================================
    # Operand arguments and results
    # =========================================================================

    def read_operand_arguments(self) -> tuple[float, float, float, float]:
        """OperandArgument1..4 (Hx, Hy, Px, Py) as floats."""
        app = self.application
        return (
            float(app.OperandArgument1),
            float(app.OperandArgument2),
            float(app.OperandArgument3),
            float(app.OperandArgument4),
        )

    def write_operand_results(self, values: list[float]) -> None:
        """
        Hand results back to OpticStudio.

        The array is sized to OperandResults.Length and zero-filled past
        the values written.
        """
        slot = self.application.OperandResults
        length = max(int(slot.Length), len(values))
        data = np.zeros(length, dtype=np.float64)
        data[:len(values)] = values
        slot.WriteData(length, self._to_double_array(data.tolist()))

    @staticmethod
    def _to_double_array(values: list[float]) -> Any:
        """Convert to a .NET double[] for ZOS-API calls."""
        from System import Array, Double  # pythonnet, loaded by zospy
        return Array[Double](values)

    # =========================================================================
    # Analyses
    # =========================================================================

    def _new_analysis(self, idm_name: str) -> Any:
        """Open a new analysis window of the given AnalysisIDM kind."""
        idm = getattr(self._zp.constants.Analysis.AnalysisIDM, idm_name)
        return self.oss.Analyses.New_Analysis(idm)

    def _cleanup_analysis(self, analysis: Any, temp_path: Optional[str] = None) -> None:
        """
        Close an OpticStudio analysis and delete its temporary file.

        Args:
            analysis: OpticStudio analysis object to close
            temp_path: Optional temp file path to delete
        """
        if analysis is not None:
            try:
                analysis.Close()
            except Exception as e:
                logger.warning(f"Failed to close analysis: {e}")

        remove_file_quietly(temp_path)
