"""
Footprint user operand engine.

One evaluation of the operand runs three steps against a Footprint Diagram
analysis that the caller has already created:

1. Patch   - when the guard argument is positive, write one named settings
             field through the save / modify / load file round trip.
2. Compute - ApplyAndWaitForCompletion(), blocking until OpticStudio is done.
3. Parse   - export the results with GetTextFile() and read X/Y min/max.

Each step returns a StepResult instead of raising, and the first failure ends
the evaluation. The engine holds no state: the analysis, the report path and
the arguments are all passed in.
"""

import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from config import (
    FOOTPRINT_GUARD_ARGUMENT, FOOTPRINT_PATCH_KEY, FOOTPRINT_PATCH_THRESHOLD,
    FOOTPRINT_VALUE_ARGUMENT,
)
from report_parser import FootprintExtent, ReportParseError, read_footprint_report
from settings_patch import (
    FileSettingsAdapter, SettingsAdapter, SettingsPatchError,
    apply_field_patch, format_setting_value, should_patch,
)
from utils.files import remove_file_quietly
from utils.timing import log_timing

logger = logging.getLogger(__name__)


class OperandErrorKind(str, Enum):
    """Why an operand evaluation was aborted."""
    CONNECTION = "connection"
    HOST_STATE = "host_state"
    SETTINGS_IO = "settings_io"
    COMPUTE = "compute"
    REPORT_PARSE = "report_parse"


class OperandError(Exception):
    """Fatal operand failure; OpticStudio sees it as an invalid operand value."""

    def __init__(self, kind: OperandErrorKind, message: str):
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"[{self.kind.value}] {super().__str__()}"


@dataclass
class StepResult:
    """Outcome of one evaluation step."""
    success: bool
    value: Any = None
    error: Optional[str] = None
    error_kind: Optional[OperandErrorKind] = None

    @classmethod
    def ok(cls, value: Any = None) -> "StepResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, kind: OperandErrorKind, error: str) -> "StepResult":
        return cls(success=False, error=error, error_kind=kind)

    def raise_for_error(self) -> Any:
        """Return the value, or raise OperandError if the step failed."""
        if not self.success:
            raise OperandError(self.error_kind, self.error or "operand step failed")
        return self.value


class OperandArguments(BaseModel):
    """The four operand arguments OpticStudio passes to a user operand."""
    hx: float = Field(default=0.0, description="Normalized field X (OperandArgument1)")
    hy: float = Field(default=0.0, description="Normalized field Y (OperandArgument2)")
    px: float = Field(default=0.0, description="Normalized pupil X (OperandArgument3)")
    py: float = Field(default=0.0, description="Normalized pupil Y (OperandArgument4)")

    def argument(self, number: int) -> float:
        """Operand argument by its 1-based OpticStudio number."""
        names = ("hx", "hy", "px", "py")
        if not 1 <= number <= len(names):
            raise ValueError(f"Operand argument number must be 1-4, got {number}")
        return getattr(self, names[number - 1])


class PatchConfig(BaseModel):
    """Which settings field to patch, and from which operand arguments."""
    key: str = Field(default=FOOTPRINT_PATCH_KEY, min_length=1, description="Settings field key")
    guard_argument: int = Field(default=FOOTPRINT_GUARD_ARGUMENT, ge=1, le=4, description="Argument that enables the patch")
    value_argument: int = Field(default=FOOTPRINT_VALUE_ARGUMENT, ge=1, le=4, description="Argument written into the field")
    threshold: float = Field(default=FOOTPRINT_PATCH_THRESHOLD, description="Patch only when guard > threshold")


class FootprintOperandResult(BaseModel):
    """Successful evaluation: the extent plus whether settings were patched."""
    extent: FootprintExtent
    patched: bool = False

    def as_vector(self) -> list[float]:
        return self.extent.as_vector()


# =============================================================================
# Steps
# =============================================================================


def patch_step(
    analysis: Any,
    arguments: OperandArguments,
    patch: PatchConfig,
    settings_adapter: Optional[SettingsAdapter] = None,
) -> StepResult:
    """Conditionally patch the analysis settings. Value is True if patched."""
    guard = arguments.argument(patch.guard_argument)
    if not should_patch(guard, patch.threshold):
        logger.debug(f"Guard argument {patch.guard_argument}={guard} <= {patch.threshold}, no settings patch")
        return StepResult.ok(False)

    try:
        value_text = format_setting_value(arguments.argument(patch.value_argument))
        adapter = settings_adapter
        if adapter is None:
            adapter = FileSettingsAdapter(analysis.GetSettings())
        apply_field_patch(adapter, patch.key, value_text)
    except SettingsPatchError as e:
        return StepResult.fail(OperandErrorKind.SETTINGS_IO, str(e))
    except Exception as e:
        return StepResult.fail(OperandErrorKind.SETTINGS_IO, f"Settings patch failed: {e}")
    return StepResult.ok(True)


def _host_error_message(analysis: Any) -> Optional[str]:
    """First 'cannot ...' message OpticStudio attached to the analysis results, if any."""
    try:
        messages = getattr(analysis.GetResults(), "Messages", None)
    except Exception:
        return None
    for msg in messages or ():
        text = str(getattr(msg, "Message", msg))
        if "cannot" in text.lower():
            return text
    return None


def compute_step(analysis: Any) -> StepResult:
    """Run the analysis and block until OpticStudio finishes."""
    start = time.perf_counter()
    try:
        analysis.ApplyAndWaitForCompletion()
    except Exception as e:
        return StepResult.fail(OperandErrorKind.COMPUTE, f"Footprint analysis failed: {e}")
    finally:
        log_timing(logger, "Footprint.ApplyAndWaitForCompletion", (time.perf_counter() - start) * 1000)

    error_msg = _host_error_message(analysis)
    if error_msg:
        return StepResult.fail(OperandErrorKind.COMPUTE, error_msg)
    return StepResult.ok()


def parse_step(analysis: Any, report_path: str) -> StepResult:
    """Export the results to report_path and parse the extent. The report is always removed."""
    try:
        try:
            written = analysis.GetResults().GetTextFile(report_path)
        except Exception as e:
            return StepResult.fail(OperandErrorKind.REPORT_PARSE, f"GetTextFile failed: {e}")

        if written is False or not os.path.exists(report_path):
            return StepResult.fail(OperandErrorKind.REPORT_PARSE, "GetTextFile did not create output file")

        try:
            extent = read_footprint_report(report_path)
        except ReportParseError as e:
            return StepResult.fail(OperandErrorKind.REPORT_PARSE, str(e))
    finally:
        remove_file_quietly(report_path)

    logger.info(
        f"Footprint extent: X [{extent.x_min}, {extent.x_max}], "
        f"Y [{extent.y_min}, {extent.y_max}]"
    )
    return StepResult.ok(extent)


# =============================================================================
# Evaluation
# =============================================================================


def evaluate_footprint_operand(
    analysis: Any,
    arguments: OperandArguments,
    report_path: str,
    patch: Optional[PatchConfig] = None,
    settings_adapter: Optional[SettingsAdapter] = None,
) -> StepResult:
    """
    Evaluate the footprint operand against an existing analysis.

    Args:
        analysis: ZOS-API analysis (IA_) for a Footprint Diagram
        arguments: Operand arguments Hx, Hy, Px, Py
        report_path: Where GetTextFile() writes the results
        patch: Settings patch configuration (defaults from config.py)
        settings_adapter: Settings round trip; defaults to a temp-file
            adapter over analysis.GetSettings()

    Returns:
        StepResult whose value is a FootprintOperandResult on success,
        or the failing step's result otherwise.
    """
    patch = patch or PatchConfig()

    patched = patch_step(analysis, arguments, patch, settings_adapter)
    if not patched.success:
        return patched

    computed = compute_step(analysis)
    if not computed.success:
        return computed

    parsed = parse_step(analysis, report_path)
    if not parsed.success:
        return parsed

    return StepResult.ok(FootprintOperandResult(extent=parsed.value, patched=patched.value))
