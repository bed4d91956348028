"""Footprint mixin – beam footprint extent via the Footprint Diagram analysis."""

import logging
import os
from typing import Any, Optional

from config import FOOTPRINT_REPORT_DIR, FOOTPRINT_REPORT_FILENAME
from footprint_operand import (
    OperandArguments, OperandErrorKind, PatchConfig, StepResult,
    evaluate_footprint_operand,
)
from zospy_handler._base import ZosPyError

logger = logging.getLogger(__name__)


class FootprintMixin:

    def get_report_path(self, per_process: bool = False) -> str:
        """
        Path OpticStudio writes the footprint text export to.

        The directory is FOOTPRINT_REPORT_DIR if set, otherwise the host's
        SamplesDir. With per_process=True the file name carries the pid so
        worker processes sharing a directory never collide.
        """
        base_dir = FOOTPRINT_REPORT_DIR or self.get_samples_dir()
        filename = FOOTPRINT_REPORT_FILENAME
        if per_process:
            stem, ext = os.path.splitext(filename)
            filename = f"{stem}_{os.getpid()}{ext}"
        return os.path.join(base_dir, filename)

    def run_footprint_operand(
        self,
        arguments: OperandArguments,
        patch: Optional[PatchConfig] = None,
        per_process_report: bool = False,
    ) -> StepResult:
        """
        Create a Footprint Diagram analysis, evaluate the operand on it, close it.

        Note: In standalone mode the system must be pre-loaded via load_zmx_file().

        Returns:
            StepResult from evaluate_footprint_operand (value is a
            FootprintOperandResult on success).
        """
        try:
            report_path = self.get_report_path(per_process=per_process_report)
        except ZosPyError as e:
            return StepResult.fail(OperandErrorKind.REPORT_PARSE, str(e))

        analysis = None
        try:
            try:
                analysis = self._new_analysis("FootprintSettings")
            except Exception as e:
                return StepResult.fail(
                    OperandErrorKind.COMPUTE, f"Failed to open Footprint analysis: {e}"
                )
            return evaluate_footprint_operand(analysis, arguments, report_path, patch=patch)
        finally:
            self._cleanup_analysis(analysis, report_path)

    def get_footprint_extent(
        self,
        hx: float = 0.0,
        hy: float = 0.0,
        px: float = 0.0,
        py: float = 0.0,
        patch_key: Optional[str] = None,
        patch_threshold: Optional[float] = None,
    ) -> dict[str, Any]:
        """
        Footprint extent for the worker's /footprint-extent endpoint.

        Returns:
            On success: {
                "success": True,
                "x_min": float, "x_max": float,
                "y_min": float, "y_max": float,
                "patched": bool,
            }
            On error: {"success": False, "error": "...", "error_kind": "..."}
        """
        patch = PatchConfig()
        if patch_key is not None:
            patch.key = patch_key
        if patch_threshold is not None:
            patch.threshold = patch_threshold

        result = self.run_footprint_operand(
            OperandArguments(hx=hx, hy=hy, px=px, py=py),
            patch=patch,
            per_process_report=True,
        )
        if not result.success:
            logger.warning(f"Footprint extent failed ({result.error_kind.value}): {result.error}")
            return {
                "success": False,
                "error": result.error,
                "error_kind": result.error_kind.value,
            }

        outcome = result.value
        return {
            "success": True,
            **outcome.extent.model_dump(),
            "patched": outcome.patched,
        }
