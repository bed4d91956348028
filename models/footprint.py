from typing import Optional
from pydantic import BaseModel, Field

from models.base import SystemRequest


class FootprintExtentRequest(SystemRequest):
    """Footprint operand evaluation request (same arguments as the UDOC operand)."""
    hx: float = Field(default=0.0, description="Operand argument 1 (Hx); patch guard and value by default")
    hy: float = Field(default=0.0, description="Operand argument 2 (Hy)")
    px: float = Field(default=0.0, description="Operand argument 3 (Px)")
    py: float = Field(default=0.0, description="Operand argument 4 (Py)")
    patch_key: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Footprint settings field to patch. None = FOOTPRINT_PATCH_KEY.",
    )
    patch_threshold: Optional[float] = Field(
        default=None,
        description="Patch only when the guard argument exceeds this. None = FOOTPRINT_PATCH_THRESHOLD.",
    )


class FootprintExtentResponse(BaseModel):
    """Footprint extent response."""
    success: bool = Field(description="Whether the operation succeeded")
    x_min: Optional[float] = Field(default=None, description="Minimum X of the footprint")
    x_max: Optional[float] = Field(default=None, description="Maximum X of the footprint")
    y_min: Optional[float] = Field(default=None, description="Minimum Y of the footprint")
    y_max: Optional[float] = Field(default=None, description="Maximum Y of the footprint")
    patched: Optional[bool] = Field(default=None, description="Whether the analysis settings were patched")
    error: Optional[str] = Field(default=None, description="Error message if operation failed")
    error_kind: Optional[str] = Field(default=None, description="Failing step: settings_io, compute, report_parse, ...")
