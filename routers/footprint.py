"""Footprint router – footprint operand evaluation."""

from fastapi import APIRouter, Depends

import main
from models import FootprintExtentRequest, FootprintExtentResponse

router = APIRouter()


@router.post("/footprint-extent", response_model=FootprintExtentResponse)
async def get_footprint_extent(
    request: FootprintExtentRequest,
    _: None = Depends(main.verify_api_key),
) -> FootprintExtentResponse:
    """
    Evaluate the footprint user operand on the uploaded system.

    Runs the same patch / compute / parse sequence as the UDOC plugin and
    returns X/Y min/max of the beam footprint.
    """
    return await main._run_endpoint(
        "/footprint-extent", FootprintExtentResponse, request,
        lambda: main.zospy_handler.get_footprint_extent(
            hx=request.hx,
            hy=request.hy,
            px=request.px,
            py=request.py,
            patch_key=request.patch_key,
            patch_threshold=request.patch_threshold,
        ),
    )
