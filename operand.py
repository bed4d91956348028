"""
Footprint User Operand

Entry point OpticStudio launches for the footprint user operand (UDOC).
Reads Hx, Hy, Px, Py from the operand arguments, evaluates the Footprint
Diagram extent and writes [X-min, X-max, Y-min, Y-max] back to OpticStudio.

OpticStudio waits for the operand until this process exits. Any failure
exits with status 1 without writing results, which the optimizer treats
as an invalid operand value.

Usage (from the user operand executable wrapper):
    python operand.py
"""

import logging
import sys
from typing import Callable, Optional

from config import FOOTPRINT_OPERAND_LOG_FILE, FOOTPRINT_OPERAND_LOG_LEVEL
from footprint_operand import (
    FootprintOperandResult, OperandArguments, OperandError, OperandErrorKind,
    PatchConfig,
)
from utils.timing import timed_operation
from zospy_handler import HostStateError, ZosPyError, ZosPyHandler

logger = logging.getLogger("operand")


def configure_logging() -> None:
    """Log to FOOTPRINT_OPERAND_LOG_FILE if set, otherwise stderr."""
    logging.basicConfig(
        level=getattr(logging, FOOTPRINT_OPERAND_LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        filename=FOOTPRINT_OPERAND_LOG_FILE,
    )


def connect(handler_factory: Callable[..., ZosPyHandler] = ZosPyHandler) -> ZosPyHandler:
    """
    Attach to the OpticStudio instance that launched this operand.

    Raises:
        OperandError: CONNECTION or HOST_STATE; no analysis has been touched.
    """
    try:
        return handler_factory(mode="operand")
    except HostStateError as e:
        raise OperandError(OperandErrorKind.HOST_STATE, str(e)) from e
    except ZosPyError as e:
        raise OperandError(OperandErrorKind.CONNECTION, str(e)) from e


def run_operand(
    handler: ZosPyHandler,
    patch: Optional[PatchConfig] = None,
) -> FootprintOperandResult:
    """
    Evaluate the operand on a connected handler and hand the results back.

    Raises:
        OperandError: Any step failed; nothing was written to OperandResults.
    """
    hx, hy, px, py = handler.read_operand_arguments()
    arguments = OperandArguments(hx=hx, hy=hy, px=px, py=py)
    logger.info(f"Operand arguments: Hx={hx}, Hy={hy}, Px={px}, Py={py}")

    outcome = handler.run_footprint_operand(arguments, patch=patch).raise_for_error()
    handler.write_operand_results(outcome.as_vector())
    return outcome


def main(handler_factory: Callable[..., ZosPyHandler] = ZosPyHandler) -> int:
    """Run one operand evaluation. Returns the process exit status."""
    configure_logging()
    handler = None
    try:
        with timed_operation(logger, "footprint-operand"):
            handler = connect(handler_factory)
            run_operand(handler)
        return 0
    except OperandError as e:
        logger.error(f"Footprint operand failed: {e}")
        return 1
    finally:
        if handler is not None:
            handler.close()


if __name__ == "__main__":
    sys.exit(main())
