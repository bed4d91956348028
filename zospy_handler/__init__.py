"""ZosPy handler package – composed via mixin pattern.

Usage::

    from zospy_handler import ZosPyHandler, ZosPyError
"""

from zospy_handler._base import ZosPyHandlerBase, ZosPyError, HostStateError
from zospy_handler.footprint import FootprintMixin


class ZosPyHandler(
    FootprintMixin,
    ZosPyHandlerBase,
):
    """Composed ZosPy handler with the footprint analysis mixin."""
    pass


__all__ = ["ZosPyHandler", "ZosPyError", "HostStateError"]
