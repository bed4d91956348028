"""
Analysis settings patching.

OpticStudio only lets a plugin edit arbitrary analysis settings through a
file round trip: save the settings to a file, modify one named field in the
file, load the file back. SettingsAdapter describes that round trip;
FileSettingsAdapter implements it on top of a ZOS-API IAS_ settings object.
"""

import logging
import math
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Any

from config import SETTINGS_TEMP_PREFIX, SETTINGS_TEMP_SUFFIX
from utils.files import remove_file_quietly

logger = logging.getLogger(__name__)


class SettingsPatchError(Exception):
    """Raised when analysis settings cannot be exported, patched or reloaded."""
    pass


class SettingsAdapter(ABC):
    """
    Export / patch / reimport interface for one analysis' settings.

    A blob is whatever the adapter uses to hold serialized settings (a file
    path for FileSettingsAdapter). discard() releases it and is always
    called once the blob is no longer needed.
    """

    @abstractmethod
    def export_settings(self) -> Any:
        """Serialize the current settings and return the blob."""

    @abstractmethod
    def patch_field(self, blob: Any, key: str, value: str) -> Any:
        """Return the blob with one named field set to value."""

    @abstractmethod
    def import_settings(self, blob: Any) -> None:
        """Load the blob back into the live settings."""

    def discard(self, blob: Any) -> None:
        pass


class FileSettingsAdapter(SettingsAdapter):
    """Settings round trip through a temp file, using IAS_.SaveTo/ModifySettings/LoadFrom."""

    def __init__(self, settings: Any):
        self._settings = settings

    def export_settings(self) -> str:
        fd, path = tempfile.mkstemp(prefix=SETTINGS_TEMP_PREFIX, suffix=SETTINGS_TEMP_SUFFIX)
        os.close(fd)
        try:
            if self._settings.SaveTo(path) is False:
                raise SettingsPatchError(f"SaveTo refused to write settings to {path}")
        except SettingsPatchError:
            remove_file_quietly(path)
            raise
        except Exception as e:
            remove_file_quietly(path)
            raise SettingsPatchError(f"Failed to export analysis settings: {e}") from e
        logger.debug(f"Exported analysis settings to {path}")
        return path

    def patch_field(self, blob: str, key: str, value: str) -> str:
        try:
            modified = self._settings.ModifySettings(blob, key, value)
        except Exception as e:
            raise SettingsPatchError(f"Failed to modify setting {key}: {e}") from e
        if modified is False:
            # Unknown keys are the host's concern; the file is left as it was.
            logger.warning(f"OpticStudio did not apply setting {key}={value}")
        return blob

    def import_settings(self, blob: str) -> None:
        try:
            loaded = self._settings.LoadFrom(blob)
        except Exception as e:
            raise SettingsPatchError(f"Failed to reload analysis settings: {e}") from e
        if loaded is False:
            raise SettingsPatchError(f"LoadFrom refused settings file {blob}")

    def discard(self, blob: str) -> None:
        remove_file_quietly(blob)


def format_setting_value(value: float) -> str:
    """
    Canonical decimal text for a settings value.

    Shortest round-trip form, without a trailing ".0" on integral values:
    2.5 -> "2.5", 3.0 -> "3", 1e-05 -> "1e-05".
    """
    value = float(value)
    if not math.isfinite(value):
        raise SettingsPatchError(f"Cannot write non-finite value {value!r} to settings")
    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def should_patch(guard: float, threshold: float = 0.0) -> bool:
    """True when the guard argument is strictly above the threshold."""
    return guard > threshold


def apply_field_patch(adapter: SettingsAdapter, key: str, value: str) -> None:
    """
    Export settings, write key=value into the export, reload it.

    The exported blob is discarded on every path.

    Raises:
        SettingsPatchError: Any step of the round trip fails.
    """
    blob = adapter.export_settings()
    try:
        blob = adapter.patch_field(blob, key, value)
        adapter.import_settings(blob)
    finally:
        adapter.discard(blob)
    logger.info(f"Patched analysis setting {key}={value}")


def apply_conditional_patch(
    adapter: SettingsAdapter,
    guard: float,
    key: str,
    value: float,
    threshold: float = 0.0,
) -> bool:
    """
    Patch one settings field when guard > threshold.

    Returns:
        True if the settings were patched, False if left untouched.

    Raises:
        SettingsPatchError: The patch was attempted and failed.
    """
    if not should_patch(guard, threshold):
        logger.debug(f"Guard {guard} <= {threshold}, settings left untouched")
        return False

    apply_field_patch(adapter, key, format_setting_value(value))
    return True
