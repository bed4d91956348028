"""
Footprint Report Parser

Extracts the beam footprint extent from the text export written by
OpticStudio's Footprint Diagram analysis (GetTextFile).

The export has a fixed layout:

    <8 header lines: title, file, date, surface, ...>
    X Minimum  :  -1.234E+00
    X Maximum  :   1.234E+00
    Y Minimum  :  -2.000E+00
    Y Maximum  :   2.000E+00

Only the four data lines are read. Each holds one number, possibly with
units or labels around it; the first numeric literal on the line is taken.
"""

import codecs
import logging
import re
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from config import REPORT_FIELDS, REPORT_HEADER_LINES, _RAW_LOG_MAX_CHARS
from utils.files import remove_file_quietly

# Dedicated logger for raw OpticStudio text output
logger_raw = logging.getLogger("zemax.raw")

# Optional minus, digits and/or decimal point, optional exponent
NUMERIC_LITERAL_RE = re.compile(r"-?[\d.]+(?:[Ee][+-]?\d+)?")

REPORT_LINE_COUNT = REPORT_HEADER_LINES + len(REPORT_FIELDS)

# Only CR, LF and CRLF end a report line (not form feed, NEL, U+2028)
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")

_FIELD_LABELS = {
    "x_min": "X-min",
    "x_max": "X-max",
    "y_min": "Y-min",
    "y_max": "Y-max",
}


class ReportParseError(Exception):
    """Raised when a footprint report does not match the expected layout."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        super().__init__(message)
        self.line_number = line_number


class FootprintExtent(BaseModel):
    """Beam footprint extent, in report order."""
    x_min: float = Field(description="Minimum X coordinate of the footprint")
    x_max: float = Field(description="Maximum X coordinate of the footprint")
    y_min: float = Field(description="Minimum Y coordinate of the footprint")
    y_max: float = Field(description="Maximum Y coordinate of the footprint")

    def as_vector(self) -> list[float]:
        """Result vector: [x_min, x_max, y_min, y_max]."""
        return [getattr(self, name) for name in REPORT_FIELDS]


def extract_number(line: str, line_number: int, field: str) -> float:
    """
    Parse the first numeric literal on a report data line.

    Args:
        line: Raw data line
        line_number: 1-based line number in the report (for error messages)
        field: Field name the line holds

    Raises:
        ReportParseError: No literal on the line, or the literal does not
            convert (e.g. a lone ".").
    """
    label = _FIELD_LABELS.get(field, field)
    match = NUMERIC_LITERAL_RE.search(line)
    if match is None:
        raise ReportParseError(
            f"Line {line_number} ({label}) has no numeric value: {line.strip()!r}",
            line_number=line_number,
        )

    literal = match.group(0)
    try:
        return float(literal)
    except ValueError:
        raise ReportParseError(
            f"Line {line_number} ({label}) has an invalid numeric literal {literal!r}",
            line_number=line_number,
        ) from None


def parse_footprint_report(lines: Iterable[str]) -> FootprintExtent:
    """
    Parse footprint report lines into a FootprintExtent.

    The first REPORT_HEADER_LINES lines are skipped without inspection.
    The following lines are read in REPORT_FIELDS order; anything after
    them is ignored.

    Raises:
        ReportParseError: Fewer than REPORT_LINE_COUNT lines, or a data line
            without a valid number.
    """
    values: dict[str, float] = {}
    line_iter = iter(lines)

    for index in range(REPORT_LINE_COUNT):
        line = next(line_iter, None)
        if line is None:
            raise ReportParseError(
                f"Report ended after {index} lines, expected at least {REPORT_LINE_COUNT}",
                line_number=index + 1,
            )
        if index < REPORT_HEADER_LINES:
            continue
        field = REPORT_FIELDS[index - REPORT_HEADER_LINES]
        values[field] = extract_number(line, index + 1, field)

    return FootprintExtent(**values)


def decode_report_bytes(raw: bytes) -> str:
    """
    Decode a text export, honouring UTF-16/UTF-8 BOMs (OpticStudio writes UTF-16).

    Undecodable bytes become U+FFFD. ANSI exports can carry non-UTF-8 bytes
    in header lines (e.g. the lens file path), which are never parsed.
    """
    if raw.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return raw.decode("utf-16", errors="replace")
    return raw.decode("utf-8-sig", errors="replace")


def split_report_lines(text: str) -> list[str]:
    """Split on CR, LF or CRLF only. A trailing line break does not start a new line."""
    lines = _LINE_BREAK_RE.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def read_footprint_report(report_path: str) -> FootprintExtent:
    """
    Read, parse and delete a footprint report file.

    The file is removed whether or not parsing succeeds.

    Raises:
        ReportParseError: The file is missing, unreadable or malformed.
    """
    try:
        try:
            with open(report_path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise ReportParseError(f"Could not read report {report_path}: {e}") from e

        text = decode_report_bytes(raw)

        if logger_raw.isEnabledFor(logging.DEBUG):
            logger_raw.debug(f"[RAW] footprint report:\n{text[:_RAW_LOG_MAX_CHARS]}")

        return parse_footprint_report(split_report_lines(text))
    finally:
        remove_file_quietly(report_path)
