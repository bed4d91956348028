import os

import pytest

from report_parser import (
    REPORT_LINE_COUNT, FootprintExtent, ReportParseError, decode_report_bytes,
    extract_number, parse_footprint_report, read_footprint_report,
    split_report_lines,
)
from conftest import DATA_LINES, EXPECTED_VECTOR, HEADER, write_report


def test_parses_data_lines_in_fixed_order():
    extent = parse_footprint_report(HEADER + DATA_LINES)

    assert extent.as_vector() == pytest.approx(EXPECTED_VECTOR)
    assert extent == FootprintExtent(x_min=0.01234, x_max=5.6, y_min=-7.0, y_max=89.0)


def test_header_lines_are_not_inspected():
    header = ["Footprint Diagram", "", "N/A", "-1", "Surface 12", "x" * 200, "1.0", ""]

    extent = parse_footprint_report(header + DATA_LINES)

    assert extent.x_min == pytest.approx(0.01234)


def test_lines_after_the_data_are_ignored():
    extent = parse_footprint_report(HEADER + DATA_LINES + ["garbage", "N/A"])

    assert extent.y_max == pytest.approx(89.0)


def test_short_report_raises():
    with pytest.raises(ReportParseError) as exc_info:
        parse_footprint_report(HEADER + DATA_LINES[:2])

    assert "ended after 10 lines" in str(exc_info.value)
    assert exc_info.value.line_number == 11


def test_line_without_number_names_its_position():
    lines = HEADER + [DATA_LINES[0], "N/A", DATA_LINES[2], DATA_LINES[3]]

    with pytest.raises(ReportParseError) as exc_info:
        parse_footprint_report(lines)

    assert exc_info.value.line_number == 10
    assert "Line 10" in str(exc_info.value)
    assert "X-max" in str(exc_info.value)


@pytest.mark.parametrize("line", ["X-Min : .", "X-Min : 1.2.3", "X-Min : ..5"])
def test_unconvertible_literal_raises(line):
    with pytest.raises(ReportParseError, match="invalid numeric literal"):
        extract_number(line, 9, "x_min")


def test_first_number_on_line_wins():
    # Leading annotations containing digits are taken as the value.
    assert extract_number("Surface 3 X-Min : -0.25", 9, "x_min") == 3.0


@pytest.mark.parametrize("line, expected", [
    ("X-Max : 4.5e-3 mm", 0.0045),
    ("Y-Min:-12", -12.0),
    ("Y-Max = 1E+02", 100.0),
    ("Y-Max = 2.5E-1 (clipped)", 0.25),
])
def test_number_formats(line, expected):
    assert extract_number(line, 12, "y_max") == pytest.approx(expected)


def test_decode_handles_utf16_and_utf8():
    text = "H0\nX-Min : 1.0\n"

    assert decode_report_bytes(text.encode("utf-16")) == text
    assert decode_report_bytes(text.encode("utf-8-sig")) == text
    assert decode_report_bytes(text.encode("utf-8")) == text


def test_ansi_header_bytes_do_not_break_parsing(report_path):
    header = list(HEADER)
    header[1] = "File : C:\\Lentille_\u00e0_45\u00b0.zmx"
    write_report(report_path, header + DATA_LINES, encoding="cp1252")

    extent = read_footprint_report(report_path)

    assert extent.as_vector() == pytest.approx(EXPECTED_VECTOR)
    assert not os.path.exists(report_path)


def test_control_characters_in_header_do_not_shift_data(report_path):
    header = list(HEADER)
    header[0] = "H0\x0cstill H0"
    header[3] = "H3\x85\u2028\x1c"
    write_report(report_path, header + DATA_LINES)

    extent = read_footprint_report(report_path)

    assert extent.as_vector() == pytest.approx(EXPECTED_VECTOR)


def test_split_report_lines_breaks_on_cr_lf_only():
    assert split_report_lines("a\r\nb\rc\nd\x0ce\r\n") == ["a", "b", "c", "d\x0ce"]
    assert split_report_lines("a\n\nb") == ["a", "", "b"]
    assert split_report_lines("") == []


def test_read_report_deletes_file_on_success(report_path):
    write_report(report_path, HEADER + DATA_LINES)

    extent = read_footprint_report(report_path)

    assert extent.as_vector() == pytest.approx(EXPECTED_VECTOR)
    assert not os.path.exists(report_path)


def test_read_report_deletes_file_on_parse_failure(report_path):
    write_report(report_path, HEADER + DATA_LINES[:2])

    with pytest.raises(ReportParseError):
        read_footprint_report(report_path)

    assert not os.path.exists(report_path)


def test_missing_report_is_a_parse_error(report_path):
    with pytest.raises(ReportParseError, match="Could not read report"):
        read_footprint_report(report_path)


def test_report_line_count():
    assert REPORT_LINE_COUNT == 12
