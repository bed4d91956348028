"""Fakes of the OpticStudio objects the footprint operand talks to."""

import os
import tempfile
from types import SimpleNamespace

import pytest

from settings_patch import SettingsAdapter

HEADER = [f"H{i}" for i in range(8)]

DATA_LINES = [
    "X-Min : 1.234E-02",
    "X-Max : 5.6",
    "Y-Min : -7.0",
    "Y-Max : 8.90E+01",
]

EXPECTED_VECTOR = [0.01234, 5.6, -7.0, 89.0]


def write_report(path, lines, encoding="utf-16"):
    """Write report lines the way GetTextFile does (UTF-16 with BOM by default)."""
    with open(path, "w", encoding=encoding, newline="\r\n") as f:
        f.write("\n".join(lines) + "\n")


class FakeSettings:
    """IAS_ settings backed by a dict, serialized as KEY=VALUE lines."""

    def __init__(self, fields=None, fail_on=None):
        self.fields = dict(fields or {"FOO_SURFACE": "1", "RAY_DENSITY": "5", "DELETE_VIGNETTED": "1"})
        self.fail_on = fail_on
        self.saved_paths = []
        self.modified = []
        self.load_count = 0

    def serialize(self):
        return "".join(f"{k}={v}\n" for k, v in self.fields.items()).encode("utf-8")

    def SaveTo(self, path):
        if self.fail_on == "save":
            raise RuntimeError("disk full")
        self.saved_paths.append(path)
        with open(path, "wb") as f:
            f.write(self.serialize())
        return True

    def ModifySettings(self, path, key, value):
        if self.fail_on == "modify":
            raise RuntimeError("settings file locked")
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
        found = False
        for i, line in enumerate(lines):
            if line.split("=", 1)[0] == key:
                lines[i] = f"{key}={value}"
                found = True
        if not found:
            return False
        with open(path, "w", encoding="utf-8") as f:
            f.write("".join(line + "\n" for line in lines))
        self.modified.append((key, value))
        return True

    def LoadFrom(self, path):
        if self.fail_on == "load":
            return False
        with open(path, "r", encoding="utf-8") as f:
            self.fields = dict(line.split("=", 1) for line in f.read().splitlines() if line)
        self.load_count += 1
        return True


class FakeResults:
    def __init__(self, report_lines, messages=()):
        self.report_lines = report_lines
        self.Messages = list(messages)
        self.written_paths = []

    def GetTextFile(self, path):
        if self.report_lines is None:
            return False
        self.written_paths.append(path)
        write_report(path, self.report_lines)
        return True


class FakeAnalysis:
    """IA_ analysis: records the settings it computed with."""

    def __init__(self, settings=None, report_lines=None, compute_error=None, messages=()):
        self.settings = settings or FakeSettings()
        self.results = FakeResults(HEADER + DATA_LINES if report_lines is None else report_lines, messages)
        self.compute_error = compute_error
        self.computed_with = None
        self.compute_count = 0
        self.closed = False

    def GetSettings(self):
        return self.settings

    def ApplyAndWaitForCompletion(self):
        self.compute_count += 1
        if self.compute_error:
            raise RuntimeError(self.compute_error)
        self.computed_with = self.settings.serialize()

    def GetResults(self):
        return self.results

    def Close(self):
        self.closed = True


class InMemorySettingsAdapter(SettingsAdapter):
    """SettingsAdapter over a plain dict; the blob is the serialized text."""

    def __init__(self, fields):
        self.fields = dict(fields)
        self.discarded = []

    def export_settings(self):
        return "".join(f"{k}={v}\n" for k, v in self.fields.items())

    def patch_field(self, blob, key, value):
        lines = [
            f"{key}={value}" if line.split("=", 1)[0] == key else line
            for line in blob.splitlines()
        ]
        return "".join(line + "\n" for line in lines)

    def import_settings(self, blob):
        self.fields = dict(line.split("=", 1) for line in blob.splitlines())

    def discard(self, blob):
        self.discarded.append(blob)


@pytest.fixture
def isolated_tempdir(tmp_path, monkeypatch):
    """Point tempfile at an empty directory so leftover temp files are visible."""
    temp_dir = tmp_path / "tmp"
    temp_dir.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(temp_dir))
    return temp_dir


@pytest.fixture
def report_path(tmp_path):
    return str(tmp_path / "Footprint_diagram_results.txt")


def leftover_files(directory):
    return sorted(os.listdir(directory))


def fake_zospy(analysis):
    """Stand-in for the zospy module / OpticStudio system pair used by ZosPyHandler."""
    idm = SimpleNamespace(FootprintSettings="FootprintSettings")
    zp = SimpleNamespace(
        __version__="1.2.1",
        constants=SimpleNamespace(Analysis=SimpleNamespace(AnalysisIDM=idm)),
    )
    opened = []

    def new_analysis(kind):
        opened.append(kind)
        return analysis

    oss = SimpleNamespace(Analyses=SimpleNamespace(New_Analysis=new_analysis))
    return zp, oss, opened
