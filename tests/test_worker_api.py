import base64
import logging

import pytest
from fastapi.testclient import TestClient

import main
from log_buffer import LogBuffer

ZMX = base64.b64encode("VERS 240102\r\nSURF 0\r\n".encode("utf-16-le")).decode()


class FakeWorkerHandler:
    def __init__(self, result=None):
        self.result = result or {
            "success": True,
            "x_min": -1.5, "x_max": 1.5, "y_min": -2.0, "y_max": 2.0,
            "patched": True,
        }
        self.loaded = []
        self.calls = []

    def load_zmx_file(self, path):
        with open(path, "rb") as f:
            self.loaded.append(f.read())
        return {"num_surfaces": 6}

    def get_footprint_extent(self, **kwargs):
        self.calls.append(kwargs)
        return self.result

    def get_status(self):
        return {"connected": True, "opticstudio_version": "24.1.2", "zospy_version": "1.2.1"}

    def close(self):
        pass


@pytest.fixture
def client():
    return TestClient(main.app)


def test_footprint_extent(client, monkeypatch):
    handler = FakeWorkerHandler()
    monkeypatch.setattr(main, "zospy_handler", handler)

    response = client.post("/footprint-extent", json={
        "zmx_content": ZMX, "hx": 2.5, "patch_key": "FOO_SURFACE",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [body["x_min"], body["x_max"], body["y_min"], body["y_max"]] == [-1.5, 1.5, -2.0, 2.0]
    assert body["patched"] is True
    assert handler.calls == [{
        "hx": 2.5, "hy": 0.0, "px": 0.0, "py": 0.0,
        "patch_key": "FOO_SURFACE", "patch_threshold": None,
    }]
    assert len(handler.loaded) == 1


def test_footprint_extent_reports_error_kind(client, monkeypatch):
    handler = FakeWorkerHandler(result={
        "success": False,
        "error": "Line 10 (X-max) has no numeric value: 'N/A'",
        "error_kind": "report_parse",
    })
    monkeypatch.setattr(main, "zospy_handler", handler)

    body = client.post("/footprint-extent", json={"zmx_content": ZMX}).json()

    assert body["success"] is False
    assert body["error_kind"] == "report_parse"
    assert "Line 10" in body["error"]
    assert body["x_min"] is None


def test_invalid_zmx_is_rejected_without_reconnect(client, monkeypatch):
    handler = FakeWorkerHandler()
    monkeypatch.setattr(main, "zospy_handler", handler)

    body = client.post("/footprint-extent", json={"zmx_content": "not base64!"}).json()

    assert body["success"] is False
    assert "Invalid base64" in body["error"]
    assert main.zospy_handler is handler
    assert handler.calls == []


def test_not_connected(client, monkeypatch):
    monkeypatch.setattr(main, "zospy_handler", None)
    monkeypatch.setattr(main, "_init_zospy", lambda: None)
    monkeypatch.setattr(main, "_reconnect_failures", 0)
    monkeypatch.setattr(main, "_last_connection_error", "ZosPy is not available")

    body = client.post("/footprint-extent", json={"zmx_content": ZMX}).json()

    assert body["success"] is False
    assert body["error"] == "OpticStudio not connected: ZosPy is not available"


def test_health(client, monkeypatch):
    monkeypatch.setattr(main, "zospy_handler", FakeWorkerHandler())

    body = client.get("/health").json()

    assert body["success"] is True
    assert body["opticstudio_connected"] is True
    assert body["version"] == "24.1.2"


def test_health_without_connection(client, monkeypatch):
    monkeypatch.setattr(main, "zospy_handler", None)
    monkeypatch.setattr(main, "_last_connection_error", None)

    body = client.get("/health").json()

    assert body["success"] is True
    assert body["opticstudio_connected"] is False


def test_logs_endpoint(client):
    logging.getLogger("footprint.test").warning("footprint log probe")

    body = client.get("/logs", params={"level": "WARNING"}).json()

    assert any("footprint log probe" in e["message"] for e in body["entries"])
    assert all(e["levelno"] >= logging.WARNING for e in body["entries"])


def test_log_buffer_cursor_and_level():
    buffer = LogBuffer(maxlen=10)
    log = logging.getLogger("footprint.buffer")
    log.addHandler(buffer)
    log.setLevel(logging.DEBUG)
    try:
        log.debug("first")
        log.error("second")
    finally:
        log.removeHandler(buffer)

    entries, latest = buffer.get_entries()
    assert [e["message"] for e in entries] == ["first", "second"]
    assert latest == 2

    entries, _ = buffer.get_entries(since_sequence=1)
    assert [e["message"] for e in entries] == ["second"]

    entries, _ = buffer.get_entries(min_level="ERROR")
    assert [e["message"] for e in entries] == ["second"]

    assert buffer.get_entries(since_sequence=2) == ([], 2)
