"""Tests for FastAPI REST endpoints using FakeENS160 (no hardware).

Tests verify:
- Connection lifecycle (connect, disconnect, detection failure)
- Sensor reads (measurement, status, firmware, mode, compensation)
- Recording (start, stop, latest, recent)
- Error mapping (InvalidCompensationValue→400, DeviceNotDetected→404, BusError→503)
"""

import time

import pytest
from fastapi.testclient import TestClient

from api import main as api_module
from ens160_lib import protocol
from ens160_lib.transport import Transport
from fakes.fake_ens160 import FakeENS160


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global singletons before and after each test."""
    api_module._controller = None
    api_module._store = None
    api_module._recorder = None
    yield
    if api_module._recorder and api_module._recorder.is_running():
        api_module._recorder.stop()
    if api_module._controller:
        api_module._controller.disconnect()
    api_module._controller = None
    api_module._store = None
    api_module._recorder = None


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(api_module.app)


@pytest.fixture
def fake_sensor():
    """FakeENS160 with known firmware and readings."""
    fake = FakeENS160(firmware=(5, 4, 6))
    fake.aqi = 2
    fake.tvoc_ppb = 150
    fake.eco2_ppm = 700
    return fake


@pytest.fixture
def monkeypatch_transport(monkeypatch, fake_sensor):
    """Monkeypatch Transport.open to use FakeENS160."""
    def mock_open(bus_number: int, address: int):
        """Return Transport wrapping FakeENS160."""
        return Transport(fake_sensor, address)

    monkeypatch.setattr(Transport, "open", mock_open)


def connect(client) -> None:
    response = client.post("/connect?bus=1&address=83")
    assert response.status_code == 200


# =============================================================================
# Health Check
# =============================================================================

def test_root_health_check(client):
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "ENS160 API"
    assert data["status"] == "online"


def test_status_when_disconnected(client):
    data = client.get("/status").json()
    assert data == {"connected": False, "initialized": False, "recording": False, "rows": 0}


# =============================================================================
# Connection Lifecycle
# =============================================================================

def test_connect_success(client, monkeypatch_transport, fake_sensor):
    response = client.post("/connect?bus=1&address=83")

    assert response.status_code == 200
    assert response.json() == {"status": "connected", "bus": 1, "address": 0x53}
    assert fake_sensor.opmode == protocol.MODE_STANDARD

    status = client.get("/status").json()
    assert status["connected"] is True
    assert status["initialized"] is True


def test_connect_twice_fails(client, monkeypatch_transport):
    connect(client)
    response = client.post("/connect?bus=1&address=83")
    assert response.status_code == 400
    assert "Already connected" in response.json()["detail"]


def test_connect_wrong_device(client, monkeypatch_transport, fake_sensor):
    fake_sensor.part_id = 0x1234

    response = client.post("/connect?bus=1&address=83")

    assert response.status_code == 404
    assert "Could not detect" in response.json()["detail"]
    assert not fake_sensor.is_open
    assert client.get("/status").json()["connected"] is False


def test_connect_bus_unavailable(client, monkeypatch):
    def failing_open(bus_number: int, address: int):
        from ens160_lib.errors import BusError
        raise BusError(f"Failed to open I2C bus {bus_number}")

    monkeypatch.setattr(Transport, "open", failing_open)

    response = client.post("/connect?bus=9&address=83")
    assert response.status_code == 503


def test_disconnect_success(client, monkeypatch_transport, fake_sensor):
    connect(client)

    response = client.post("/disconnect")

    assert response.status_code == 200
    assert response.json()["status"] == "disconnected"
    assert not fake_sensor.is_open


def test_endpoints_require_connection(client):
    for path in ("/measurement", "/sensor/status", "/firmware", "/mode", "/compensation"):
        response = client.get(path)
        assert response.status_code == 503, path


# =============================================================================
# Sensor Reads
# =============================================================================

def test_measurement(client, monkeypatch_transport, fake_sensor):
    connect(client)
    fake_sensor.set_validity(1)

    data = client.get("/measurement").json()

    assert data["aqi"] == 2
    assert data["tvoc_ppb"] == 150
    assert data["eco2_ppm"] == 700
    assert data["validity"] == "warmup"
    assert data["error"] is False


def test_sensor_status(client, monkeypatch_transport, fake_sensor):
    connect(client)
    fake_sensor.status_byte = 0b11001000

    data = client.get("/sensor/status").json()

    assert data["opmode"] is True
    assert data["error"] is True
    assert data["validity"] == "startup"


def test_firmware(client, monkeypatch_transport, fake_sensor):
    connect(client)

    response = client.get("/firmware")

    assert response.json() == {"firmware": "5.4.6"}
    assert fake_sensor.opmode == protocol.MODE_STANDARD


def test_get_and_set_mode(client, monkeypatch_transport, fake_sensor):
    connect(client)
    assert client.get("/mode").json() == {"mode": 2, "name": "standard"}

    response = client.put("/mode", json={"mode": "idle"})

    assert response.status_code == 200
    assert fake_sensor.opmode == protocol.MODE_IDLE
    assert client.get("/mode").json() == {"mode": 1, "name": "idle"}


def test_get_mode_unknown_value(client, monkeypatch_transport, fake_sensor):
    connect(client)
    fake_sensor.opmode = 0x7F

    assert client.get("/mode").json() == {"mode": 0x7F, "name": None}


def test_set_mode_invalid_name(client, monkeypatch_transport):
    connect(client)
    response = client.put("/mode", json={"mode": "turbo"})
    assert response.status_code == 422


def test_compensation(client, monkeypatch_transport):
    connect(client)
    assert client.get("/compensation").json() == {"temperature_c": 25.5, "humidity_rh": 51.0}

    response = client.put("/compensation", json={"temperature_c": 21.0, "humidity_rh": 40.0})

    assert response.status_code == 200
    assert response.json() == {"temperature_c": 21.0, "humidity_rh": 40.0}


def test_compensation_partial_update(client, monkeypatch_transport):
    connect(client)

    response = client.put("/compensation", json={"humidity_rh": 30.0})

    assert response.json() == {"temperature_c": 25.5, "humidity_rh": 30.0}


def test_compensation_out_of_range(client, monkeypatch_transport):
    connect(client)
    response = client.put("/compensation", json={"humidity_rh": 200.0})
    assert response.status_code == 400


def test_compensation_overflowing_value(client, monkeypatch_transport, fake_sensor):
    connect(client)
    writes_before = len(fake_sensor.writes(protocol.REG_TEMP_IN))

    response = client.put("/compensation", json={"temperature_c": 1e308})

    assert response.status_code == 400
    assert len(fake_sensor.writes(protocol.REG_TEMP_IN)) == writes_before


def test_bus_error_maps_to_503(client, monkeypatch_transport, fake_sensor):
    connect(client)
    fake_sensor.fail_registers.add(protocol.REG_STATUS)

    response = client.get("/measurement")

    assert response.status_code == 503


# =============================================================================
# Recording
# =============================================================================

def test_recording_start_stop(client, monkeypatch_transport):
    connect(client)

    response = client.post("/recording/start?poll_interval_s=0.05")
    assert response.status_code == 200
    assert client.get("/status").json()["recording"] is True

    time.sleep(0.3)

    response = client.post("/recording/stop")
    assert response.status_code == 200
    assert response.json() == {"status": "stopped", "flush_path": None}

    latest = client.get("/latest").json()
    assert latest["eco2_ppm"] == 700
    assert len(client.get("/recent?seconds=60").json()["rows"]) >= 2
    assert client.get("/stats").json()["row_count"] >= 2


def test_recording_stop_with_flush(client, monkeypatch_transport, monkeypatch, tmp_path):
    monkeypatch.setattr(api_module, "RECORDING_PATH", str(tmp_path))
    connect(client)
    client.post("/recording/start?poll_interval_s=0.05")
    time.sleep(0.2)

    response = client.post("/recording/stop?flush=true")

    flush_path = response.json()["flush_path"]
    assert flush_path is not None
    assert flush_path.startswith(str(tmp_path))


def test_recording_double_start(client, monkeypatch_transport):
    connect(client)
    client.post("/recording/start?poll_interval_s=0.05")
    response = client.post("/recording/start?poll_interval_s=0.05")
    assert response.status_code == 400


def test_recording_stop_when_idle(client, monkeypatch_transport):
    connect(client)
    response = client.post("/recording/stop")
    assert response.status_code == 400


def test_recent_limits(client):
    assert client.get("/recent?seconds=301").status_code == 422
    assert client.get("/recent?seconds=10").json() == {"rows": []}
    assert client.get("/latest").json() == {}


def test_disconnect_stops_recorder(client, monkeypatch_transport):
    connect(client)
    client.post("/recording/start?poll_interval_s=0.05")

    client.post("/disconnect")

    assert client.get("/status").json()["recording"] is False


def test_recording_start_without_store(client, monkeypatch_transport):
    connect(client)
    api_module._store = None

    response = client.post("/recording/start?poll_interval_s=0.05")

    assert response.status_code == 503
