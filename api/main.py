"""FastAPI REST interface for a single ENS160 gas sensor.

Single-process, single-sensor lifecycle with thread-safe access to:
- SynchronizedController (I2C register protocol)
- DataStore (pandas DataFrame storage)
- DataRecorder (background polling thread)

Error mapping:
- InvalidMode, InvalidCompensationValue → 400
- DeviceNotDetected, IdentityMismatch → 404
- BusError → 503
- Not connected → 503
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from threading import RLock
from typing import Literal, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from data_store import DataRecorder, DataStore, reading_to_row
from ens160_lib import SensorController, SynchronizedController
from ens160_lib.errors import (
    BusError,
    DeviceNotDetected,
    ENS160Error,
    IdentityMismatch,
    InvalidCompensationValue,
    InvalidMode,
)
from ens160_lib.models import OperatingMode
from ens160_lib.transport import Transport

# =============================================================================
# Environment Configuration
# =============================================================================

DEFAULT_I2C_BUS = int(os.getenv("ENS160_I2C_BUS", "1"))
DEFAULT_I2C_ADDRESS = int(os.getenv("ENS160_I2C_ADDRESS", "0x53"), 0)
RECORDER_POLL_INTERVAL_S = float(os.getenv("RECORDER_POLL_INTERVAL_S", "1.0"))
RECORDING_PATH = os.getenv("RECORDING_PATH", "/data/ens160_recordings")
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
).split(",")

API_VERSION = "0.1.0"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# =============================================================================
# Global Singletons
# =============================================================================

_controller: Optional[SynchronizedController] = None
_store: Optional[DataStore] = None
_recorder: Optional[DataRecorder] = None
_lock = RLock()  # Protects connect/disconnect and recorder lifecycle

# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="ENS160 API",
    description="REST interface for the ScioSense ENS160 air quality sensor",
    version=API_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Request/Response Models
# =============================================================================


class ConnectResponse(BaseModel):
    """Response for POST /connect."""
    status: str
    bus: int
    address: int


class StatusResponse(BaseModel):
    """Response for GET /status."""
    connected: bool
    initialized: bool
    recording: bool
    rows: int


class ModeRequest(BaseModel):
    """Request body for PUT /mode."""
    mode: Literal["sleep", "idle", "standard", "reset"]


class CompensationRequest(BaseModel):
    """Request body for PUT /compensation. Only provided fields are written."""
    temperature_c: Optional[float] = None
    humidity_rh: Optional[float] = None


class CompensationResponse(BaseModel):
    """Response for GET/PUT /compensation."""
    temperature_c: float
    humidity_rh: float


class RecordingStopResponse(BaseModel):
    """Response for POST /recording/stop."""
    status: str
    flush_path: Optional[str]


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(status_code: int, exc: ENS160Error) -> JSONResponse:
    logger.error(f"{type(exc).__name__}: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(InvalidMode)
async def invalid_mode_handler(request: Request, exc: InvalidMode):
    """Map InvalidMode to 400 Bad Request."""
    return _error_response(400, exc)


@app.exception_handler(InvalidCompensationValue)
async def invalid_compensation_handler(request: Request, exc: InvalidCompensationValue):
    """Map InvalidCompensationValue to 400 Bad Request."""
    return _error_response(400, exc)


@app.exception_handler(DeviceNotDetected)
async def device_not_detected_handler(request: Request, exc: DeviceNotDetected):
    """Map DeviceNotDetected to 404 Not Found."""
    return _error_response(404, exc)


@app.exception_handler(IdentityMismatch)
async def identity_mismatch_handler(request: Request, exc: IdentityMismatch):
    """Map IdentityMismatch to 404 Not Found."""
    return _error_response(404, exc)


@app.exception_handler(BusError)
async def bus_error_handler(request: Request, exc: BusError):
    """Map BusError to 503 Service Unavailable."""
    return _error_response(503, exc)


def _require_controller() -> SynchronizedController:
    if _controller is None:
        raise HTTPException(status_code=503, detail="Not connected")
    return _controller


# =============================================================================
# Read-Only Endpoints
# =============================================================================


@app.get("/")
async def root():
    """Service health check."""
    return {"service": "ENS160 API", "status": "online", "version": API_VERSION}


@app.get("/status", response_model=StatusResponse)
async def get_status():
    """Connection, initialization and recording state."""
    connected = _controller is not None and _controller.is_connected()
    return StatusResponse(
        connected=connected,
        initialized=connected and _controller.is_initialized,
        recording=_recorder is not None and _recorder.is_running(),
        rows=len(_store.get_dataframe()) if _store else 0,
    )


@app.get("/latest")
async def get_latest():
    """Most recent recorded row, or {} if nothing is recorded."""
    if not _store:
        return {}
    return _store.get_latest() or {}


@app.get("/recent")
async def get_recent(seconds: int = Query(60, ge=1, le=300)):
    """Recorded rows from the last N seconds (1-300)."""
    if not _store:
        return {"rows": []}
    return {"rows": _store.get_recent(seconds=seconds).to_dict(orient="records")}


@app.get("/stats")
async def get_stats():
    """Summary statistics over recorded rows."""
    if not _store:
        return DataStore().get_stats()
    return _store.get_stats()


# =============================================================================
# Sensor Endpoints (blocking I2C, run in the threadpool)
# =============================================================================


@app.get("/measurement")
def get_measurement():
    """Read AQI, TVOC, eCO2 and validity directly from the sensor."""
    reading = _require_controller().read_measurement()
    return reading_to_row(reading)


@app.get("/sensor/status")
def get_sensor_status():
    """Decoded DEVICE_STATUS register."""
    snapshot = _require_controller().status()
    return {
        "opmode": snapshot.opmode,
        "error": snapshot.error,
        "validity": snapshot.validity.value,
        "new_data": snapshot.new_data,
        "new_gpr": snapshot.new_gpr,
    }


@app.get("/firmware")
def get_firmware():
    """Application firmware version (briefly switches the sensor to IDLE)."""
    return {"firmware": str(_require_controller().firmware_version())}


@app.get("/mode")
def get_mode():
    """Current OPMODE value, with its name when it is a known mode."""
    raw = _require_controller().get_mode()
    try:
        name: Optional[str] = OperatingMode(raw).name.lower()
    except ValueError:
        name = None
    return {"mode": raw, "name": name}


@app.put("/mode")
def put_mode(request: ModeRequest):
    """Switch operating mode."""
    mode = OperatingMode[request.mode.upper()]
    logger.info(f"Setting mode to {mode.name}")
    _require_controller().set_mode(mode)
    return {"mode": int(mode), "name": request.mode}


@app.get("/compensation", response_model=CompensationResponse)
def get_compensation():
    """Temperature and humidity the sensor uses in its calculations."""
    controller = _require_controller()
    with controller.lock:
        return CompensationResponse(
            temperature_c=controller.get_temperature_compensation(),
            humidity_rh=controller.get_humidity_compensation(),
        )


@app.put("/compensation", response_model=CompensationResponse)
def put_compensation(request: CompensationRequest):
    """Write ambient temperature and/or humidity compensation."""
    controller = _require_controller()
    with controller.lock:
        if request.temperature_c is not None:
            logger.info(f"Setting temperature compensation to {request.temperature_c} C")
            controller.set_temperature_compensation(request.temperature_c)
        if request.humidity_rh is not None:
            logger.info(f"Setting humidity compensation to {request.humidity_rh} %RH")
            controller.set_humidity_compensation(request.humidity_rh)
        return get_compensation()


# =============================================================================
# Lifecycle Endpoints
# =============================================================================


@app.post("/connect", response_model=ConnectResponse)
def connect(
    bus: int = Query(DEFAULT_I2C_BUS, description="I2C bus number (e.g., 1 for /dev/i2c-1)"),
    address: int = Query(DEFAULT_I2C_ADDRESS, description="7-bit device address"),
):
    """Open the I2C bus and run the sensor initialization sequence.

    Raises:
        400: If already connected
        404: If no ENS160 answers (DeviceNotDetected)
        503: If the bus cannot be opened (BusError)
    """
    global _controller, _store

    with _lock:
        if _controller is not None:
            raise HTTPException(status_code=400, detail="Already connected. Disconnect first.")

        logger.info(f"Connecting to ENS160 on bus {bus} at 0x{address:02X}...")
        transport = Transport.open(bus, address)
        controller = SensorController(transport)
        try:
            controller.initialize()
        except ENS160Error:
            transport.close()
            raise

        _controller = SynchronizedController(controller)
        _store = DataStore(max_rows=100000)

        logger.info("ENS160 connected and initialized")
        return ConnectResponse(status="connected", bus=bus, address=address)


@app.post("/disconnect")
def disconnect():
    """Stop the recorder (if running) and close the bus."""
    global _controller, _recorder

    with _lock:
        if _recorder and _recorder.is_running():
            _recorder.stop()
        _recorder = None

        if _controller is not None:
            _controller.disconnect()
            _controller = None

        logger.info("Disconnected")
        return {"status": "disconnected"}


@app.post("/recording/start")
def start_recording(
    poll_interval_s: float = Query(RECORDER_POLL_INTERVAL_S, gt=0, le=60),
):
    """Start background polling into the DataStore."""
    global _recorder

    controller = _require_controller()
    with _lock:
        if _recorder and _recorder.is_running():
            raise HTTPException(status_code=400, detail="Recording already running")

        if _store is None:
            raise HTTPException(status_code=503, detail="Not connected")
        _recorder = DataRecorder(controller, _store, poll_interval_s=poll_interval_s)
        _recorder.start()
        return {"status": "recording", "poll_interval_s": poll_interval_s}


@app.post("/recording/stop", response_model=RecordingStopResponse)
def stop_recording(flush: bool = Query(False, description="Export recorded rows to CSV")):
    """Stop background polling, optionally exporting rows to RECORDING_PATH."""
    global _recorder

    with _lock:
        if not _recorder or not _recorder.is_running():
            raise HTTPException(status_code=400, detail="Recording not running")

        flush_path = None
        if flush:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            flush_path = str(Path(RECORDING_PATH) / f"ens160_{timestamp}.csv")

        exported = _recorder.stop(flush_path=flush_path)
        _recorder = None
        return RecordingStopResponse(status="stopped", flush_path=exported)


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up resources on shutdown."""
    logger.info("Shutting down ENS160 API...")
    disconnect()
    logger.info("Shutdown complete")
