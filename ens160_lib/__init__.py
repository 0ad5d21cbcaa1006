"""
ens160_lib - Python driver for the ScioSense ENS160 digital metal-oxide gas sensor.

Talks to the sensor over I2C (smbus2) and exposes AQI, TVOC and eCO2 readings,
compensation inputs, status decoding and firmware version queries.
"""

from ens160_lib.controller import SensorController
from ens160_lib.errors import (
    BusError,
    DeviceNotDetected,
    ENS160Error,
    IdentityMismatch,
    InvalidCompensationValue,
    InvalidMode,
)
from ens160_lib.models import (
    FirmwareVersion,
    OperatingMode,
    Reading,
    StatusSnapshot,
    ValidityStatus,
)
from ens160_lib.synchronized import SynchronizedController

__version__ = "0.1.0"

__all__ = [
    "SensorController",
    "SynchronizedController",
    "OperatingMode",
    "ValidityStatus",
    "StatusSnapshot",
    "FirmwareVersion",
    "Reading",
    "ENS160Error",
    "BusError",
    "InvalidMode",
    "IdentityMismatch",
    "DeviceNotDetected",
    "InvalidCompensationValue",
]
