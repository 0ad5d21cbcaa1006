"""Data models for the ENS160 sensor library."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum

from ens160_lib import protocol


class OperatingMode(IntEnum):
    """Values accepted by the OPMODE register."""

    SLEEP = protocol.MODE_SLEEP
    IDLE = protocol.MODE_IDLE
    STANDARD = protocol.MODE_STANDARD
    RESET = protocol.MODE_RESET


class ValidityStatus(Enum):
    """Validity flag reported in STATUS bits 3-2."""

    NORMAL = "normal"
    WARMUP = "warmup"
    STARTUP = "startup"
    INVALID = "invalid"


@dataclass(frozen=True)
class StatusSnapshot:
    """Decoded DEVICE_STATUS byte.

    Attributes:
        opmode: True while an operating mode is running (STATAS, bit 7).
        error: True if the device detected an error (STATER, bit 6).
        validity: Validity of the current measurement (bits 3-2).
        new_data: New data available in the DATA_x registers (bit 1).
        new_gpr: New data available in the GPR_READx registers (bit 0).
    """

    opmode: bool
    error: bool
    validity: ValidityStatus
    new_data: bool = False
    new_gpr: bool = False


@dataclass(frozen=True)
class FirmwareVersion:
    """Application firmware version reported by GET_APPVER."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass
class Reading:
    """A single measurement cycle read from the sensor.

    Attributes:
        ts: UTC timestamp taken when the registers were read.
        aqi: UBA air quality index (1-5 documented, not enforced).
        tvoc_ppb: Total volatile organic compounds in ppb.
        eco2_ppm: Equivalent CO2 in ppm.
        validity: Validity flag from the status read that preceded the data.
        error: Error flag from the same status read.
    """

    ts: datetime
    aqi: int
    tvoc_ppb: int
    eco2_ppm: int
    validity: ValidityStatus
    error: bool = False
