"""Pure functions for encoding and decoding ENS160 register contents."""

import math
import struct

from ens160_lib import protocol
from ens160_lib.errors import IdentityMismatch, InvalidCompensationValue
from ens160_lib.models import FirmwareVersion, StatusSnapshot, ValidityStatus


_UINT16_MAX = 0xFFFF

_VALIDITY_BY_CODE = {
    0: ValidityStatus.NORMAL,
    1: ValidityStatus.WARMUP,
    2: ValidityStatus.STARTUP,
    3: ValidityStatus.INVALID,
}


def _check_length(data: bytes, expected: int, what: str) -> None:
    if len(data) != expected:
        raise ValueError(f"{what} requires {expected} bytes, got {len(data)}")


def decode_uint_le(data: bytes) -> int:
    """Decode an unsigned little-endian integer of any width."""
    return int.from_bytes(data, byteorder="little", signed=False)


def decode_uint16_be(data: bytes) -> int:
    """Decode an unsigned big-endian 16-bit integer."""
    _check_length(data, 2, "uint16")
    return struct.unpack(">H", bytes(data))[0]


# ============================================================================
# Compensation
# ============================================================================


def encode_temperature(celsius: float) -> int:
    """Convert degrees Celsius to the TEMP_IN fixed-point value.

    The register holds Kelvin * 64. The product is rounded up, so the
    encoded value never reads back colder than requested.

    Args:
        celsius: Ambient temperature in degrees Celsius

    Returns:
        Unsigned 16-bit register value

    Raises:
        InvalidCompensationValue: If the value is not finite or does not fit 16 bits
    """
    scaled = (celsius + protocol.KELVIN_OFFSET) * protocol.TEMP_SCALE
    if not math.isfinite(scaled) or not (0 <= math.ceil(scaled) <= _UINT16_MAX):
        raise InvalidCompensationValue(
            f"Temperature {celsius} C is outside the encodable range"
        )
    return math.ceil(scaled)


def decode_temperature(raw: int) -> float:
    """Convert a TEMP readback value to degrees Celsius, one decimal."""
    return round(raw / protocol.TEMP_SCALE - protocol.KELVIN_OFFSET, 1)


def encode_humidity(percent: float) -> int:
    """Convert relative humidity in percent to the RH_IN fixed-point value.

    Args:
        percent: Relative humidity, 0-100

    Returns:
        Unsigned 16-bit register value (%RH * 512, rounded up)

    Raises:
        InvalidCompensationValue: If the value is not finite or does not fit 16 bits
    """
    scaled = percent * protocol.RH_SCALE
    if not math.isfinite(scaled) or not (0 <= math.ceil(scaled) <= _UINT16_MAX):
        raise InvalidCompensationValue(
            f"Humidity {percent} %RH is outside the encodable range"
        )
    return math.ceil(scaled)


def decode_humidity(raw: int) -> float:
    """Convert an RH readback value to percent relative humidity, one decimal."""
    return round(raw / protocol.RH_SCALE, 1)


def pack_compensation(raw: int) -> bytes:
    """Pack a compensation value for TEMP_IN/RH_IN (little-endian)."""
    return struct.pack("<H", raw)


def unpack_compensation_readback(data: bytes) -> int:
    """Unpack a TEMP/RH readback register.

    The readback registers are decoded big-endian, unlike the little-endian
    input registers. Keep the asymmetry.
    """
    return decode_uint16_be(data)


# ============================================================================
# Status / Identity / Firmware
# ============================================================================


def decode_status(value: int) -> StatusSnapshot:
    """Decode a DEVICE_STATUS byte.

    Args:
        value: Raw status byte (0-255)

    Returns:
        StatusSnapshot with flags and validity. Unknown validity codes
        decode to ValidityStatus.INVALID.
    """
    code = (value >> protocol.STATUS_VALIDITY_SHIFT) & protocol.STATUS_VALIDITY_MASK
    return StatusSnapshot(
        opmode=bool(value & (1 << protocol.STATUS_BIT_STATAS)),
        error=bool(value & (1 << protocol.STATUS_BIT_STATER)),
        validity=_VALIDITY_BY_CODE.get(code, ValidityStatus.INVALID),
        new_data=bool(value & (1 << protocol.STATUS_BIT_NEWDAT)),
        new_gpr=bool(value & (1 << protocol.STATUS_BIT_NEWGPR)),
    )


def verify_part_id(data: bytes) -> int:
    """Check a PART_ID read against the ENS160 part ID.

    Args:
        data: 2 bytes read from PART_ID

    Returns:
        The decoded part ID

    Raises:
        IdentityMismatch: If the bytes do not decode to 0x0160
    """
    part_id = decode_uint_le(data)
    if len(data) != protocol.LEN_PART_ID or part_id != protocol.ENS160_PARTID:
        raise IdentityMismatch(
            f"Expected part ID 0x{protocol.ENS160_PARTID:04X}, got {bytes(data).hex()}"
        )
    return part_id


def decode_firmware_version(gpr: bytes) -> FirmwareVersion:
    """Extract the application version from a GPR bank read after GETAPPVER.

    Raises:
        ValueError: If the bank is not 8 bytes
    """
    _check_length(gpr, protocol.LEN_GPR, "GPR bank")
    return FirmwareVersion(
        major=gpr[protocol.GPR_VERSION_MAJOR],
        minor=gpr[protocol.GPR_VERSION_MINOR],
        patch=gpr[protocol.GPR_VERSION_PATCH],
    )
