"""Register map, command bytes and timing for the ENS160 MOX gas sensor.

Values follow the ScioSense ENS160 datasheet register map. Multi-byte input
registers are little-endian.
"""

from typing import Final

# ============================================================================
# Bus Addressing
# ============================================================================

# 7-bit I2C address with ADDR pin high (Adafruit breakout default)
ENS160_I2CADDR: Final[int] = 0x53

# Expected contents of PART_ID (little-endian 16-bit)
ENS160_PARTID: Final[int] = 0x0160

# ============================================================================
# Register Map
# ============================================================================

REG_PART_ID: Final[int] = 0x00  # 2 bytes, R
REG_OPMODE: Final[int] = 0x10  # 1 byte, R/W
REG_COMMAND: Final[int] = 0x12  # 1 byte, W
REG_TEMP_IN: Final[int] = 0x13  # 2 bytes, W
REG_RH_IN: Final[int] = 0x15  # 2 bytes, W
REG_STATUS: Final[int] = 0x20  # 1 byte, R
REG_AQI: Final[int] = 0x21  # 1 byte, R
REG_TVOC: Final[int] = 0x22  # 2 bytes, R
REG_ECO2: Final[int] = 0x24  # 2 bytes, R
REG_TEMP_READBACK: Final[int] = 0x30  # 2 bytes, R
REG_RH_READBACK: Final[int] = 0x32  # 2 bytes, R
REG_GPR_READ: Final[int] = 0x48  # 8 bytes, R

# Read widths per register
LEN_PART_ID: Final[int] = 2
LEN_OPMODE: Final[int] = 1
LEN_STATUS: Final[int] = 1
LEN_AQI: Final[int] = 1
LEN_TVOC: Final[int] = 2
LEN_ECO2: Final[int] = 2
LEN_COMPENSATION: Final[int] = 2
LEN_GPR: Final[int] = 8

# ============================================================================
# Operating Modes (OPMODE register values)
# ============================================================================

MODE_SLEEP: Final[int] = 0x00
MODE_IDLE: Final[int] = 0x01
MODE_STANDARD: Final[int] = 0x02
MODE_RESET: Final[int] = 0xF0

VALID_MODES: Final[frozenset[int]] = frozenset(
    {MODE_SLEEP, MODE_IDLE, MODE_STANDARD, MODE_RESET}
)

# ============================================================================
# Commands (COMMAND register values, only accepted in IDLE)
# ============================================================================

COMMAND_NOP: Final[int] = 0x00
COMMAND_GETAPPVER: Final[int] = 0x0E
COMMAND_CLRGPR: Final[int] = 0xCC

# GPR offsets holding the firmware version after GETAPPVER
GPR_VERSION_MAJOR: Final[int] = 4
GPR_VERSION_MINOR: Final[int] = 5
GPR_VERSION_PATCH: Final[int] = 6

# ============================================================================
# Status Register Layout
# ============================================================================

STATUS_BIT_STATAS: Final[int] = 7  # an operating mode is running
STATUS_BIT_STATER: Final[int] = 6  # error detected
STATUS_VALIDITY_SHIFT: Final[int] = 2  # bits 3-2
STATUS_VALIDITY_MASK: Final[int] = 0x03
STATUS_BIT_NEWDAT: Final[int] = 1
STATUS_BIT_NEWGPR: Final[int] = 0

# ============================================================================
# Compensation Fixed-Point Scales
# ============================================================================

KELVIN_OFFSET: Final[float] = 273.15
TEMP_SCALE: Final[float] = 64.0  # Kelvin * 64
RH_SCALE: Final[float] = 512.0  # %RH * 512

# Ambient defaults applied at the end of initialization
DEFAULT_TEMPERATURE_C: Final[float] = 25.5
DEFAULT_HUMIDITY_RH: Final[float] = 51.0

# ============================================================================
# Timing Constants (seconds)
# ============================================================================

# Power rail stabilization before first access
STARTUP_DELAY: Final[float] = 0.020

# Settle time after an OPMODE write
MODE_SETTLE_DELAY: Final[float] = 0.010

# Settle time after clearing the general purpose registers, and before
# issuing a command that fills them
COMMAND_SETTLE_DELAY: Final[float] = 0.010
