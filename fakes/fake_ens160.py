"""Fake I2C bus that simulates an ENS160 at the register level.

Implements the subset of the smbus2.SMBus interface used by Transport, so a
SensorController can be driven end to end without hardware. Every transfer
is recorded for ordering assertions.
"""

import errno
import logging
import struct
from typing import List, Optional, Sequence, Set, Tuple

from ens160_lib import protocol

logger = logging.getLogger(__name__)

# (kind, register, payload) where kind is "read" or "write"
BusOp = Tuple[str, int, bytes]


class FakeENS160:
    """Deterministic simulator of ENS160 register behavior.

    Simulates:
    - PART_ID, OPMODE echo and soft reset
    - COMMAND handling (NOP, CLRGPR, GET_APPVER), honored only in IDLE
    - TEMP_IN/RH_IN writes mirrored into the readback registers
      (stored big-endian, as the driver decodes them)
    - STATUS, AQI, TVOC and eCO2 registers set from attributes
    - NACKs for wrong addresses, injected I/O failures and short reads
    """

    def __init__(
        self,
        address: int = protocol.ENS160_I2CADDR,
        part_id: int = protocol.ENS160_PARTID,
        firmware: Tuple[int, int, int] = (5, 4, 6),
    ) -> None:
        """Initialize fake sensor.

        Args:
            address: 7-bit address the device answers on
            part_id: Value reported by PART_ID
            firmware: (major, minor, patch) returned by GET_APPVER
        """
        self.address = address
        self.part_id = part_id
        self.firmware = firmware

        # Measurement registers
        self.status_byte = 0x80  # STATAS set, validity NORMAL
        self.aqi = 1
        self.tvoc_ppb = 0
        self.eco2_ppm = 400

        # Register file
        self.opmode = protocol.MODE_SLEEP
        self.gpr = bytearray(protocol.LEN_GPR)
        self.temp_readback = bytes(2)
        self.rh_readback = bytes(2)

        # Fault injection
        self.fail_registers: Set[int] = set()
        self.short_read_registers: Set[int] = set()

        self.log: List[BusOp] = []
        self.ignored_commands: List[int] = []
        self.is_open = True

    # ========================================================================
    # smbus2.SMBus interface
    # ========================================================================

    def read_i2c_block_data(self, i2c_addr: int, register: int, length: int) -> List[int]:
        self._check_access(i2c_addr, register)

        data = self._read_register(register, length)
        if register in self.short_read_registers:
            data = data[:-1]

        self.log.append(("read", register, data))
        logger.debug(f"FakeENS160 read 0x{register:02X}: {data.hex()}")
        return list(data)

    def write_i2c_block_data(self, i2c_addr: int, register: int, data: Sequence[int]) -> None:
        self._check_access(i2c_addr, register)

        payload = bytes(data)
        self.log.append(("write", register, payload))
        logger.debug(f"FakeENS160 write 0x{register:02X}: {payload.hex()}")
        self._write_register(register, payload)

    def close(self) -> None:
        self.is_open = False

    # ========================================================================
    # Inspection helpers for tests
    # ========================================================================

    def writes(self, register: Optional[int] = None) -> List[BusOp]:
        """Recorded writes, optionally filtered by register."""
        return [
            op for op in self.log
            if op[0] == "write" and (register is None or op[1] == register)
        ]

    def mode_history(self) -> List[int]:
        """Every value written to OPMODE, in order."""
        return [op[2][0] for op in self.writes(protocol.REG_OPMODE)]

    def command_history(self) -> List[int]:
        """Every value written to COMMAND, in order."""
        return [op[2][0] for op in self.writes(protocol.REG_COMMAND)]

    def set_validity(self, code: int) -> None:
        """Set STATUS bits 3-2, keeping the other bits."""
        self.status_byte = (self.status_byte & ~0x0C) | ((code & 0x03) << 2)

    # ========================================================================
    # Internal: Register Behavior
    # ========================================================================

    def _check_access(self, i2c_addr: int, register: int) -> None:
        if not self.is_open:
            raise OSError(errno.EBADF, "Bus is closed")
        if i2c_addr != self.address:
            raise OSError(errno.ENXIO, f"No device at 0x{i2c_addr:02X}")
        if register in self.fail_registers:
            raise OSError(errno.EIO, "Remote I/O error")

    def _read_register(self, register: int, length: int) -> bytes:
        if register == protocol.REG_PART_ID:
            value = struct.pack("<H", self.part_id)
        elif register == protocol.REG_OPMODE:
            value = bytes([self.opmode])
        elif register == protocol.REG_STATUS:
            value = bytes([self.status_byte])
        elif register == protocol.REG_AQI:
            value = bytes([self.aqi])
        elif register == protocol.REG_TVOC:
            value = struct.pack("<H", self.tvoc_ppb)
        elif register == protocol.REG_ECO2:
            value = struct.pack("<H", self.eco2_ppm)
        elif register == protocol.REG_TEMP_READBACK:
            value = self.temp_readback
        elif register == protocol.REG_RH_READBACK:
            value = self.rh_readback
        elif register == protocol.REG_GPR_READ:
            value = bytes(self.gpr)
        else:
            value = b""

        # Unmapped bytes read as zero
        return value[:length].ljust(length, b"\x00")

    def _write_register(self, register: int, payload: bytes) -> None:
        if register == protocol.REG_OPMODE:
            self._set_opmode(payload[0])
        elif register == protocol.REG_COMMAND:
            self._run_command(payload[0])
        elif register == protocol.REG_TEMP_IN:
            self.temp_readback = self._mirror_compensation(payload)
        elif register == protocol.REG_RH_IN:
            self.rh_readback = self._mirror_compensation(payload)

    def _set_opmode(self, value: int) -> None:
        if value == protocol.MODE_RESET:
            self.gpr = bytearray(protocol.LEN_GPR)
        self.opmode = value

    def _run_command(self, command: int) -> None:
        if self.opmode != protocol.MODE_IDLE:
            self.ignored_commands.append(command)
            return

        if command == protocol.COMMAND_CLRGPR:
            self.gpr = bytearray(protocol.LEN_GPR)
        elif command == protocol.COMMAND_GETAPPVER:
            self.gpr[protocol.GPR_VERSION_MAJOR] = self.firmware[0]
            self.gpr[protocol.GPR_VERSION_MINOR] = self.firmware[1]
            self.gpr[protocol.GPR_VERSION_PATCH] = self.firmware[2]

    @staticmethod
    def _mirror_compensation(payload: bytes) -> bytes:
        (raw,) = struct.unpack("<H", payload[:2].ljust(2, b"\x00"))
        return struct.pack(">H", raw)
