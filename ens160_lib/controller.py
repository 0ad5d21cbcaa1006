"""High-level controller implementing the ENS160 register protocol."""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Union

from ens160_lib import parsing, protocol
from ens160_lib.errors import (
    BusError,
    DeviceNotDetected,
    ENS160Error,
    IdentityMismatch,
    InvalidMode,
)
from ens160_lib.models import (
    FirmwareVersion,
    OperatingMode,
    Reading,
    StatusSnapshot,
)
from ens160_lib.transport import BusLike, Transport

logger = logging.getLogger(__name__)


class SensorController:
    """Controller for one ENS160 on an I2C bus.

    Drives the operating mode state machine, the command/response protocol
    over the general purpose registers, compensation inputs and measurement
    reads. Not thread-safe: wrap in SynchronizedController when the same
    instance is shared between threads.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize controller.

        Args:
            transport: Optional pre-configured Transport instance.
                      If None, must call connect() to create one.
            sleep: Delay primitive used for device settle times.
        """
        self._transport = transport
        self._sleep = sleep
        self._initialized = False

    @classmethod
    def open(
        cls, bus_number: int = 1, address: int = protocol.ENS160_I2CADDR
    ) -> "SensorController":
        """Open an I2C bus and bring the sensor into STANDARD mode.

        Args:
            bus_number: I2C bus number
            address: 7-bit device address

        Returns:
            Initialized controller

        Raises:
            BusError: If the bus cannot be opened or a transfer fails
            DeviceNotDetected: If no ENS160 answers at address
        """
        controller = cls()
        controller.connect(bus_number=bus_number, address=address)
        return controller

    # ========================================================================
    # Connection Management
    # ========================================================================

    def connect(
        self,
        bus_number: Optional[int] = None,
        address: int = protocol.ENS160_I2CADDR,
        bus: Optional[BusLike] = None,
    ) -> None:
        """Attach to the sensor and run the initialization sequence.

        Args:
            bus_number: I2C bus number. Required if bus not given.
            address: 7-bit device address.
            bus: Pre-opened bus object (for testing). If provided,
                 bus_number is ignored.

        A bus opened from bus_number is closed again if initialization fails.

        Raises:
            BusError: If the bus cannot be opened or a transfer fails
            DeviceNotDetected: If the identity check fails
        """
        if self._transport is not None and self._transport.is_open:
            raise BusError("Already connected")

        if bus is not None:
            self._transport = Transport(bus, address)
        elif bus_number is not None:
            self._transport = Transport.open(bus_number, address)
        else:
            raise ValueError("Must provide either 'bus_number' or 'bus'")

        try:
            self.initialize()
        except ENS160Error:
            # A bus opened here has no other owner
            if bus is None:
                self.disconnect()
            raise

    def disconnect(self) -> None:
        """Close the bus and mark the controller unusable."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        self._initialized = False
        logger.info("Disconnected")

    def is_connected(self) -> bool:
        """Check if a bus handle is attached and open."""
        return self._transport is not None and self._transport.is_open

    @property
    def is_initialized(self) -> bool:
        """True once initialize() has completed without error."""
        return self._initialized

    # ========================================================================
    # Initialization
    # ========================================================================

    def initialize(
        self,
        temperature_c: float = protocol.DEFAULT_TEMPERATURE_C,
        humidity_rh: float = protocol.DEFAULT_HUMIDITY_RH,
    ) -> None:
        """Bring the sensor from power-on to continuous measurement.

        Sequence: startup wait, RESET, identity check, IDLE, clear GPR,
        STANDARD, default compensation. On any failure the controller stays
        uninitialized and the whole sequence must be run again.

        Args:
            temperature_c: Ambient temperature compensation to apply
            humidity_rh: Relative humidity compensation to apply

        Raises:
            BusError: If a transfer fails
            DeviceNotDetected: If the PART_ID check fails
        """
        self._initialized = False
        logger.info("Initializing ENS160...")

        self._sleep(protocol.STARTUP_DELAY)
        self.reset()

        try:
            self.check()
        except IdentityMismatch as e:
            raise DeviceNotDetected(f"Could not detect ENS160: {e}") from e

        self.set_mode(OperatingMode.IDLE)
        self.clear_command()
        self.set_mode(OperatingMode.STANDARD)

        self.set_temperature_compensation(temperature_c)
        self.set_humidity_compensation(humidity_rh)

        self._initialized = True
        logger.info("ENS160 initialized in STANDARD mode")

    def reset(self) -> None:
        """Soft-reset the device via OPMODE."""
        self.set_mode(OperatingMode.RESET)

    def check(self) -> int:
        """Verify the device identity.

        Returns:
            Part ID read from the device

        Raises:
            IdentityMismatch: If PART_ID is not 0x0160
            BusError: If the read fails
        """
        data = self._read(protocol.REG_PART_ID, protocol.LEN_PART_ID)
        part_id = parsing.verify_part_id(data)
        logger.debug(f"Part ID 0x{part_id:04X} confirmed")
        return part_id

    # ========================================================================
    # Operating Mode
    # ========================================================================

    def set_mode(self, mode: Union[OperatingMode, int]) -> None:
        """Write OPMODE and wait for the device to settle.

        Args:
            mode: Target mode (SLEEP, IDLE, STANDARD or RESET)

        Raises:
            InvalidMode: If mode is not a valid OPMODE value (no bus access)
            BusError: If the write fails
        """
        if mode not in protocol.VALID_MODES:
            raise InvalidMode(f"Invalid mode: {mode!r}")

        value = int(mode)
        self._write(protocol.REG_OPMODE, bytes([value]))
        self._sleep(protocol.MODE_SETTLE_DELAY)
        logger.debug(f"Mode set to 0x{value:02X}")

    def get_mode(self) -> int:
        """Read OPMODE.

        Returns:
            Raw register value. Not validated; compare against OperatingMode.
        """
        data = self._read(protocol.REG_OPMODE, protocol.LEN_OPMODE)
        return data[0]

    # ========================================================================
    # Command / Response
    # ========================================================================

    def clear_command(self) -> None:
        """Flush the general purpose registers (NOP, then CLRGPR).

        Only valid in IDLE. Both writes are required, in this order.
        """
        self._write_command(protocol.COMMAND_NOP)
        self._write_command(protocol.COMMAND_CLRGPR)
        self._sleep(protocol.COMMAND_SETTLE_DELAY)

    def read_gpr(self) -> bytes:
        """Read the 8-byte general purpose register bank."""
        return self._read(protocol.REG_GPR_READ, protocol.LEN_GPR)

    def firmware_version(self) -> FirmwareVersion:
        """Query the application firmware version.

        Switches to IDLE for the command exchange and restores the previous
        mode afterwards, on failure as well.

        Returns:
            FirmwareVersion; str() gives "major.minor.patch"
        """
        with self._mode_preserved():
            self.set_mode(OperatingMode.IDLE)
            self.clear_command()
            self._sleep(protocol.COMMAND_SETTLE_DELAY)
            self._write_command(protocol.COMMAND_GETAPPVER)
            gpr = self.read_gpr()

        version = parsing.decode_firmware_version(gpr)
        logger.info(f"Firmware version {version}")
        return version

    @contextmanager
    def _mode_preserved(self) -> Iterator[int]:
        """Save OPMODE on entry and write it back on every exit path."""
        saved = self.get_mode()
        logger.debug(f"Saved mode 0x{saved:02X}")
        try:
            yield saved
        finally:
            self.set_mode(saved)
            logger.debug(f"Restored mode 0x{saved:02X}")

    # ========================================================================
    # Compensation
    # ========================================================================

    def set_temperature_compensation(self, celsius: float) -> None:
        """Write ambient temperature (degrees C) to TEMP_IN.

        Raises:
            InvalidCompensationValue: If celsius cannot be encoded
        """
        raw = parsing.encode_temperature(celsius)
        self._write(protocol.REG_TEMP_IN, parsing.pack_compensation(raw))
        logger.debug(f"Temperature compensation {celsius} C (raw {raw})")

    def set_humidity_compensation(self, percent: float) -> None:
        """Write ambient relative humidity (%) to RH_IN.

        Raises:
            InvalidCompensationValue: If percent cannot be encoded
        """
        raw = parsing.encode_humidity(percent)
        self._write(protocol.REG_RH_IN, parsing.pack_compensation(raw))
        logger.debug(f"Humidity compensation {percent} %RH (raw {raw})")

    def get_temperature_compensation(self) -> float:
        """Temperature the device uses in its calculations, degrees C."""
        data = self._read(protocol.REG_TEMP_READBACK, protocol.LEN_COMPENSATION)
        return parsing.decode_temperature(parsing.unpack_compensation_readback(data))

    def get_humidity_compensation(self) -> float:
        """Relative humidity the device uses in its calculations, percent."""
        data = self._read(protocol.REG_RH_READBACK, protocol.LEN_COMPENSATION)
        return parsing.decode_humidity(parsing.unpack_compensation_readback(data))

    # ========================================================================
    # Measurements
    # ========================================================================

    def aqi(self) -> int:
        """UBA air quality index (1-5)."""
        return parsing.decode_uint_le(self._read(protocol.REG_AQI, protocol.LEN_AQI))

    def tvoc(self) -> int:
        """Total volatile organic compounds in ppb (0-65000)."""
        return parsing.decode_uint_le(self._read(protocol.REG_TVOC, protocol.LEN_TVOC))

    def eco2(self) -> int:
        """Equivalent CO2 in ppm (400-65000)."""
        return parsing.decode_uint_le(self._read(protocol.REG_ECO2, protocol.LEN_ECO2))

    def status(self) -> StatusSnapshot:
        """Read and decode DEVICE_STATUS."""
        data = self._read(protocol.REG_STATUS, protocol.LEN_STATUS)
        return parsing.decode_status(data[0])

    def read_measurement(self) -> Reading:
        """Read status, AQI, TVOC and eCO2 as one Reading."""
        status = self.status()
        reading = Reading(
            ts=datetime.now(timezone.utc),
            aqi=self.aqi(),
            tvoc_ppb=self.tvoc(),
            eco2_ppm=self.eco2(),
            validity=status.validity,
            error=status.error,
        )
        logger.debug(f"Measurement: {reading}")
        return reading

    # ========================================================================
    # Internal Helpers: Register I/O
    # ========================================================================

    def _write_command(self, command: int) -> None:
        self._write(protocol.REG_COMMAND, bytes([command]))

    def _write(self, register: int, data: bytes) -> None:
        self._require_transport().write_register(register, data)

    def _read(self, register: int, length: int) -> bytes:
        return self._require_transport().read_register(register, length)

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise BusError("Not connected (call connect() first)")
        return self._transport
