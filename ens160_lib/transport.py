"""I2C transport layer for ENS160 register access."""

import logging
from typing import List, Protocol, Sequence

from smbus2 import SMBus

from ens160_lib import protocol
from ens160_lib.errors import BusError

logger = logging.getLogger(__name__)


class BusLike(Protocol):
    """Protocol for the I2C bus interface (allows test doubles).

    Matches the subset of ``smbus2.SMBus`` used by the driver.
    """

    def read_i2c_block_data(self, i2c_addr: int, register: int, length: int) -> List[int]:
        """Read a block of bytes starting at register."""
        ...

    def write_i2c_block_data(self, i2c_addr: int, register: int, data: Sequence[int]) -> None:
        """Write a block of bytes starting at register."""
        ...

    def close(self) -> None:
        """Release the bus."""
        ...


class Transport:
    """Register-oriented gateway to one device on an I2C bus.

    Every call is a single bus transaction. Failures surface immediately as
    BusError; there is no retry or timeout handling at this level.
    """

    def __init__(self, bus: BusLike, address: int = protocol.ENS160_I2CADDR) -> None:
        """Initialize transport with an opened bus.

        Args:
            bus: Object implementing BusLike (smbus2.SMBus or FakeENS160)
            address: 7-bit device address
        """
        self._bus = bus
        self._address = address
        self._open = True

    @classmethod
    def open(
        cls, bus_number: int = 1, address: int = protocol.ENS160_I2CADDR
    ) -> "Transport":
        """Open a Linux i2c-dev bus with smbus2.

        Args:
            bus_number: I2C bus number (e.g., 1 for /dev/i2c-1)
            address: 7-bit device address

        Returns:
            Transport instance wrapping the opened bus

        Raises:
            BusError: If the bus cannot be opened
        """
        try:
            bus = SMBus(bus_number)
        except OSError as e:
            raise BusError(f"Failed to open I2C bus {bus_number}: {e}") from e

        logger.info(f"Opened I2C bus {bus_number}, device address 0x{address:02X}")
        return cls(bus, address)

    @property
    def address(self) -> int:
        """7-bit device address."""
        return self._address

    @property
    def is_open(self) -> bool:
        """Check if the bus handle is still usable."""
        return self._open

    def close(self) -> None:
        """Close the underlying bus."""
        if self._open:
            self._bus.close()
            self._open = False
            logger.info("Closed I2C bus")

    def write_register(self, register: int, data: bytes) -> None:
        """Write bytes to a register.

        Args:
            register: Register address
            data: Bytes to write, first byte at register

        Raises:
            BusError: If the bus is closed or the transfer fails
        """
        if not self._open:
            raise BusError("I2C bus is not open")

        try:
            self._bus.write_i2c_block_data(self._address, register, list(data))
        except OSError as e:
            raise BusError(
                f"Write to register 0x{register:02X} failed: {e}"
            ) from e
        logger.debug(f"Wrote register 0x{register:02X}: {bytes(data).hex()}")

    def read_register(self, register: int, length: int) -> bytes:
        """Read exactly length bytes from a register.

        Args:
            register: Register address
            length: Number of bytes to read (1, 2 or 8 for this device)

        Returns:
            The bytes read

        Raises:
            BusError: If the bus is closed, the transfer fails, or fewer
                      than length bytes came back
        """
        if not self._open:
            raise BusError("I2C bus is not open")

        try:
            values = self._bus.read_i2c_block_data(self._address, register, length)
        except OSError as e:
            raise BusError(
                f"Read of register 0x{register:02X} failed: {e}"
            ) from e

        data = bytes(values)
        if len(data) != length:
            raise BusError(
                f"Short read from register 0x{register:02X}: "
                f"expected {length} bytes, got {len(data)}"
            )
        logger.debug(f"Read register 0x{register:02X}: {data.hex()}")
        return data
