"""Custom exceptions for the ENS160 sensor library."""


class ENS160Error(Exception):
    """Base exception for all ENS160 library errors."""

    pass


class BusError(ENS160Error):
    """Raised when an I2C transfer fails (bus closed, NACK, short read)."""

    pass


class InvalidMode(ENS160Error):
    """Raised when attempting to switch to an unsupported operating mode."""

    pass


class IdentityMismatch(ENS160Error):
    """Raised when the PART_ID register does not hold the ENS160 part ID."""

    pass


class DeviceNotDetected(ENS160Error):
    """Raised when initialization cannot confirm an ENS160 on the bus."""

    pass


class InvalidCompensationValue(ENS160Error):
    """Raised when a compensation value cannot be encoded into its register."""

    pass
