"""Tests for the operating mode state machine and the GPR command protocol."""

from typing import List

import pytest

from ens160_lib import protocol
from ens160_lib.controller import SensorController
from ens160_lib.errors import BusError, InvalidMode
from ens160_lib.models import FirmwareVersion, OperatingMode
from ens160_lib.transport import Transport
from fakes.fake_ens160 import FakeENS160


def make_controller(fake: FakeENS160, sleeps: List[float] = None) -> SensorController:
    sleep = sleeps.append if sleeps is not None else (lambda s: None)
    return SensorController(Transport(fake), sleep=sleep)


# =============================================================================
# Mode State Machine
# =============================================================================

@pytest.mark.parametrize("mode", list(OperatingMode))
def test_set_mode_then_get_mode_echoes(mode: OperatingMode) -> None:
    fake = FakeENS160()
    controller = make_controller(fake)

    controller.set_mode(mode)

    assert controller.get_mode() == mode


def test_set_mode_accepts_plain_int() -> None:
    fake = FakeENS160()
    controller = make_controller(fake)

    controller.set_mode(0x02)

    assert fake.opmode == protocol.MODE_STANDARD


@pytest.mark.parametrize("mode", [0x03, 0x10, 0xFF, -1, 256, "standard", None])
def test_invalid_mode_rejected_without_bus_access(mode) -> None:
    fake = FakeENS160()
    sleeps: List[float] = []
    controller = make_controller(fake, sleeps)

    with pytest.raises(InvalidMode):
        controller.set_mode(mode)

    assert fake.log == []
    assert sleeps == []


def test_set_mode_waits_for_settle() -> None:
    sleeps: List[float] = []
    controller = make_controller(FakeENS160(), sleeps)

    controller.set_mode(OperatingMode.IDLE)

    assert sleeps == [protocol.MODE_SETTLE_DELAY]


def test_set_mode_writes_single_byte() -> None:
    fake = FakeENS160()
    controller = make_controller(fake)

    controller.set_mode(OperatingMode.RESET)

    assert fake.writes() == [("write", protocol.REG_OPMODE, b"\xf0")]


def test_get_mode_returns_raw_value() -> None:
    """Out-of-range OPMODE values are surfaced, not validated."""
    fake = FakeENS160()
    fake.opmode = 0x7F
    controller = make_controller(fake)

    assert controller.get_mode() == 0x7F


def test_reset_writes_reset_mode() -> None:
    fake = FakeENS160()
    controller = make_controller(fake)

    controller.reset()

    assert fake.mode_history() == [protocol.MODE_RESET]


# =============================================================================
# Command / Response
# =============================================================================

def test_clear_command_writes_nop_then_clear() -> None:
    fake = FakeENS160()
    sleeps: List[float] = []
    controller = make_controller(fake, sleeps)
    fake.opmode = protocol.MODE_IDLE
    fake.gpr[:] = b"\x01" * 8

    controller.clear_command()

    assert fake.writes() == [
        ("write", protocol.REG_COMMAND, b"\x00"),
        ("write", protocol.REG_COMMAND, b"\xcc"),
    ]
    assert sleeps == [protocol.COMMAND_SETTLE_DELAY]
    assert controller.read_gpr() == bytes(8)


def test_read_gpr_reads_eight_bytes() -> None:
    fake = FakeENS160()
    fake.gpr[:] = bytes(range(8))
    controller = make_controller(fake)

    assert controller.read_gpr() == bytes(range(8))
    assert fake.log[-1] == ("read", protocol.REG_GPR_READ, bytes(range(8)))


def test_firmware_version_and_mode_restored() -> None:
    fake = FakeENS160(firmware=(1, 4, 2))
    controller = make_controller(fake)
    controller.set_mode(OperatingMode.STANDARD)
    fake.log.clear()

    version = controller.firmware_version()

    assert version == FirmwareVersion(1, 4, 2)
    assert str(version) == "1.4.2"
    assert fake.opmode == protocol.MODE_STANDARD
    assert fake.mode_history() == [protocol.MODE_IDLE, protocol.MODE_STANDARD]
    assert fake.command_history() == [
        protocol.COMMAND_NOP,
        protocol.COMMAND_CLRGPR,
        protocol.COMMAND_GETAPPVER,
    ]
    assert fake.ignored_commands == []


def test_firmware_version_sequence() -> None:
    """Save mode, IDLE, clear, wait, GET_APPVER, read GPR, restore."""
    fake = FakeENS160()
    sleeps: List[float] = []
    controller = make_controller(fake, sleeps)
    controller.set_mode(OperatingMode.SLEEP)
    fake.log.clear()
    sleeps.clear()

    controller.firmware_version()

    ops = [(kind, register) for kind, register, _ in fake.log]
    assert ops == [
        ("read", protocol.REG_OPMODE),
        ("write", protocol.REG_OPMODE),
        ("write", protocol.REG_COMMAND),
        ("write", protocol.REG_COMMAND),
        ("write", protocol.REG_COMMAND),
        ("read", protocol.REG_GPR_READ),
        ("write", protocol.REG_OPMODE),
    ]
    assert sleeps == [
        protocol.MODE_SETTLE_DELAY,
        protocol.COMMAND_SETTLE_DELAY,
        protocol.COMMAND_SETTLE_DELAY,
        protocol.MODE_SETTLE_DELAY,
    ]
    assert fake.opmode == protocol.MODE_SLEEP


def test_firmware_version_restores_mode_on_failure() -> None:
    fake = FakeENS160()
    controller = make_controller(fake)
    controller.set_mode(OperatingMode.STANDARD)
    fake.fail_registers.add(protocol.REG_GPR_READ)

    with pytest.raises(BusError):
        controller.firmware_version()

    assert fake.opmode == protocol.MODE_STANDARD
    assert fake.mode_history()[-1] == protocol.MODE_STANDARD


def test_firmware_version_restores_mode_when_command_write_fails() -> None:
    fake = FakeENS160()
    controller = make_controller(fake)
    controller.set_mode(OperatingMode.SLEEP)
    fake.fail_registers.add(protocol.REG_COMMAND)

    with pytest.raises(BusError):
        controller.firmware_version()

    assert fake.opmode == protocol.MODE_SLEEP
