"""Thread-safe wrapper serializing access to a SensorController."""

import threading
from typing import Union

from ens160_lib import protocol
from ens160_lib.controller import SensorController
from ens160_lib.models import FirmwareVersion, OperatingMode, Reading, StatusSnapshot


class SynchronizedController:
    """Serializes whole protocol operations on a shared SensorController.

    The lock is held for the full duration of each call, so multi-step
    sequences such as initialize() or firmware_version() can never be
    interleaved with a measurement read from another thread.
    """

    def __init__(self, controller: SensorController) -> None:
        self._controller = controller
        # Reentrant so callers can group several operations under lock()
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding the controller, for grouping several calls."""
        return self._lock

    @property
    def controller(self) -> SensorController:
        """The wrapped controller. Only touch it while holding lock."""
        return self._controller

    @property
    def is_initialized(self) -> bool:
        return self._controller.is_initialized

    def is_connected(self) -> bool:
        with self._lock:
            return self._controller.is_connected()

    def disconnect(self) -> None:
        with self._lock:
            self._controller.disconnect()

    def initialize(
        self,
        temperature_c: float = protocol.DEFAULT_TEMPERATURE_C,
        humidity_rh: float = protocol.DEFAULT_HUMIDITY_RH,
    ) -> None:
        with self._lock:
            self._controller.initialize(temperature_c, humidity_rh)

    def reset(self) -> None:
        with self._lock:
            self._controller.reset()

    def check(self) -> int:
        with self._lock:
            return self._controller.check()

    def set_mode(self, mode: Union[OperatingMode, int]) -> None:
        with self._lock:
            self._controller.set_mode(mode)

    def get_mode(self) -> int:
        with self._lock:
            return self._controller.get_mode()

    def clear_command(self) -> None:
        with self._lock:
            self._controller.clear_command()

    def read_gpr(self) -> bytes:
        with self._lock:
            return self._controller.read_gpr()

    def firmware_version(self) -> FirmwareVersion:
        with self._lock:
            return self._controller.firmware_version()

    def set_temperature_compensation(self, celsius: float) -> None:
        with self._lock:
            self._controller.set_temperature_compensation(celsius)

    def set_humidity_compensation(self, percent: float) -> None:
        with self._lock:
            self._controller.set_humidity_compensation(percent)

    def get_temperature_compensation(self) -> float:
        with self._lock:
            return self._controller.get_temperature_compensation()

    def get_humidity_compensation(self) -> float:
        with self._lock:
            return self._controller.get_humidity_compensation()

    def aqi(self) -> int:
        with self._lock:
            return self._controller.aqi()

    def tvoc(self) -> int:
        with self._lock:
            return self._controller.tvoc()

    def eco2(self) -> int:
        with self._lock:
            return self._controller.eco2()

    def status(self) -> StatusSnapshot:
        with self._lock:
            return self._controller.status()

    def read_measurement(self) -> Reading:
        with self._lock:
            return self._controller.read_measurement()
