#!/usr/bin/env python3
"""
Pi Runbook: ENS160 Polling Test
Expected: one reading per second; validity leaves "startup"/"warmup" after a few minutes
"""

import time

from ens160_lib import SensorController

# ============================================================================
# CONFIGURATION - EDIT THIS
# ============================================================================
I2C_BUS = 1
I2C_ADDRESS = 0x53
TEMPERATURE_C = 25.0
HUMIDITY_RH = 50.0
RUN_DURATION_S = 30.0

# ============================================================================
# TEST SCRIPT - DO NOT EDIT BELOW
# ============================================================================

print("=" * 70)
print("Pi Runbook: ENS160 Polling")
print("=" * 70)
print(f"Bus: {I2C_BUS}")
print(f"Address: 0x{I2C_ADDRESS:02X}")
print(f"Duration: {RUN_DURATION_S}s")
print()

controller = SensorController()

try:
    print("[1/3] Connecting and initializing sensor...")
    controller.connect(bus_number=I2C_BUS, address=I2C_ADDRESS)
    print(f"      Firmware: {controller.firmware_version()}")
    print()

    print("[2/3] Applying compensation...")
    controller.set_temperature_compensation(TEMPERATURE_C)
    controller.set_humidity_compensation(HUMIDITY_RH)
    print(f"      Temperature: {controller.get_temperature_compensation()} C")
    print(f"      Humidity: {controller.get_humidity_compensation()} %RH")
    print()

    print("[3/3] Polling...")
    start_time = time.time()
    while time.time() - start_time < RUN_DURATION_S:
        try:
            reading = controller.read_measurement()
            elapsed = time.time() - start_time
            print(f"      [{elapsed:5.1f}s] AQI (1-5): {reading.aqi}  "
                  f"TVOC (ppb): {reading.tvoc_ppb}  "
                  f"eCO2 (ppm): {reading.eco2_ppm}  "
                  f"Status: {reading.validity.value}")
        except Exception as e:
            print(f"      Failed to get sensor data: {e}")
        time.sleep(1.0)

finally:
    controller.disconnect()
    print()
    print("Disconnected.")
    print("=" * 70)
