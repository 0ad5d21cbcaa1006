"""Schema normalization for ENS160 readings to DataFrame format."""

from datetime import timezone
from typing import Any, Dict

from ens160_lib.models import Reading

# DataFrame schema: column names and their dtypes
SCHEMA = {
    "timestamp": str,  # UTC ISO 8601 format
    "aqi": int,  # UBA air quality index
    "tvoc_ppb": int,
    "eco2_ppm": int,
    "validity": str,  # "normal", "warmup", "startup" or "invalid"
    "error": bool,
}


def reading_to_row(reading: Reading) -> Dict[str, Any]:
    """Convert a Reading instance to a DataFrame row dictionary.

    Normalizes timestamps to UTC ISO 8601 and ensures all SCHEMA keys are present.

    Args:
        reading: A Reading returned by SensorController.read_measurement()

    Returns:
        Dictionary with all SCHEMA keys, ready for DataFrame append
    """
    ts = reading.ts
    if ts.tzinfo is None:
        # Controller stamps with datetime.now(timezone.utc); treat naive as UTC
        ts = ts.replace(tzinfo=timezone.utc)
    elif ts.tzinfo != timezone.utc:
        ts = ts.astimezone(timezone.utc)

    return {
        "timestamp": ts.isoformat(),
        "aqi": reading.aqi,
        "tvoc_ppb": reading.tvoc_ppb,
        "eco2_ppm": reading.eco2_ppm,
        "validity": reading.validity.value,
        "error": reading.error,
    }
