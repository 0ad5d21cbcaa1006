"""Thread-safe DataFrame store and background recorder for ENS160 data.

This module provides:
- DataStore: Thread-safe in-memory DataFrame with CSV export
- DataRecorder: Background thread that polls the controller and records to DataStore

The sensor publishes a new sample roughly once per second in STANDARD mode,
so the recorder defaults to a 1 s poll interval. Polling faster only repeats
the previous values.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Event, RLock, Thread
from typing import Iterable, Optional, Union

import pandas as pd

from data_store.schemas import SCHEMA, reading_to_row
from ens160_lib.controller import SensorController
from ens160_lib.errors import ENS160Error
from ens160_lib.models import Reading
from ens160_lib.synchronized import SynchronizedController

logger = logging.getLogger(__name__)


class DataStore:
    """Thread-safe in-memory DataFrame store for sensor readings.

    Maintains a pandas DataFrame with normalized schema
    (timestamp, aqi, tvoc_ppb, eco2_ppm, validity, error).
    """

    def __init__(self, max_rows: int = 100000) -> None:
        """Initialize empty DataFrame store.

        Args:
            max_rows: Maximum rows to keep in memory. Older rows are trimmed after appends.
        """
        if max_rows <= 0:
            raise ValueError(f"max_rows must be positive, got {max_rows}")

        self._lock = RLock()
        self._df = pd.DataFrame(columns=list(SCHEMA.keys()))
        self._max_rows = max_rows

    def append_readings(self, readings: Iterable[Reading]) -> None:
        """Append readings to the DataFrame and trim to max_rows.

        Args:
            readings: Iterable of Reading instances
        """
        rows = [reading_to_row(r) for r in readings]
        if not rows:
            return

        with self._lock:
            new_df = pd.DataFrame(rows, columns=list(SCHEMA.keys()))
            if self._df.empty:
                self._df = new_df
            else:
                self._df = pd.concat([self._df, new_df], ignore_index=True)

            if len(self._df) > self._max_rows:
                excess = len(self._df) - self._max_rows
                self._df = self._df.iloc[excess:].reset_index(drop=True)
                logger.debug(f"Trimmed {excess} oldest rows, now {len(self._df)} rows")

    def get_dataframe(self) -> pd.DataFrame:
        """Get a copy of the entire DataFrame."""
        with self._lock:
            return self._df.copy()

    def get_recent(self, seconds: int = 60) -> pd.DataFrame:
        """Get readings from the last N seconds.

        Args:
            seconds: Number of seconds of recent history to retrieve

        Returns:
            DataFrame containing only readings within the time window
        """
        with self._lock:
            if self._df.empty:
                return pd.DataFrame(columns=list(SCHEMA.keys()))
            df = self._df.copy()

        timestamps = pd.to_datetime(df["timestamp"], format="ISO8601", utc=True)
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=seconds)
        return df[timestamps >= cutoff].reset_index(drop=True)

    def get_latest(self) -> Optional[dict]:
        """Get the most recent row as a dictionary, or None if empty."""
        with self._lock:
            if self._df.empty:
                return None
            # records orient yields native Python scalars (JSON-serializable)
            return self._df.iloc[[-1]].to_dict(orient="records")[0]

    def get_stats(self) -> dict:
        """Get summary statistics about stored data.

        Returns:
            Dictionary with keys:
                - row_count: Total number of readings
                - start_time: ISO timestamp of first reading (or None)
                - end_time: ISO timestamp of last reading (or None)
                - duration_s: Time span of data in seconds (or 0)
                - mean_eco2_ppm: Mean eCO2 over stored rows (or None)
                - mean_tvoc_ppb: Mean TVOC over stored rows (or None)
        """
        with self._lock:
            if self._df.empty:
                return {
                    "row_count": 0,
                    "start_time": None,
                    "end_time": None,
                    "duration_s": 0.0,
                    "mean_eco2_ppm": None,
                    "mean_tvoc_ppb": None,
                }
            df = self._df.copy()

        timestamps = pd.to_datetime(df["timestamp"], format="ISO8601", utc=True)
        start = timestamps.iloc[0]
        end = timestamps.iloc[-1]

        return {
            "row_count": len(df),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "duration_s": (end - start).total_seconds(),
            "mean_eco2_ppm": float(df["eco2_ppm"].astype(float).mean()),
            "mean_tvoc_ppb": float(df["tvoc_ppb"].astype(float).mean()),
        }

    def export_csv(self, path: Optional[str] = None) -> str:
        """Export DataFrame to a CSV file.

        Args:
            path: Output file path. If None, generates timestamped filename.

        Returns:
            Absolute path to exported file
        """
        if path is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            path = f"ens160_data_{timestamp}.csv"

        out = Path(path).resolve()
        out.parent.mkdir(parents=True, exist_ok=True)

        with self._lock:
            self._df.to_csv(out, index=False)
            rows = len(self._df)

        logger.info(f"Exported {rows} rows to {out}")
        return str(out)

    def clear(self) -> None:
        """Remove all rows."""
        with self._lock:
            self._df = pd.DataFrame(columns=list(SCHEMA.keys()))
        logger.info("DataStore cleared")


class DataRecorder:
    """Background recorder that polls the sensor and writes to DataStore.

    Every poll_interval_s the thread calls read_measurement() and appends the
    result. A failed poll is logged and the loop continues; the controller is
    never re-initialized from here.

    Pass a SynchronizedController when other threads use the same sensor.
    """

    def __init__(
        self,
        controller: Union[SensorController, SynchronizedController],
        store: DataStore,
        poll_interval_s: float = 1.0,
    ) -> None:
        """Initialize recorder (does not start automatically).

        Args:
            controller: Initialized controller to poll
            store: DataStore instance to write readings to
            poll_interval_s: Polling interval in seconds
        """
        if poll_interval_s <= 0:
            raise ValueError(f"poll_interval_s must be positive, got {poll_interval_s}")

        self._controller = controller
        self._store = store
        self._poll_interval = poll_interval_s

        self._thread: Optional[Thread] = None
        self._stop_event = Event()
        self._error_count = 0

    @property
    def error_count(self) -> int:
        """Number of failed polls since start()."""
        return self._error_count

    def start(self) -> None:
        """Start background recording thread.

        Raises:
            RuntimeError: If recorder is already running
        """
        if self._thread and self._thread.is_alive():
            raise RuntimeError("Recorder already running")

        logger.info(f"Starting DataRecorder (poll interval: {self._poll_interval}s)...")
        self._stop_event.clear()
        self._error_count = 0

        self._thread = Thread(
            target=self._recorder_loop,
            name="DataRecorder",
            daemon=True,
        )
        self._thread.start()
        logger.info("DataRecorder started")

    def stop(self, flush_path: Optional[str] = None) -> Optional[str]:
        """Stop recording thread and optionally export to CSV.

        Args:
            flush_path: If given, export the store to this CSV path after stopping.

        Returns:
            Path to exported file if flush_path was given, None otherwise
        """
        if not self._thread or not self._thread.is_alive():
            logger.warning("Recorder not running, nothing to stop")
            return None

        logger.info("Stopping DataRecorder...")
        self._stop_event.set()
        self._thread.join(timeout=5.0)

        if self._thread.is_alive():
            logger.warning("DataRecorder thread did not stop cleanly")

        self._thread = None

        exported = None
        if flush_path:
            exported = self._store.export_csv(flush_path)

        logger.info("DataRecorder stopped")
        return exported

    def is_running(self) -> bool:
        """Check if recorder thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def _recorder_loop(self) -> None:
        """Poll the controller until stop() is called."""
        logger.info(f"Recorder loop started (thread {threading.get_ident()})")

        while not self._stop_event.is_set():
            try:
                reading = self._controller.read_measurement()
                self._store.append_readings([reading])
            except ENS160Error as e:
                self._error_count += 1
                logger.error(f"Error polling sensor: {e}", exc_info=True)

            if self._stop_event.wait(timeout=self._poll_interval):
                break

        logger.info("Recorder loop stopped")
