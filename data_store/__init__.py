"""DataFrame recording layer for ENS160 measurements."""

from data_store.schemas import SCHEMA, reading_to_row
from data_store.store import DataRecorder, DataStore

__all__ = ["SCHEMA", "reading_to_row", "DataStore", "DataRecorder"]
