"""
Input records for HeartWaves.

Modules:
    records: Typed daily-series and orthostatic quick-check records

Usage:
    >>> from heartwaves.data import ImportedWindow, load_imported_window
    >>> window = load_imported_window("tmp/session.json")
"""

from .records import (
    DailyMetric,
    OrthostaticInput,
    ImportedWindow,
    RecordError,
    load_imported_window,
)

__all__ = [
    "DailyMetric",
    "OrthostaticInput",
    "ImportedWindow",
    "RecordError",
    "load_imported_window",
]
