"""
Imported wearable-window records.

The import collaborator (wearable export parsing) hands the screening core
a JSON-shaped window of daily aggregates. This module turns that payload
into explicit typed records so that every field is addressed by name.

This module provides:
    - DailyMetric: One day of aggregated metrics
    - OrthostaticInput: Seated vs. standing quick-check vitals
    - ImportedWindow: The daily series plus optional profile/orthostatic data
    - load_imported_window: Read an ImportedWindow from a JSON file

Example:
    >>> window = load_imported_window("tmp/session.json")
    >>> print(f"{len(window.daily)} days, age={window.age}")
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, asdict
from datetime import date
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from heartwaves.config import SCREENING
from heartwaves.utils.stats import parse_optional_float

# Configure module logger
logger = logging.getLogger(__name__)


class RecordError(Exception):
    """Raised when an imported window cannot be parsed."""
    pass


def _first_value(row: Mapping[str, Any], keys) -> Optional[float]:
    for key in keys:
        value = parse_optional_float(row.get(key))
        if value is not None:
            return value
    return None


@dataclass
class DailyMetric:
    """
    Aggregated metrics for a single calendar day.

    Missing days are simply absent from the series; a missing metric on a
    present day is None, never zero.

    Attributes:
        date: Calendar day (ISO string kept as given).
        resting_hr_mean: Mean resting heart rate in bpm.
        hrv_sdnn_mean: Mean HRV SDNN in ms.
        stand_minutes: Standing minutes.
        active_minutes: Exercise/active minutes.
        systolic_bp_mean: Mean systolic BP in mmHg.
        diastolic_bp_mean: Mean diastolic BP in mmHg.
    """

    date: str
    resting_hr_mean: Optional[float] = None
    hrv_sdnn_mean: Optional[float] = None
    stand_minutes: Optional[float] = None
    active_minutes: Optional[float] = None
    systolic_bp_mean: Optional[float] = None
    diastolic_bp_mean: Optional[float] = None

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> DailyMetric:
        """
        Build a DailyMetric from an import row.

        Blood pressure is accepted under either recognized alias
        (``systolic_bp_mean`` / ``bp_systolic_mean`` and the diastolic pair).
        """
        day = row.get("date")
        if isinstance(day, date):
            day = day.isoformat()
        return cls(
            date=str(day) if day is not None else "",
            resting_hr_mean=parse_optional_float(row.get("resting_hr_mean")),
            hrv_sdnn_mean=parse_optional_float(row.get("hrv_sdnn_mean")),
            stand_minutes=parse_optional_float(row.get("stand_minutes")),
            active_minutes=parse_optional_float(row.get("active_minutes")),
            systolic_bp_mean=_first_value(row, SCREENING.SYSTOLIC_BP_KEYS),
            diastolic_bp_mean=_first_value(row, SCREENING.DIASTOLIC_BP_KEYS),
        )

    @property
    def has_bp(self) -> bool:
        """True if either blood-pressure mean is present."""
        return self.systolic_bp_mean is not None or self.diastolic_bp_mean is not None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OrthostaticInput:
    """
    Orthostatic quick-check vitals (seated vs. standing).

    Attributes:
        sit_hr_mean: Seated/resting heart rate.
        stand_hr_mean: Standing heart rate.
        sit_sbp_mean: Seated/resting systolic BP.
        stand_sbp_mean: Standing systolic BP.
        delta_hr_stand_minus_sit: Standing minus seated HR.
        delta_sbp_stand_minus_sit: Standing minus seated SBP.
    """

    sit_hr_mean: Optional[float] = None
    stand_hr_mean: Optional[float] = None
    sit_sbp_mean: Optional[float] = None
    stand_sbp_mean: Optional[float] = None
    delta_hr_stand_minus_sit: Optional[float] = None
    delta_sbp_stand_minus_sit: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrthostaticInput:
        """Parse quick-check values; ``rest_hr``/``rest_sbp`` alias the seated values."""
        return cls(
            sit_hr_mean=_first_value(data, ("sit_hr_mean", "rest_hr")),
            stand_hr_mean=parse_optional_float(data.get("stand_hr_mean")),
            sit_sbp_mean=_first_value(data, ("sit_sbp_mean", "rest_sbp")),
            stand_sbp_mean=parse_optional_float(data.get("stand_sbp_mean")),
            delta_hr_stand_minus_sit=parse_optional_float(data.get("delta_hr_stand_minus_sit")),
            delta_sbp_stand_minus_sit=parse_optional_float(data.get("delta_sbp_stand_minus_sit")),
        )

    @property
    def delta_hr(self) -> Optional[float]:
        """Supplied HR delta, or stand - sit when both are known."""
        if self.delta_hr_stand_minus_sit is not None:
            return self.delta_hr_stand_minus_sit
        if self.sit_hr_mean is not None and self.stand_hr_mean is not None:
            return self.stand_hr_mean - self.sit_hr_mean
        return None

    @property
    def delta_sbp(self) -> Optional[float]:
        """Supplied SBP delta, or stand - sit when both are known."""
        if self.delta_sbp_stand_minus_sit is not None:
            return self.delta_sbp_stand_minus_sit
        if self.sit_sbp_mean is not None and self.stand_sbp_mean is not None:
            return self.stand_sbp_mean - self.sit_sbp_mean
        return None

    @property
    def is_empty(self) -> bool:
        return all(value is None for value in asdict(self).values())

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class ImportedWindow:
    """
    A screening window as produced by the import collaborator.

    Attributes:
        daily: Daily metrics ordered by date.
        age: Profile age in years, if known.
        orthostatic_input: Quick-check vitals attached to the import, if any.
    """

    daily: List[DailyMetric] = field(default_factory=list)
    age: Optional[float] = None
    orthostatic_input: Optional[OrthostaticInput] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ImportedWindow:
        """
        Parse an import payload ``{"daily": [...], "age": ..., "orthostatic_input": {...}}``.

        Raises:
            RecordError: If ``daily`` is not a list of objects.
        """
        rows = data.get("daily") or []
        if not isinstance(rows, list):
            raise RecordError("'daily' must be a list of daily metric objects")

        daily = []
        for idx, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise RecordError(f"Daily row {idx} is not an object")
            daily.append(DailyMetric.from_dict(row))
        daily.sort(key=lambda d: d.date)

        ortho_raw = data.get("orthostatic_input")
        orthostatic = None
        if isinstance(ortho_raw, Mapping):
            orthostatic = OrthostaticInput.from_dict(ortho_raw)
            if orthostatic.is_empty:
                orthostatic = None

        return cls(
            daily=daily,
            age=parse_optional_float(data.get("age")),
            orthostatic_input=orthostatic,
        )

    def __repr__(self) -> str:
        span = f"{self.daily[0].date}..{self.daily[-1].date}" if self.daily else "empty"
        return f"ImportedWindow(days={len(self.daily)}, span={span}, age={self.age})"


def load_imported_window(path: Union[str, Path]) -> ImportedWindow:
    """
    Load an imported window from a JSON file.

    Args:
        path: Path to a JSON document with a ``daily`` array.

    Returns:
        Parsed ImportedWindow.

    Raises:
        FileNotFoundError: If the file does not exist.
        RecordError: If the payload is not a JSON object with a valid series.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Imported window not found: {path}")

    with open(path, 'r') as f:
        payload = json.load(f)

    if not isinstance(payload, Mapping):
        raise RecordError(f"Expected a JSON object in {path}")

    window = ImportedWindow.from_dict(payload)
    logger.info(f"Loaded {window!r} from {path}")
    return window
