"""
Training Table Preparation for HeartWaves.

This script builds the labelled reference table used by the clustering
trainer from a PhysioNet CVES-style subjects CSV, then splits it:

1. Match the source columns by (fuzzy) header name
2. Derive orthostatic deltas from seated/standing pairs
3. Assign proxy phenotype labels from symptoms and orthostatic vitals
4. Write training_table.csv and a summary JSON
5. Stratified shuffle into train/val/test CSVs

Proxy labelling (first match wins):
    OH symptom or SBP drop <= -20 mmHg   -> oh_like
    syncope symptom                      -> vvs_like
    HR rise >= 30 bpm, no SBP drop       -> pots_like
    resting HR >= 90, HR rise < 30       -> ist_like
    otherwise                            -> normal

Usage:
    python -m heartwaves.training.prepare_data --subjects data/raw/physionet/cves/subjects.csv
    python -m heartwaves.training.prepare_data --skip-build   # re-split an existing table
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import re
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from heartwaves.analysis.override import OverrideReason, orthostatic_pattern
from heartwaves.config import CLUSTERING, PATHS, TRAINING
from heartwaves.utils.stats import parse_optional_float

logger = logging.getLogger(__name__)

SOURCE_DATASET = "physionet_cves"

TABLE_COLUMNS = [
    "source_dataset",
    "source_subject_id",
    "source_group",
    "age",
    "resting_hr_mean",
    "hrv_sdnn_mean",
    "stand_minutes",
    "active_minutes",
    "sit_hr_mean",
    "stand_hr_mean",
    "delta_hr_stand_minus_sit",
    "sit_sbp_mean",
    "stand_sbp_mean",
    "delta_sbp_stand_minus_sit",
    "symptom_dizziness",
    "symptom_syncope",
    "symptom_oh",
    "status_target",
    "phenotype_hint_target",
    "phenotype_confidence_target",
    "label_quality",
    "notes",
]

# Candidate header names per field, most specific first
HEADER_CANDIDATES: Dict[str, Sequence[str]] = {
    "subject": ["subject_number"],
    "group": ["group"],
    "age": ["age"],
    "resting_hr_mean": ["(Baseline Mean) HR BP BASELINE", "baseline hr"],
    "hrv_sdnn_mean": ["HRV_ SDNN", "hrv sdnn"],
    "sit_hr_mean": ["(SitEO mn) SitEO HR mean", "siteo hr mean"],
    "stand_hr_mean": ["(StandEO mn) Mean HR StandEO", "standeo mean hr"],
    "sit_sbp_mean": ["Systolic BP SitEO", "sys bp siteo"],
    "stand_sbp_mean": ["Sys BP StandEO", "standeo sys bp"],
    "symptom_dizziness": ["Dizziness AUTONOMIC SYMPTOMS", "dizziness autonomic symptoms"],
    "symptom_syncope": ["Syncope AUTONOMIC SYMPTOMS", "syncope autonomic symptoms"],
    "symptom_oh": ["OH AUTONOMIC SYMPTOMS", "oh autonomic symptoms"],
}


class TrainingDataError(Exception):
    """Raised when training inputs are missing or unusable."""
    pass


@dataclass
class ProxyLabel:
    """Proxy target assigned to one reference subject."""
    status: str
    hint: str
    confidence: str
    notes: str


def normalize_header(name: str) -> str:
    """Lower-case and collapse non-alphanumerics to single spaces."""
    return re.sub(r"[^a-z0-9]+", " ", str(name).lower()).strip()


def find_header(headers: Sequence[str], candidates: Sequence[str]) -> Optional[str]:
    """
    Find the source column for a field.

    Exact normalized matches are tried for every candidate first, then
    substring matches in either direction.

    Example:
        >>> find_header(["Subject_Number", "AGE (years)"], ["age"])
        'AGE (years)'
    """
    normalized = [(header, normalize_header(header)) for header in headers]

    for candidate in candidates:
        wanted = normalize_header(candidate)
        for header, norm in normalized:
            if norm == wanted:
                return header

    for candidate in candidates:
        wanted = normalize_header(candidate)
        for header, norm in normalized:
            if wanted in norm or norm in wanted:
                return header

    return None


def _is_yes(value) -> bool:
    return str(value or "").strip().upper() == "YES"


def proxy_label(
    symptom_oh: str,
    symptom_syncope: str,
    symptom_dizziness: str,
    delta_hr: Optional[float],
    delta_sbp: Optional[float],
    resting_hr: Optional[float],
    group: str,
) -> ProxyLabel:
    """Assign a proxy phenotype label to a reference subject."""
    sbp_drop = delta_sbp is not None and delta_sbp <= CLUSTERING.ORTHO_SBP_DROP_MMHG

    if _is_yes(symptom_oh) or sbp_drop:
        return ProxyLabel(
            status="needs_followup",
            hint="oh_like",
            confidence="medium" if (_is_yes(symptom_oh) and sbp_drop) else "low",
            notes="OH symptom or orthostatic SBP drop pattern.",
        )

    if _is_yes(symptom_syncope):
        return ProxyLabel(
            status="needs_followup",
            hint="vvs_like",
            confidence="low",
            notes="Syncope symptom history suggests vasovagal-like pattern.",
        )

    pattern = orthostatic_pattern(delta_hr, delta_sbp, resting_hr)
    if pattern is OverrideReason.ORTHOSTATIC_HR_RISE:
        return ProxyLabel(
            status="needs_followup",
            hint="pots_like",
            confidence="medium",
            notes="Large stand-related HR rise without major SBP drop.",
        )
    if pattern is OverrideReason.RESTING_TACHYCARDIA:
        return ProxyLabel(
            status="needs_followup",
            hint="ist_like",
            confidence="medium",
            notes="High resting HR with limited orthostatic HR rise.",
        )

    return ProxyLabel(
        status="normal",
        hint="normal",
        confidence="high" if "CONTROL" in str(group).upper() else "low",
        notes=(
            "No strong objective subtype signal; dizziness symptom present."
            if _is_yes(symptom_dizziness)
            else "No strong dysautonomia-like subtype signal from available fields."
        ),
    )


def _value_counts(series: pd.Series) -> Dict[str, int]:
    return {str(k): int(v) for k, v in sorted(series.astype(str).value_counts().items())}


def _write_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(payload, f, indent=2)


def build_training_table(
    subjects_csv: Union[str, Path] = PATHS.RAW_SUBJECTS_CSV,
    output_csv: Union[str, Path] = PATHS.TRAINING_TABLE_CSV,
) -> pd.DataFrame:
    """
    Build the proxy-labelled training table from a subjects CSV.

    Args:
        subjects_csv: Source subjects table (CVES layout).
        output_csv: Destination CSV; a ``*_summary.json`` is written beside it.

    Returns:
        The training table as a DataFrame with TABLE_COLUMNS.

    Raises:
        TrainingDataError: If the source is missing or lacks subject/group columns.
    """
    subjects_csv = Path(subjects_csv)
    output_csv = Path(output_csv)
    if not subjects_csv.is_file():
        raise TrainingDataError(f"Subjects CSV not found: {subjects_csv}")

    source = pd.read_csv(subjects_csv, dtype=str, keep_default_na=False)
    headers = [str(h) for h in source.columns]
    columns = {field: find_header(headers, names) for field, names in HEADER_CANDIDATES.items()}

    missing = [name for name in ("subject", "group") if columns[name] is None]
    if missing:
        raise TrainingDataError(f"Missing required columns: {', '.join(missing)}")

    def number(record, field) -> Optional[float]:
        col = columns[field]
        return parse_optional_float(record[col]) if col else None

    def text(record, field) -> str:
        col = columns[field]
        return str(record[col]).strip() if col else ""

    rows: List[dict] = []
    for _, record in source.iterrows():
        subject_id = text(record, "subject")
        group = text(record, "group")
        if not subject_id or not group:
            continue

        sit_hr, stand_hr = number(record, "sit_hr_mean"), number(record, "stand_hr_mean")
        sit_sbp, stand_sbp = number(record, "sit_sbp_mean"), number(record, "stand_sbp_mean")
        delta_hr = round(stand_hr - sit_hr, 3) if sit_hr is not None and stand_hr is not None else None
        delta_sbp = round(stand_sbp - sit_sbp, 3) if sit_sbp is not None and stand_sbp is not None else None

        row = {
            "source_dataset": SOURCE_DATASET,
            "source_subject_id": subject_id,
            "source_group": group,
            "age": number(record, "age"),
            "resting_hr_mean": number(record, "resting_hr_mean"),
            "hrv_sdnn_mean": number(record, "hrv_sdnn_mean"),
            "stand_minutes": None,
            "active_minutes": None,
            "sit_hr_mean": sit_hr,
            "stand_hr_mean": stand_hr,
            "delta_hr_stand_minus_sit": delta_hr,
            "sit_sbp_mean": sit_sbp,
            "stand_sbp_mean": stand_sbp,
            "delta_sbp_stand_minus_sit": delta_sbp,
            "symptom_dizziness": text(record, "symptom_dizziness"),
            "symptom_syncope": text(record, "symptom_syncope"),
            "symptom_oh": text(record, "symptom_oh"),
        }

        label = proxy_label(
            symptom_oh=row["symptom_oh"],
            symptom_syncope=row["symptom_syncope"],
            symptom_dizziness=row["symptom_dizziness"],
            delta_hr=delta_hr,
            delta_sbp=delta_sbp,
            resting_hr=row["resting_hr_mean"],
            group=group,
        )
        row.update({
            "status_target": label.status,
            "phenotype_hint_target": label.hint,
            "phenotype_confidence_target": label.confidence,
            "label_quality": "proxy",
            "notes": label.notes,
        })
        rows.append(row)

    table = pd.DataFrame(rows, columns=TABLE_COLUMNS)

    output_csv.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(output_csv, index=False)

    _write_json(output_csv.with_name(f"{output_csv.stem}_summary.json"), {
        "generated_on": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "source_file": str(subjects_csv),
        "output_csv": str(output_csv),
        "row_count": len(table),
        "counts": {
            "status_target": _value_counts(table["status_target"]),
            "phenotype_hint_target": _value_counts(table["phenotype_hint_target"]),
            "phenotype_confidence_target": _value_counts(table["phenotype_confidence_target"]),
        },
        "schema": TABLE_COLUMNS,
    })

    logger.info(f"Wrote {output_csv} ({len(table)} rows)")
    logger.info(f"Label distribution: {_value_counts(table['phenotype_hint_target'])}")
    return table


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def split_training_table(
    table: Union[str, Path, pd.DataFrame] = PATHS.TRAINING_TABLE_CSV,
    output_dir: Union[str, Path] = PATHS.SPLITS_DIR,
    seed: int = TRAINING.SEED,
    train_ratio: float = TRAINING.TRAIN_RATIO,
    val_ratio: float = TRAINING.VAL_RATIO,
    label_column: str = TRAINING.LABEL_COLUMN,
) -> Dict[str, pd.DataFrame]:
    """
    Stratified shuffle split of the training table.

    Rows are grouped by label (in first-appearance order) and each group is
    shuffled with the same seeded generator. Per label, round(n * train_ratio)
    rows go to train, round(n * val_ratio) to val, the rest to test.

    Args:
        table: Training table CSV path or DataFrame.
        output_dir: Directory for train.csv / val.csv / test.csv.
        seed: PRNG seed.
        train_ratio: Train share per label.
        val_ratio: Validation share per label.
        label_column: Column to stratify on.

    Returns:
        Dict with 'train', 'val' and 'test' DataFrames.

    Raises:
        TrainingDataError: If the table is missing or lacks the label column.
    """
    if not isinstance(table, pd.DataFrame):
        table_path = Path(table)
        if not table_path.is_file():
            raise TrainingDataError(f"Missing input CSV: {table_path}")
        table = pd.read_csv(table_path, dtype=str, keep_default_na=False)

    if label_column not in table.columns:
        raise TrainingDataError(f"Missing required label column: {label_column}")

    rng = np.random.default_rng(seed)
    labels = table[label_column].astype(str)
    parts: Dict[str, List[pd.DataFrame]] = {"train": [], "val": [], "test": []}

    for label in labels.unique():
        group = table[labels == label]
        shuffled = group.iloc[rng.permutation(len(group))]

        n = len(shuffled)
        n_train = _round_half_up(n * train_ratio)
        n_val = _round_half_up(n * val_ratio)
        if n - n_train - n_val < 0:
            n_val = max(0, n - n_train)

        parts["train"].append(shuffled.iloc[:n_train])
        parts["val"].append(shuffled.iloc[n_train:n_train + n_val])
        parts["test"].append(shuffled.iloc[n_train + n_val:])

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    splits: Dict[str, pd.DataFrame] = {}
    for name, frames in parts.items():
        split = pd.concat(frames) if frames else table.iloc[0:0]
        split = split.reset_index(drop=True)
        split.to_csv(output_dir / f"{name}.csv", index=False)
        splits[name] = split

    _write_json(output_dir / "split_summary.json", {
        "generated_on": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "output_dir": str(output_dir),
        "seed": seed,
        "ratios": {"train": train_ratio, "val": val_ratio, "test": 1.0 - train_ratio - val_ratio},
        "split_counts": {name: len(split) for name, split in splits.items()},
        "label_counts": {name: _value_counts(split[label_column]) for name, split in splits.items()},
    })

    logger.info(
        f"Wrote splits to {output_dir}: "
        + ", ".join(f"{name}={len(split)}" for name, split in splits.items())
    )
    return splits


def main():
    parser = argparse.ArgumentParser(
        description="Build and split the HeartWaves clustering training table"
    )
    parser.add_argument(
        "--subjects",
        type=str,
        default=PATHS.RAW_SUBJECTS_CSV,
        help="Source subjects CSV (PhysioNet CVES layout)"
    )
    parser.add_argument(
        "--table",
        type=str,
        default=PATHS.TRAINING_TABLE_CSV,
        help="Training table CSV to write (and split)"
    )
    parser.add_argument(
        "--splits-dir",
        type=str,
        default=PATHS.SPLITS_DIR,
        help="Output directory for train/val/test CSVs"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=TRAINING.SEED,
        help="Split seed"
    )
    parser.add_argument(
        "--skip-build",
        action="store_true",
        help="Only split an existing training table"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        if not args.skip_build:
            build_training_table(args.subjects, args.table)
        split_training_table(args.table, args.splits_dir, seed=args.seed)
    except TrainingDataError as e:
        logger.error(f"Dataset preparation failed: {e}")
        return 1

    logger.info("Dataset preparation completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
