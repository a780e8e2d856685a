"""
Event source for the stay engine.

Reads the three encounter source tables (direct admissions, ward transfers and
fee-basis inpatient episodes) from CSV or Parquet files, removes encounters
without a discharge/end time, applies the optional cohort filter and groups
the remaining rows into RawEvents per patient.

Expected columns (case-insensitive):

- inpatient: patient_id, inpatient_id, admit_time, discharge_time, admit_specialty
- transfers: patient_id, inpatient_id, admit_time, discharge_time, admit_specialty,
  transfer_time, gaining_specialty
- fee_basis: patient_id, treatment_start, treatment_end, purpose_of_visit
"""

import os
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Set

import pandas as pd

from stays.classification import normalize_code
from stays.model import (
    SOURCE_FEE_BASIS,
    SOURCE_INPATIENT,
    SOURCE_TRANSFER,
    RawEvent,
)
from utils import get_data_path, get_logger, load_config

logger = get_logger(__name__)

INPATIENT_COLUMNS = [
    "patient_id",
    "inpatient_id",
    "admit_time",
    "discharge_time",
    "admit_specialty",
]
TRANSFER_COLUMNS = INPATIENT_COLUMNS + ["transfer_time", "gaining_specialty"]
FEE_BASIS_COLUMNS = [
    "patient_id",
    "treatment_start",
    "treatment_end",
    "purpose_of_visit",
]

_TEXT_COLUMNS = {
    "patient_id",
    "inpatient_id",
    "admit_specialty",
    "gaining_specialty",
    "purpose_of_visit",
}


def _to_datetime(value) -> Optional[Any]:
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value).to_pydatetime()


def read_source_table(path: str, date_columns: List[str]) -> pd.DataFrame:
    """
    Read one source table from a CSV or Parquet file.

    Column names are lowercased; date columns are parsed to datetimes and
    identifier and code columns are kept as text.

    Args:
        path (str): Path to a .csv or .parquet file.
        date_columns (List[str]): Columns to parse as datetimes.

    Returns:
        pd.DataFrame: The table.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file extension is not supported.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Source table not found: {path}")

    extension = os.path.splitext(path)[1].lower()
    if extension == ".csv":
        header = pd.read_csv(path, nrows=0).columns
        dtypes = {c: str for c in header if c.lower() in _TEXT_COLUMNS}
        table = pd.read_csv(path, dtype=dtypes)
    elif extension in (".parquet", ".pq"):
        table = pd.read_parquet(path)
    else:
        raise ValueError(f"Unsupported source table format '{extension}' for {path}")

    table.columns = table.columns.str.lower()
    for column in date_columns:
        if column in table.columns:
            table[column] = pd.to_datetime(table[column], errors="coerce")
    return table


def _require_columns(table: pd.DataFrame, required: List[str], name: str) -> None:
    missing = [c for c in required if c not in table.columns]
    if missing:
        raise ValueError(f"Missing required columns in {name} table: {missing}")


def _drop_open_and_undated(
    table: pd.DataFrame, begin: str, end: str, name: str
) -> pd.DataFrame:
    open_rows = table[end].isna()
    if open_rows.any():
        logger.info(f"Excluding {int(open_rows.sum())} {name} row(s) without {end}")
    undated = table[begin].isna() & ~open_rows
    if undated.any():
        logger.warning(f"Excluding {int(undated.sum())} {name} row(s) without {begin}")
    return table[~open_rows & ~table[begin].isna()]


def inpatient_events(table: pd.DataFrame) -> List[RawEvent]:
    """Convert the direct admission table into RawEvents."""
    _require_columns(table, INPATIENT_COLUMNS, SOURCE_INPATIENT)
    table = _drop_open_and_undated(table, "admit_time", "discharge_time", SOURCE_INPATIENT)
    return [
        RawEvent(
            patient_id=normalize_code(row.patient_id),
            source=SOURCE_INPATIENT,
            begin=_to_datetime(row.admit_time),
            end=_to_datetime(row.discharge_time),
            specialty=normalize_code(row.admit_specialty),
            grouping_key=normalize_code(row.inpatient_id),
        )
        for row in table[INPATIENT_COLUMNS].itertuples(index=False)
    ]


def transfer_events(table: pd.DataFrame) -> List[RawEvent]:
    """Convert the ward transfer table into RawEvents, one per transfer."""
    _require_columns(table, TRANSFER_COLUMNS, SOURCE_TRANSFER)
    table = _drop_open_and_undated(table, "admit_time", "discharge_time", SOURCE_TRANSFER)
    return [
        RawEvent(
            patient_id=normalize_code(row.patient_id),
            source=SOURCE_TRANSFER,
            begin=_to_datetime(row.admit_time),
            end=_to_datetime(row.discharge_time),
            specialty=normalize_code(row.admit_specialty),
            grouping_key=normalize_code(row.inpatient_id),
            transfer_time=_to_datetime(row.transfer_time),
            transfer_specialty=normalize_code(row.gaining_specialty),
        )
        for row in table[TRANSFER_COLUMNS].itertuples(index=False)
    ]


def fee_basis_events(table: pd.DataFrame) -> List[RawEvent]:
    """Convert the fee-basis inpatient table into RawEvents."""
    _require_columns(table, FEE_BASIS_COLUMNS, SOURCE_FEE_BASIS)
    table = _drop_open_and_undated(
        table, "treatment_start", "treatment_end", SOURCE_FEE_BASIS
    )
    return [
        RawEvent(
            patient_id=normalize_code(row.patient_id),
            source=SOURCE_FEE_BASIS,
            begin=_to_datetime(row.treatment_start),
            end=_to_datetime(row.treatment_end),
            specialty=normalize_code(row.purpose_of_visit),
        )
        for row in table[FEE_BASIS_COLUMNS].itertuples(index=False)
    ]


def group_events_by_patient(
    events: Iterable[RawEvent], cohort: Optional[Set[str]] = None
) -> Dict[str, List[RawEvent]]:
    """
    Group events per patient, optionally keeping only patients in the cohort.

    Args:
        events (Iterable[RawEvent]): Events of any number of patients.
        cohort (Optional[Set[str]], optional): Patient identifiers to keep.
            None keeps everyone.

    Returns:
        Dict[str, List[RawEvent]]: Events keyed by patient identifier, in
            first-seen order.
    """
    grouped: "OrderedDict[str, List[RawEvent]]" = OrderedDict()
    skipped = 0
    for event in events:
        if event.patient_id is None:
            skipped += 1
            continue
        if cohort is not None and event.patient_id not in cohort:
            continue
        grouped.setdefault(event.patient_id, []).append(event)
    if skipped:
        logger.warning(f"Skipped {skipped} event(s) without a patient identifier")
    return dict(grouped)


def load_cohort(path: str) -> Set[str]:
    """Read the set of patient identifiers from a CSV with a patient_id column."""
    cohort = pd.read_csv(path, dtype=str)
    cohort.columns = cohort.columns.str.lower()
    _require_columns(cohort, ["patient_id"], "cohort")
    ids = {normalize_code(v) for v in cohort["patient_id"]}
    ids.discard(None)
    return ids


def load_events(config: Optional[Dict[str, Any]] = None) -> Dict[str, List[RawEvent]]:
    """
    Load every configured source table and group the events per patient.

    Source tables missing from the 'data.raw' config section are skipped with a
    warning, as long as at least one is configured.

    Args:
        config (Optional[Dict[str, Any]], optional): Configuration dictionary.
            If None, loads the default configuration. Defaults to None.

    Returns:
        Dict[str, List[RawEvent]]: Events keyed by patient identifier.

    Raises:
        ValueError: If no source table is configured.
    """
    if config is None:
        config = load_config()

    readers = [
        ("inpatient", ["admit_time", "discharge_time"], inpatient_events),
        ("transfers", ["admit_time", "discharge_time", "transfer_time"], transfer_events),
        ("fee_basis", ["treatment_start", "treatment_end"], fee_basis_events),
    ]
    raw_section = config.get("data", {}).get("raw", {}) or {}

    events: List[RawEvent] = []
    loaded = 0
    for key, date_columns, convert in readers:
        if not raw_section.get(key):
            logger.warning(f"No '{key}' source table configured; skipping")
            continue
        path = get_data_path("raw", key, config)
        logger.info(f"Loading {key} events from {path}")
        source_events = convert(read_source_table(path, date_columns))
        logger.info(f"Loaded {len(source_events)} {key} event(s)")
        events.extend(source_events)
        loaded += 1

    if not loaded:
        raise ValueError("No encounter source tables configured under data.raw")

    cohort = None
    if raw_section.get("cohort"):
        cohort = load_cohort(get_data_path("raw", "cohort", config))
        logger.info(f"Restricting to a cohort of {len(cohort)} patient(s)")

    grouped = group_events_by_patient(events, cohort)
    logger.info(f"Grouped {len(events)} event(s) into {len(grouped)} patient(s)")
    return grouped
