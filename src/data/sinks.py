"""
Output sinks for finalized stays.

Sinks collect rows from the single orchestrator writer and persist them when
closed. The file is written to a temporary path and moved into place only once
it is complete, so a failed batch never leaves a partial result file.
"""

import os
import threading
from abc import ABC, abstractmethod
from typing import List, Sequence, Set, Tuple

import pandas as pd

from stays.exceptions import SinkWriteError
from stays.model import FinalStay
from utils import get_logger

logger = get_logger(__name__)

STAY_COLUMNS = ["patient_id", "admit_time", "discharge_time", "length_of_stay_days"]


class BaseStaySink(ABC):
    """
    Abstract base class for stay sinks.

    Args:
        output_path (str): Destination file.
    """

    def __init__(self, output_path: str) -> None:
        self.output_path = output_path
        self.accepted_patients: Set[str] = set()
        self._rows: List[Tuple] = []
        self._lock = threading.Lock()
        self._closed = False
        self.logger = logger

    @property
    def temp_path(self) -> str:
        return f"{self.output_path}.partial"

    def write(self, patient_id: str, stays: Sequence[FinalStay]) -> None:
        """
        Accept the finalized stays of one patient.

        A patient with no stays is recorded as written but adds no rows.

        Raises:
            SinkWriteError: If the sink was already closed or aborted.
        """
        with self._lock:
            if self._closed:
                raise SinkWriteError(
                    f"Cannot write patient {patient_id}: sink for {self.output_path} is closed",
                    self.accepted_patients,
                )
            self._rows.extend(stay.as_row() for stay in stays)
            self.accepted_patients.add(patient_id)

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self._rows, columns=STAY_COLUMNS)
        frame["length_of_stay_days"] = frame["length_of_stay_days"].astype("int64")
        return frame

    def close(self) -> None:
        """
        Persist every accepted row to the output file.

        Raises:
            SinkWriteError: If the file cannot be written; no output file is
                left behind.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            frame = self.to_frame()
            try:
                directory = os.path.dirname(self.output_path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                self._write_frame(frame, self.temp_path)
                os.replace(self.temp_path, self.output_path)
            except Exception as e:
                self._remove_temp()
                raise SinkWriteError(
                    f"Failed to write stays to {self.output_path}: {e}",
                    self.accepted_patients,
                ) from e
        self.logger.info(
            f"Saved {len(frame)} stay(s) for {len(self.accepted_patients)} patient(s) to {self.output_path}"
        )

    def abort(self) -> None:
        """Discard buffered rows without writing anything."""
        with self._lock:
            self._closed = True
            self._rows.clear()
            self._remove_temp()

    def _remove_temp(self) -> None:
        if os.path.exists(self.temp_path):
            os.remove(self.temp_path)

    @abstractmethod
    def _write_frame(self, frame: pd.DataFrame, path: str) -> None:
        """Write the complete frame to path."""


class CsvStaySink(BaseStaySink):
    """Write stays to a CSV file."""

    def _write_frame(self, frame: pd.DataFrame, path: str) -> None:
        frame.to_csv(path, index=False, date_format="%Y-%m-%d %H:%M:%S")


class ParquetStaySink(BaseStaySink):
    """Write stays to a Parquet file."""

    def _write_frame(self, frame: pd.DataFrame, path: str) -> None:
        frame.to_parquet(path, engine="pyarrow", index=False)


def get_sink(output_path: str) -> BaseStaySink:
    """
    Pick a sink from the output file extension.

    Raises:
        ValueError: If the extension is neither .csv nor .parquet/.pq.
    """
    extension = os.path.splitext(output_path)[1].lower()
    if extension == ".csv":
        return CsvStaySink(output_path)
    if extension in (".parquet", ".pq"):
        return ParquetStaySink(output_path)
    raise ValueError(f"Unsupported output format '{extension}' for {output_path}")
