"""
Unit tests for the sinks module.
"""

import os
import tempfile
import unittest
from datetime import datetime
from unittest.mock import patch

import pandas as pd

from data.sinks import CsvStaySink, ParquetStaySink, get_sink
from stays.exceptions import SinkWriteError
from stays.model import FinalStay


class TestStaySinks(unittest.TestCase):
    """
    Test cases for the CSV and Parquet stay sinks.
    """

    def setUp(self):
        """
        Set up test fixtures.
        """
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.stays = [
            FinalStay("P1", datetime(2024, 1, 1, 8), datetime(2024, 1, 4, 8), 3),
            FinalStay("P1", datetime(2024, 2, 1), datetime(2024, 2, 2, 12), 2),
        ]

    def _path(self, name):
        return os.path.join(self.tmp.name, "out", name)

    def test_csv_sink_writes_on_close(self):
        path = self._path("stays.csv")
        sink = CsvStaySink(path)
        sink.write("P1", self.stays)
        sink.write("P2", [])
        self.assertFalse(os.path.exists(path))

        sink.close()
        self.assertTrue(os.path.exists(path))
        self.assertFalse(os.path.exists(sink.temp_path))
        self.assertEqual(sink.accepted_patients, {"P1", "P2"})

        frame = pd.read_csv(path, dtype={"patient_id": str})
        self.assertEqual(
            list(frame.columns),
            ["patient_id", "admit_time", "discharge_time", "length_of_stay_days"],
        )
        self.assertEqual(frame["patient_id"].tolist(), ["P1", "P1"])
        self.assertEqual(frame["admit_time"].tolist()[0], "2024-01-01 08:00:00")
        self.assertEqual(frame["length_of_stay_days"].tolist(), [3, 2])

    def test_close_is_idempotent(self):
        path = self._path("stays.csv")
        sink = CsvStaySink(path)
        sink.write("P1", self.stays)
        sink.close()
        sink.close()
        self.assertEqual(len(pd.read_csv(path)), 2)

    def test_write_after_close_raises(self):
        sink = CsvStaySink(self._path("stays.csv"))
        sink.close()
        with self.assertRaises(SinkWriteError):
            sink.write("P1", self.stays)

    def test_empty_sink_writes_header_only(self):
        path = self._path("stays.csv")
        sink = CsvStaySink(path)
        sink.close()
        self.assertEqual(len(pd.read_csv(path)), 0)

    def test_failed_write_leaves_no_output(self):
        path = self._path("stays.csv")
        sink = CsvStaySink(path)
        sink.write("P1", self.stays)

        with patch.object(CsvStaySink, "_write_frame", side_effect=OSError("disk full")):
            with self.assertRaises(SinkWriteError) as ctx:
                sink.close()

        self.assertEqual(ctx.exception.accepted_patients, {"P1"})
        self.assertFalse(os.path.exists(path))
        self.assertFalse(os.path.exists(sink.temp_path))

    def test_abort_discards_rows(self):
        path = self._path("stays.csv")
        sink = CsvStaySink(path)
        sink.write("P1", self.stays)
        sink.abort()
        sink.close()
        self.assertFalse(os.path.exists(path))

    def test_parquet_sink(self):
        path = self._path("stays.parquet")
        sink = ParquetStaySink(path)
        sink.write("P1", self.stays)
        sink.close()

        frame = pd.read_parquet(path)
        self.assertEqual(len(frame), 2)
        self.assertEqual(frame.loc[0, "admit_time"], pd.Timestamp(2024, 1, 1, 8))
        self.assertEqual(frame["length_of_stay_days"].tolist(), [3, 2])


class TestGetSink(unittest.TestCase):
    """
    Test cases for get_sink.
    """

    def test_sink_chosen_by_extension(self):
        self.assertIsInstance(get_sink("out/stays.csv"), CsvStaySink)
        self.assertIsInstance(get_sink("out/stays.parquet"), ParquetStaySink)
        self.assertIsInstance(get_sink("out/stays.PQ"), ParquetStaySink)

    def test_unsupported_extension(self):
        with self.assertRaises(ValueError):
            get_sink("out/stays.xlsx")


if __name__ == "__main__":
    unittest.main()
