"""
Unit tests for the segments module.
"""

import unittest
from datetime import datetime

from stays.classification import SpecialtyClassifier
from stays.model import RawEvent
from stays.segments import SegmentBuilder, dedupe_segments


def ts(value):
    return datetime.fromisoformat(value)


def admission(key, begin, end, specialty, patient_id="P1"):
    return RawEvent(patient_id, "inpatient", ts(begin), ts(end), specialty, grouping_key=key)


def transfer(key, begin, end, specialty, at, gained, patient_id="P1"):
    return RawEvent(
        patient_id,
        "transfer",
        ts(begin),
        ts(end),
        specialty,
        grouping_key=key,
        transfer_time=ts(at) if at else None,
        transfer_specialty=gained,
    )


def fee_basis(begin, end, purpose, patient_id="P1"):
    return RawEvent(patient_id, "fee_basis", ts(begin), ts(end), purpose)


class TestSegmentBuilder(unittest.TestCase):
    """
    Test cases for SegmentBuilder.
    """

    def setUp(self):
        """
        Set up test fixtures.
        """
        self.classifier = SpecialtyClassifier(
            {
                "MED": "acute",
                "SURG": "acute",
                "ICU": "acute",
                "NH": "nonacute",
                "REHAB": "nonacute",
            }
        )
        self.builder = SegmentBuilder(self.classifier)

    def test_direct_admission_single_segment(self):
        streams = self.builder.build(
            [admission("A1", "2024-01-01T08:00", "2024-01-04T08:00", "MED")]
        )
        self.assertEqual(streams.transfer, [])
        self.assertEqual(len(streams.non_transfer), 1)
        segment = streams.non_transfer[0]
        self.assertEqual(segment.interval, (ts("2024-01-01T08:00"), ts("2024-01-04T08:00")))
        self.assertEqual(segment.specialty, "MED")
        self.assertEqual(segment.patient_id, "P1")

    def test_transfer_chain_split_at_transfers(self):
        begin, end = "2024-01-01T00:00", "2024-01-10T00:00"
        events = [
            admission("A1", begin, end, "MED"),
            # Deliberately out of order
            transfer("A1", begin, end, "MED", "2024-01-06T00:00", "SURG"),
            transfer("A1", begin, end, "MED", "2024-01-03T00:00", "ICU"),
        ]
        streams = self.builder.build(events)

        self.assertEqual(streams.non_transfer, [])
        self.assertEqual(
            [(s.begin, s.end, s.specialty) for s in streams.transfer],
            [
                (ts("2024-01-01T00:00"), ts("2024-01-03T00:00"), "MED"),
                (ts("2024-01-03T00:00"), ts("2024-01-06T00:00"), "ICU"),
                (ts("2024-01-06T00:00"), ts("2024-01-10T00:00"), "SURG"),
            ],
        )

    def test_transfer_chain_without_admission_row(self):
        begin, end = "2024-01-01T00:00", "2024-01-05T00:00"
        streams = self.builder.build(
            [transfer("A1", begin, end, "MED", "2024-01-02T00:00", "SURG")]
        )
        self.assertEqual(len(streams.transfer), 2)
        self.assertEqual(streams.transfer[0].specialty, "MED")
        self.assertEqual(streams.transfer[1].specialty, "SURG")

    def test_transfers_without_key_grouped_by_admission_span(self):
        begin, end = "2024-01-01T00:00", "2024-01-05T00:00"
        events = [
            transfer(None, begin, end, "MED", "2024-01-02T00:00", "SURG"),
            transfer(None, begin, end, "MED", "2024-01-03T00:00", "ICU"),
        ]
        streams = self.builder.build(events)
        self.assertEqual(len(streams.transfer), 3)

    def test_non_acute_segments_dropped_from_chain(self):
        begin, end = "2024-01-01T00:00", "2024-01-10T00:00"
        events = [
            transfer("A1", begin, end, "MED", "2024-01-03T00:00", "REHAB"),
            transfer("A1", begin, end, "MED", "2024-01-06T00:00", "SURG"),
        ]
        streams = self.builder.build(events)
        self.assertEqual([s.specialty for s in streams.transfer], ["MED", "SURG"])
        self.assertEqual(streams.dropped, 1)

    def test_unknown_specialty_never_acute(self):
        streams = self.builder.build(
            [
                admission("A1", "2024-01-01T00:00", "2024-01-02T00:00", "NOT-IN-TABLE"),
                admission("A2", "2024-02-01T00:00", "2024-02-02T00:00", None),
                fee_basis("2024-03-01T00:00", "2024-03-02T00:00", "NH"),
            ]
        )
        self.assertTrue(streams.is_empty())
        self.assertEqual(streams.dropped, 3)

    def test_fee_basis_single_segment(self):
        streams = self.builder.build(
            [fee_basis("2024-03-01T00:00", "2024-03-05T00:00", "SURG")]
        )
        self.assertEqual(streams.transfer, [])
        self.assertEqual(len(streams.non_transfer), 1)
        self.assertEqual(streams.non_transfer[0].specialty, "SURG")

    def test_invalid_segments_excluded(self):
        begin, end = "2024-01-01T00:00", "2024-01-10T00:00"
        events = [
            # Transfer at the admit time yields a zero-length first segment
            transfer("A1", begin, end, "MED", begin, "SURG"),
            fee_basis("2024-03-05T00:00", "2024-03-01T00:00", "MED"),
        ]
        with self.assertLogs("stays.segments", level="WARNING"):
            streams = self.builder.build(events)
        self.assertEqual(streams.invalid, 2)
        self.assertEqual(
            [(s.begin, s.end, s.specialty) for s in streams.transfer],
            [(ts(begin), ts(end), "SURG")],
        )
        self.assertEqual(streams.non_transfer, [])

    def test_transfer_without_time_falls_back_to_admission(self):
        begin, end = "2024-01-01T00:00", "2024-01-03T00:00"
        streams = self.builder.build([transfer("A1", begin, end, "MED", None, "SURG")])
        self.assertEqual(len(streams.transfer), 1)
        self.assertEqual(streams.transfer[0].specialty, "MED")

    def test_missing_end_time_rejected(self):
        event = RawEvent("P1", "inpatient", ts("2024-01-01T00:00"), None, "MED", "A1")
        with self.assertRaises(ValueError):
            self.builder.build([event])

    def test_unknown_source_rejected(self):
        event = RawEvent("P1", "outpatient", ts("2024-01-01T00:00"), ts("2024-01-02T00:00"), "MED")
        with self.assertRaises(ValueError) as ctx:
            self.builder.build([event])
        self.assertIn("outpatient", str(ctx.exception))
        self.assertIn("fee_basis", str(ctx.exception))


class TestDedupeSegments(unittest.TestCase):
    """
    Test cases for dedupe_segments.
    """

    def test_keeps_first_and_sorts(self):
        builder = SegmentBuilder(SpecialtyClassifier({"MED": "acute", "SURG": "acute"}))
        streams = builder.build(
            [
                fee_basis("2024-02-01T00:00", "2024-02-02T00:00", "MED"),
                fee_basis("2024-01-01T00:00", "2024-01-02T00:00", "SURG"),
                fee_basis("2024-01-01T00:00", "2024-01-02T00:00", "MED"),
            ]
        )
        result = dedupe_segments(streams.non_transfer)
        self.assertEqual(len(result), 2)
        self.assertEqual(result[0].specialty, "SURG")
        self.assertEqual(result[1].begin, ts("2024-02-01T00:00"))


if __name__ == "__main__":
    unittest.main()
