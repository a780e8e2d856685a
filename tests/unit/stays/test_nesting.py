"""
Unit tests for the nesting module.
"""

import unittest
from datetime import datetime
from unittest.mock import patch

from stays.exceptions import InvalidSegmentError, ResidualNestingError
from stays.model import Segment
from stays.nesting import assert_no_residual_nesting, remove_nested_segments


def seg(begin, end, specialty="MED"):
    return Segment("P1", datetime.fromisoformat(begin), datetime.fromisoformat(end), specialty)


def intervals(segments):
    return [(s.begin, s.end) for s in segments]


class TestRemoveNestedSegments(unittest.TestCase):
    """
    Test cases for remove_nested_segments.
    """

    def test_inner_segment_removed(self):
        outer = seg("2024-01-01T00:00", "2024-01-10T00:00")
        inner = seg("2024-01-03T00:00", "2024-01-05T00:00")
        self.assertEqual(remove_nested_segments([inner, outer]), [outer])

    def test_several_inner_segments(self):
        outer = seg("2024-01-01T00:00", "2024-01-10T00:00")
        first = seg("2024-01-02T00:00", "2024-01-03T00:00")
        second = seg("2024-01-04T00:00", "2024-01-05T00:00")
        after = seg("2024-01-12T00:00", "2024-01-14T00:00")
        result = remove_nested_segments([first, outer, after, second])
        self.assertEqual(result, [outer, after])

    def test_multiple_nesting_levels(self):
        outer = seg("2024-01-01T00:00", "2024-01-20T00:00")
        middle = seg("2024-01-02T00:00", "2024-01-10T00:00")
        inner = seg("2024-01-03T00:00", "2024-01-04T00:00")
        self.assertEqual(remove_nested_segments([inner, middle, outer]), [outer])

    def test_shared_end_is_nested(self):
        outer = seg("2024-01-01T00:00", "2024-01-10T00:00")
        inner = seg("2024-01-04T00:00", "2024-01-10T00:00")
        self.assertEqual(remove_nested_segments([outer, inner]), [outer])

    def test_shared_begin_left_for_tie_policy(self):
        longer = seg("2024-02-01T00:00", "2024-02-03T00:00")
        shorter = seg("2024-02-01T00:00", "2024-02-01T12:00")
        self.assertEqual(remove_nested_segments([longer, shorter]), [shorter, longer])

    def test_overlapping_segments_kept(self):
        first = seg("2024-01-01T00:00", "2024-01-05T00:00")
        second = seg("2024-01-03T00:00", "2024-01-08T00:00")
        self.assertEqual(remove_nested_segments([second, first]), [first, second])

    def test_duplicates_collapsed(self):
        first = seg("2024-01-01T00:00", "2024-01-05T00:00", "MED")
        copy = seg("2024-01-01T00:00", "2024-01-05T00:00", "SURG")
        result = remove_nested_segments([first, copy])
        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].specialty, "MED")

    def test_outer_segment_overlapping_a_neighbour(self):
        outer = seg("2024-01-01T00:00", "2024-01-10T00:00")
        neighbour = seg("2024-01-05T00:00", "2024-01-20T00:00")
        inner = seg("2024-01-06T00:00", "2024-01-08T00:00")
        self.assertEqual(
            intervals(remove_nested_segments([outer, neighbour, inner])),
            intervals([outer, neighbour]),
        )

    def test_empty(self):
        self.assertEqual(remove_nested_segments([]), [])


class TestResidualNestingCheck(unittest.TestCase):
    """
    Test cases for assert_no_residual_nesting.
    """

    def test_nested_input_rejected(self):
        segments = [
            seg("2024-01-01T00:00", "2024-01-10T00:00"),
            seg("2024-01-03T00:00", "2024-01-05T00:00"),
        ]
        with self.assertRaises(ResidualNestingError):
            assert_no_residual_nesting(segments)
        self.assertTrue(issubclass(ResidualNestingError, InvalidSegmentError))

    def test_clean_input_accepted(self):
        segments = [
            seg("2024-01-01T00:00", "2024-01-05T00:00"),
            seg("2024-01-03T00:00", "2024-01-08T00:00"),
            seg("2024-02-01T00:00", "2024-02-02T00:00"),
            seg("2024-02-01T00:00", "2024-02-03T00:00"),
        ]
        assert_no_residual_nesting(segments)


class TestNestingDebugOutput(unittest.TestCase):
    """
    Test cases for the debug listing of removed segments.
    """

    def setUp(self):
        """
        Set up test fixtures.
        """
        self.segments = [
            seg("2024-01-01T00:00", "2024-01-10T00:00"),
            seg("2024-01-03T00:00", "2024-01-05T00:00"),
        ]

    @patch("stays.nesting.is_debug_enabled", return_value=True)
    def test_removed_intervals_listed_when_debug_enabled(self, mock_debug):
        with self.assertLogs("stays.nesting", level="DEBUG") as logs:
            remove_nested_segments(self.segments)
        self.assertEqual(len(logs.output), 1)
        self.assertIn("Removed 1 nested segment(s) for patient P1", logs.output[0])
        self.assertIn("2024, 1, 3", logs.output[0])

    @patch("stays.nesting.logger")
    @patch("stays.nesting.is_debug_enabled", return_value=False)
    def test_no_debug_output_when_disabled(self, mock_debug, mock_logger):
        result = remove_nested_segments(self.segments)
        self.assertEqual(len(result), 1)
        mock_logger.debug.assert_not_called()


if __name__ == "__main__":
    unittest.main()
