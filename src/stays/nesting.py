"""
Removal of nested segments.

A segment lying entirely inside another segment of the same patient adds no
time to the patient's stay and would break the ordering the merger relies on,
so it is discarded and the enclosing segment kept. Nesting is detected by
ranking the segments twice, once by begin and once by end: with outer segments
sorted first on begin ties and last on end ties, the two orders agree exactly
when nothing is nested.
"""

from typing import Dict, List, Sequence, Set, Tuple

from utils import get_logger, is_debug_enabled

from .exceptions import ResidualNestingError
from .segments import dedupe_segments

logger = get_logger(__name__)


def _begin_order(segments: Sequence) -> List:
    return sorted(segments, key=lambda s: (s.begin, s.end))


def _end_order(segments: Sequence) -> List:
    # Stable sort: on equal ends the later begin (the inner one) comes first
    by_begin_desc = sorted(segments, key=lambda s: s.begin, reverse=True)
    return sorted(by_begin_desc, key=lambda s: s.end)


def _contains(outer, inner) -> bool:
    return outer.begin < inner.begin and inner.end <= outer.end


def _nesting_pass(segments: Sequence) -> Tuple[List, int]:
    """
    Run one ranking pass and drop the inner member of every crossing pair.

    A segment whose begin rank precedes its end rank is the outer member of a
    nested pair; the segment holding the same rank in the end order is its
    inner member. Pairs are resolved independently of each other.
    """
    begin_order = _begin_order(segments)
    end_order = _end_order(segments)
    end_rank: Dict = {s.interval: rank for rank, s in enumerate(end_order)}

    inner: Set = set()
    # Keyed by interval; duplicates were collapsed before the pass
    for rank, segment in enumerate(begin_order):
        if rank < end_rank[segment.interval]:
            candidate = end_order[rank]
            if _contains(segment, candidate):
                inner.add(candidate.interval)

    return [s for s in begin_order if s.interval not in inner], len(inner)


def assert_no_residual_nesting(segments: Sequence) -> None:
    """
    Check that begin order and end order agree.

    Segments sharing a begin are left to the merger's tie policy and are not
    considered nested here.

    Raises:
        ResidualNestingError: If any segment still lies inside another.
    """
    begin_order = _begin_order(segments)
    end_order = _end_order(segments)
    for by_begin, by_end in zip(begin_order, end_order):
        if by_begin.interval != by_end.interval:
            raise ResidualNestingError(
                f"Nested segments remain for patient {by_begin.patient_id}: "
                f"{by_begin.interval} ranks before {by_end.interval} by begin "
                "but not by end"
            )


def remove_nested_segments(segments: Sequence) -> List:
    """
    Delete every segment enclosed within another segment's interval.

    Args:
        segments (Sequence): Segments (or stays) of one patient.

    Returns:
        List: The outer and non-nested segments, de-duplicated and sorted by
            (begin, end).

    Raises:
        ResidualNestingError: If nesting survives the resolution passes.
    """
    remaining = dedupe_segments(segments)
    total_removed = 0
    # Each pass removes at least one pair or ends the loop
    while True:
        remaining, removed = _nesting_pass(remaining)
        if not removed:
            break
        total_removed += removed

    remaining = dedupe_segments(remaining)
    assert_no_residual_nesting(remaining)

    if total_removed and is_debug_enabled():
        kept = {s.interval for s in remaining}
        removed = sorted(s.interval for s in segments if s.interval not in kept)
        logger.debug(
            f"Removed {total_removed} nested segment(s) for patient "
            f"{remaining[0].patient_id}: {removed}"
        )
    return remaining
