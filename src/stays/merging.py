"""
Contiguity merging.

Fuses a patient's segments (or stays) into maximal chains in which every gap
between consecutive items is strictly below the lag threshold. Items sharing a
begin timestamp are resolved with a two-pass policy: the shorter of each pair
merges first and the longer is reconsidered afterwards.
"""

from collections import OrderedDict
from datetime import datetime
from typing import List, Sequence, Tuple

from utils import get_logger, is_debug_enabled

from .exceptions import DuplicateBeginAmbiguityError
from .model import Stay
from .segments import dedupe_segments

logger = get_logger(__name__)

DEFAULT_LAG_HOURS = 24.0


def gap_hours(previous_end: datetime, next_begin: datetime) -> float:
    """Hours from the end of one item to the begin of the next (negative on overlap)."""
    return (next_begin - previous_end).total_seconds() / 3600.0


def validate_lag_hours(lag_hours: float) -> float:
    try:
        value = float(lag_hours)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Lag threshold must be a number, got {lag_hours!r}") from e
    if not value > 0:
        raise ValueError(f"Lag threshold must be > 0 hours, got {lag_hours}")
    return value


def _contiguity_flags(ordered: Sequence, lag_hours: float) -> List[bool]:
    """
    Mark each item contiguous-with-previous when its gap is below the threshold.

    The gap is measured from the latest end seen so far, which is the previous
    item's end whenever begin order and end order agree.
    """
    # The first item always opens a chain
    flags = [False]
    reach = ordered[0].end
    for item in ordered[1:]:
        flags.append(gap_hours(reach, item.begin) < lag_hours)
        if item.end > reach:
            reach = item.end
    return flags


def _core_merge(items: Sequence, lag_hours: float) -> List[Stay]:
    """
    Merge items with no unresolved begin ties into stays.

    Walks backwards from the latest item, absorbing every item marked
    contiguous-with-previous and remembering the chain's end, and emits a stay
    when the chain start is reached.
    """
    if not items:
        return []
    ordered = sorted(items, key=lambda s: (s.begin, s.end))
    flags = _contiguity_flags(ordered, lag_hours)

    stays: List[Stay] = []
    idx = len(ordered) - 1
    while idx >= 0:
        chain_end = ordered[idx].end
        # Absorb predecessors until the item that opened the chain
        while flags[idx]:
            idx -= 1
            if ordered[idx].end > chain_end:
                chain_end = ordered[idx].end
        start = ordered[idx]
        stays.append(Stay(start.patient_id, start.begin, chain_end))
        idx -= 1

    stays.reverse()
    return stays


def split_begin_ties(items: Sequence) -> Tuple[List, List]:
    """
    Split items into an active and a deferred set.

    For every pair sharing a begin, the shorter goes to the active set and the
    longer to the deferred set; all other items are active.

    Raises:
        DuplicateBeginAmbiguityError: If more than two items share a begin.
    """
    by_begin: "OrderedDict[datetime, List]" = OrderedDict()
    for item in items:
        by_begin.setdefault(item.begin, []).append(item)

    active: List = []
    deferred: List = []
    for begin, group in by_begin.items():
        if len(group) > 2:
            raise DuplicateBeginAmbiguityError(group[0].patient_id, begin, len(group))
        if len(group) == 2:
            shorter, longer = sorted(group, key=lambda s: s.end)
            # Ends differ; identical pairs were de-duplicated upstream
            active.append(shorter)
            deferred.append(longer)
        else:
            active.extend(group)
    return active, deferred


def merge_contiguous(items: Sequence, lag_hours: float = DEFAULT_LAG_HOURS) -> List[Stay]:
    """
    Merge one patient's segments or stays into the minimal set of stays.

    Args:
        items (Sequence): Segments or stays of a single patient, ideally with
            nested items already removed.
        lag_hours (float, optional): Gaps strictly shorter than this many hours
            are bridged. Defaults to 24.

    Returns:
        List[Stay]: Merged stays sorted by begin. Merging the result again
            returns the same stays.

    Raises:
        ValueError: If lag_hours is not positive.
        DuplicateBeginAmbiguityError: If more than two items share a begin.
    """
    lag_hours = validate_lag_hours(lag_hours)
    unique = dedupe_segments(items)
    if not unique:
        return []

    active, deferred = split_begin_ties(unique)
    # First pass without the longer member of each tie
    stays = _core_merge(active, lag_hours)
    if deferred:
        if is_debug_enabled():
            logger.debug(
                f"Reconsidering {len(deferred)} deferred tie(s) for patient "
                f"{unique[0].patient_id}: {[d.interval for d in deferred]}"
            )
        # Second pass: fold the deferred items back in
        combined = stays + [Stay(d.patient_id, d.begin, d.end) for d in deferred]
        stays = _core_merge(dedupe_segments(combined), lag_hours)
    return stays
