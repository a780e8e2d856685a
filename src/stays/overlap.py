"""
Precedence between the transfer-derived and non-transfer-derived stay streams.
"""

from datetime import datetime
from typing import List, Sequence

from utils import get_logger, is_debug_enabled

from .merging import DEFAULT_LAG_HOURS, merge_contiguous
from .model import Stay

logger = get_logger(__name__)


def _falls_within(moment: datetime, stay: Stay) -> bool:
    # Both endpoints inclusive
    return stay.begin <= moment <= stay.end


def intersects_any(stay: Stay, authoritative: Sequence[Stay]) -> bool:
    """True if the stay's begin or end lies inside (inclusive) any authoritative stay."""
    return any(
        _falls_within(stay.begin, other) or _falls_within(stay.end, other)
        for other in authoritative
    )


def resolve_overlaps(
    transfer_stays: Sequence[Stay],
    non_transfer_stays: Sequence[Stay],
    lag_hours: float = DEFAULT_LAG_HOURS,
) -> List[Stay]:
    """
    Combine both streams, letting transfer-derived stays win conflicts.

    Transfer-derived stays reconstruct ward-to-ward continuity the other
    sources cannot see, so a non-transfer stay touching one of them is
    discarded. Survivors are unioned with the transfer-derived stays and
    merged once more, since a survivor may now sit within the lag threshold of
    a transfer-derived stay.

    Args:
        transfer_stays (Sequence[Stay]): Merged transfer-derived stays.
        non_transfer_stays (Sequence[Stay]): Merged direct-admission and
            fee-basis stays.
        lag_hours (float, optional): Lag threshold for the final merge.

    Returns:
        List[Stay]: Final non-overlapping stays of the patient.
    """
    survivors = [s for s in non_transfer_stays if not intersects_any(s, transfer_stays)]
    if len(survivors) < len(non_transfer_stays) and is_debug_enabled():
        discarded = [s.interval for s in non_transfer_stays if s not in survivors]
        logger.debug(
            f"Discarded {len(discarded)} non-transfer stay(s) overlapping "
            f"transfer-derived stays: {discarded}"
        )
    return merge_contiguous(list(transfer_stays) + survivors, lag_hours)
