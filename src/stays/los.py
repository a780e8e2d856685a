"""
Length of stay calculation.
"""

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Sequence, Tuple

from utils import get_logger

from .exceptions import InvalidStayError
from .model import FinalStay, Stay

logger = get_logger(__name__)

_MICROSECONDS_PER_DAY = Decimal(24 * 60 * 60 * 1_000_000)


def length_of_stay_days(begin: datetime, end: datetime) -> int:
    """Whole days between begin and end, rounding half days up."""
    # Integer microseconds keep the day fraction exact
    microseconds = (end - begin) // timedelta(microseconds=1)
    days = Decimal(microseconds) / _MICROSECONDS_PER_DAY
    return int(days.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_length_of_stay(stays: Sequence[Stay]) -> Tuple[List[FinalStay], List[str]]:
    """
    Finalize stays with their length of stay in days.

    A stay whose end is not after its begin points to an upstream data defect;
    it is flagged and left out instead of being emitted with zero days.

    Args:
        stays (Sequence[Stay]): Merged stays of one patient.

    Returns:
        Tuple[List[FinalStay], List[str]]: Finalized stays and flag messages
            for the stays that were left out.
    """
    finalized: List[FinalStay] = []
    flags: List[str] = []
    for stay in stays:
        try:
            days = length_of_stay_days(stay.begin, stay.end)
            finalized.append(FinalStay(stay.patient_id, stay.begin, stay.end, days))
        except InvalidStayError as e:
            logger.warning(f"Flagged stay not emitted: {e}")
            flags.append(str(e))
    return finalized, flags
