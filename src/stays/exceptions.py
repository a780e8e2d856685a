"""
Exceptions raised by the stay reconstruction engine.
"""

from typing import Iterable, Optional, Set


class StayEngineError(Exception):
    """Base class for all stay engine errors."""


class InvalidSegmentError(StayEngineError):
    """A segment whose begin is not strictly before its end."""


class ResidualNestingError(InvalidSegmentError):
    """Begin order and end order still disagree after nested segments were removed."""


class DuplicateBeginAmbiguityError(StayEngineError):
    """
    More than two segments share one begin timestamp.

    The tie policy only covers pairs, so the patient is set aside for manual
    review instead of guessing a resolution.
    """

    def __init__(self, patient_id: Optional[str], begin, count: int) -> None:
        self.patient_id = patient_id
        self.begin = begin
        self.count = count
        super().__init__(
            f"{count} segments share begin {begin} for patient {patient_id}; "
            "at most two are supported"
        )


class InvalidStayError(StayEngineError):
    """A merged stay whose end is not after its begin."""


class SinkWriteError(StayEngineError):
    """
    Writing finalized stays failed; the batch output is discarded.

    `accepted_patients` holds the patients the sink took before the failure.
    None of their rows were persisted.
    """

    def __init__(self, message: str, accepted_patients: Optional[Iterable[str]] = None):
        self.accepted_patients: Set[str] = set(accepted_patients or ())
        super().__init__(message)
