"""
Data model for the stay reconstruction engine.

RawEvent rows come from the event source and are never modified. Segments are
built from them per patient, merged into Stays, and Stays are finalized with
their length in days.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .exceptions import InvalidSegmentError, InvalidStayError

SOURCE_INPATIENT = "inpatient"
SOURCE_TRANSFER = "transfer"
SOURCE_FEE_BASIS = "fee_basis"

EVENT_SOURCES = (SOURCE_INPATIENT, SOURCE_TRANSFER, SOURCE_FEE_BASIS)


class Category(str, Enum):
    """Specialty category."""

    ACUTE = "acute"
    NONACUTE = "nonacute"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RawEvent:
    """
    One row from a source table.

    For inpatient and transfer rows, `begin`/`end` are the admission's admit and
    discharge times and `specialty` is the admitting specialty. Transfer rows
    additionally carry the transfer time and the specialty gained at the
    transfer. For fee-basis rows, `begin`/`end` are treatment start and end and
    `specialty` is the purpose-of-visit code.
    """

    patient_id: str
    source: str
    begin: datetime
    end: Optional[datetime]
    specialty: Optional[str]
    grouping_key: Optional[str] = None
    transfer_time: Optional[datetime] = None
    transfer_specialty: Optional[str] = None


@dataclass(frozen=True)
class Segment:
    """An atomic span of time spent under one specialty."""

    patient_id: str
    begin: datetime
    end: datetime
    specialty: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.begin < self.end:
            raise InvalidSegmentError(
                f"Segment for patient {self.patient_id} has begin {self.begin} "
                f"not before end {self.end} (specialty {self.specialty})"
            )

    @property
    def interval(self) -> Tuple[datetime, datetime]:
        return (self.begin, self.end)


@dataclass(frozen=True)
class Stay:
    """One continuous acute hospitalization after merging."""

    patient_id: str
    begin: datetime
    end: datetime

    @property
    def interval(self) -> Tuple[datetime, datetime]:
        return (self.begin, self.end)


@dataclass(frozen=True)
class FinalStay:
    """A merged stay with its length of stay in whole days."""

    patient_id: str
    begin: datetime
    end: datetime
    length_of_stay_days: int

    def __post_init__(self) -> None:
        if not self.begin < self.end:
            raise InvalidStayError(
                f"Stay for patient {self.patient_id} has begin {self.begin} "
                f"not before end {self.end}"
            )
        if self.length_of_stay_days < 0:
            raise InvalidStayError(
                f"Negative length of stay {self.length_of_stay_days} "
                f"for patient {self.patient_id}"
            )

    def as_row(self) -> Tuple[str, datetime, datetime, int]:
        return (self.patient_id, self.begin, self.end, self.length_of_stay_days)
