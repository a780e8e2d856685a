"""
Segment construction.

Turns one patient's raw encounter events into atomic segments. Admissions with
ward transfers become chains split at each transfer; admissions without
transfers and fee-basis episodes become single segments. Every chain is
classified as soon as it is built so that only acute segments leave this
module.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional

from utils import get_logger

from .classification import SpecialtyClassifier
from .exceptions import InvalidSegmentError
from .model import (
    EVENT_SOURCES,
    SOURCE_FEE_BASIS,
    SOURCE_INPATIENT,
    SOURCE_TRANSFER,
    RawEvent,
    Segment,
)

logger = get_logger(__name__)


@dataclass
class SegmentStreams:
    """Acute segments of one patient, split by the stream they came from."""

    transfer: List[Segment] = field(default_factory=list)
    non_transfer: List[Segment] = field(default_factory=list)
    invalid: int = 0
    dropped: int = 0

    def is_empty(self) -> bool:
        return not self.transfer and not self.non_transfer


class SegmentBuilder:
    """
    Build acute segments for one patient.

    Args:
        classifier (SpecialtyClassifier): Loaded specialty classification table.
    """

    def __init__(self, classifier: SpecialtyClassifier) -> None:
        self.classifier = classifier
        self.logger = logger

    def build(self, events: Iterable[RawEvent]) -> SegmentStreams:
        """
        Build the transfer-derived and non-transfer-derived segment streams.

        Args:
            events (Iterable[RawEvent]): All events of one patient. Events
                without an end time must already have been removed.

        Returns:
            SegmentStreams: Acute segments per stream plus counts of invalid
                and non-acute segments that were excluded.
        """
        streams = SegmentStreams()
        admissions: "OrderedDict[Hashable, List[RawEvent]]" = OrderedDict()

        for event in events:
            if event.end is None:
                raise ValueError(
                    f"Event for patient {event.patient_id} has no end time; "
                    "open admissions must be filtered by the event source"
                )
            if event.source not in EVENT_SOURCES:
                raise ValueError(
                    f"Unknown event source {event.source!r}; expected one of {EVENT_SOURCES}"
                )
            if event.source == SOURCE_FEE_BASIS:
                # Fee-basis episodes never carry transfers
                chain = self._single_chain(event, streams)
                self._keep_acute(chain, streams.non_transfer, streams)
            else:
                admissions.setdefault(self._admission_key(event), []).append(event)

        for group in admissions.values():
            transfers = [e for e in group if e.source == SOURCE_TRANSFER]
            if transfers:
                chain = self._transfer_chain(group, transfers, streams)
                self._keep_acute(chain, streams.transfer, streams)
            else:
                for admission in group:
                    chain = self._single_chain(admission, streams)
                    self._keep_acute(chain, streams.non_transfer, streams)

        return streams

    @staticmethod
    def _admission_key(event: RawEvent) -> Hashable:
        if event.grouping_key is not None:
            return ("key", event.grouping_key)
        if event.source == SOURCE_TRANSFER:
            return ("span", event.begin, event.end)
        # Ungrouped direct admissions never collect transfers
        return ("event", id(event))

    def _make_segment(
        self, event: RawEvent, begin, end, specialty, streams: SegmentStreams
    ) -> Optional[Segment]:
        try:
            return Segment(event.patient_id, begin, end, specialty)
        except InvalidSegmentError as e:
            streams.invalid += 1
            self.logger.warning(f"Excluding invalid segment: {e}")
            return None

    def _single_chain(self, event: RawEvent, streams: SegmentStreams) -> List[Segment]:
        segment = self._make_segment(
            event, event.begin, event.end, event.specialty, streams
        )
        return [segment] if segment is not None else []

    def _transfer_chain(
        self,
        group: List[RawEvent],
        transfers: List[RawEvent],
        streams: SegmentStreams,
    ) -> List[Segment]:
        """
        Split one admission at its transfers.

        Segment 0 runs from admit to the first transfer under the admitting
        specialty, each following segment runs to the next transfer (or to
        discharge) under the specialty gained at the transfer that opened it.
        """
        admission = next((e for e in group if e.source == SOURCE_INPATIENT), transfers[0])
        timed = sorted(
            (t for t in transfers if t.transfer_time is not None),
            key=lambda t: t.transfer_time,
        )
        if len(timed) < len(transfers):
            self.logger.warning(
                f"Ignoring {len(transfers) - len(timed)} transfer(s) without a transfer "
                f"time for patient {admission.patient_id}"
            )
        if not timed:
            return self._single_chain(admission, streams)

        boundaries = [admission.begin] + [t.transfer_time for t in timed] + [admission.end]
        specialties = [admission.specialty] + [t.transfer_specialty for t in timed]

        chain = []
        for begin, end, specialty in zip(boundaries, boundaries[1:], specialties):
            segment = self._make_segment(admission, begin, end, specialty, streams)
            if segment is not None:
                chain.append(segment)
        return chain

    def _keep_acute(
        self, chain: List[Segment], target: List[Segment], streams: SegmentStreams
    ) -> None:
        for segment in chain:
            if self.classifier.is_acute(segment.specialty):
                target.append(segment)
            else:
                streams.dropped += 1


def dedupe_segments(segments: Iterable) -> List:
    """
    Collapse items with identical (begin, end) pairs, keeping the first seen.

    Works for both Segments and Stays; the result is sorted by (begin, end).
    """
    unique: Dict = {}
    for item in segments:
        unique.setdefault(item.interval, item)
    return [unique[k] for k in sorted(unique)]
