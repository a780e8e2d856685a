"""
Stay segmentation and interval-merging engine.
"""

from .classification import SpecialtyClassifier
from .determine_los import BatchResult, PatientResult, determine_los, process_patient
from .exceptions import (
    DuplicateBeginAmbiguityError,
    InvalidSegmentError,
    InvalidStayError,
    ResidualNestingError,
    SinkWriteError,
    StayEngineError,
)
from .los import compute_length_of_stay, length_of_stay_days
from .merging import merge_contiguous
from .model import Category, FinalStay, RawEvent, Segment, Stay
from .nesting import remove_nested_segments
from .overlap import resolve_overlaps
from .segments import SegmentBuilder, SegmentStreams

__all__ = [
    "Category",
    "RawEvent",
    "Segment",
    "Stay",
    "FinalStay",
    "SpecialtyClassifier",
    "SegmentBuilder",
    "SegmentStreams",
    "remove_nested_segments",
    "merge_contiguous",
    "resolve_overlaps",
    "compute_length_of_stay",
    "length_of_stay_days",
    "process_patient",
    "determine_los",
    "PatientResult",
    "BatchResult",
    "StayEngineError",
    "InvalidSegmentError",
    "ResidualNestingError",
    "DuplicateBeginAmbiguityError",
    "InvalidStayError",
    "SinkWriteError",
]
