"""
Data input and output for the acute stay project.
"""

from .events import group_events_by_patient, load_events, read_source_table
from .sinks import BaseStaySink, CsvStaySink, ParquetStaySink, get_sink
from .specialties import load_classification_table

__all__ = [
    "load_events",
    "read_source_table",
    "group_events_by_patient",
    "load_classification_table",
    "BaseStaySink",
    "CsvStaySink",
    "ParquetStaySink",
    "get_sink",
]
