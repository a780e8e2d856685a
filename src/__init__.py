"""
Acute Inpatient Stay Reconstruction.

This package rebuilds contiguous acute inpatient stays from fragmented
admission, ward-transfer and fee-basis encounter records, and computes the
length of each stay in days.
"""

__version__ = "0.1.0"
