"""Clinic Records: patient record normalization, code allocation and batch import."""

__version__ = "1.0.0"
