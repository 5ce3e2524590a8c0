"""Shift resolution, delay/overtime calculation and attendance aggregation."""

__version__ = "0.1.0"
