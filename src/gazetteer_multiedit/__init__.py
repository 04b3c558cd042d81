"""Batch multi-edit engine for BLPU/LPI address gazetteer records."""

__version__ = "0.1.0"
