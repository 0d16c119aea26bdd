"""
saleaetrace - Saleae logic analyzer capture ingestion.
Converts binary and CSV exports into tracks, counters and slices.
"""

__version__ = "0.1.0"
