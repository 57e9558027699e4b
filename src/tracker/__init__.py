"""Occurrence tracking — ordered timestamp storage and range counting."""

from src.tracker.range_index import count_in_range, find_lower_bound, find_range
from src.tracker.store import OccurrenceStore

__all__ = [
    "OccurrenceStore",
    "count_in_range",
    "find_lower_bound",
    "find_range",
]
