"""OccurrenceStore — per-event-type committed and queued timestamp history."""

from __future__ import annotations

from collections.abc import Iterable

from src.tracker import range_index


class OccurrenceStore:
    """Ordered occurrence timestamps, split by persistence status.

    *committed* timestamps have been accepted by the event's log stream (or
    the event has no log, so memory is all there is).  *queued* timestamps
    are waiting for the next successful write.  Range queries run over
    ``committed + queued``, which callers keep non-decreasing by appending
    in time order.
    """

    def __init__(self) -> None:
        self._committed: dict[str, list[int]] = {}
        self._queued: dict[str, list[int]] = {}

    # ── Mutation ──────────────────────────────────────────────────

    def append(self, event_type: str, timestamp: int) -> None:
        self._queued.setdefault(event_type, []).append(timestamp)

    def restore(self, event_type: str, timestamps: Iterable[int]) -> None:
        """Put recovered history ahead of anything queued since start-up."""
        recovered = list(timestamps)
        self._queued[event_type] = recovered + self._queued.get(event_type, [])

    def commit(self, event_type: str) -> None:
        """Move the queued timestamps for ``event_type`` into committed."""
        queued = self._queued.pop(event_type, [])
        if queued:
            self._committed.setdefault(event_type, []).extend(queued)

    def prune(self, event_type: str, cutoff: int) -> int:
        """Drop committed timestamps older than ``cutoff``. Returns the count."""
        committed = self._committed.get(event_type)
        if not committed:
            return 0
        stale = range_index.find_lower_bound(cutoff, committed)
        if stale:
            del committed[:stale]
        return stale

    # ── Queries ───────────────────────────────────────────────────

    def queued(self, event_type: str) -> list[int]:
        return list(self._queued.get(event_type, []))

    def committed(self, event_type: str) -> list[int]:
        return list(self._committed.get(event_type, []))

    def pending(self) -> list[str]:
        """Event types with queued timestamps awaiting a write."""
        return [key for key, queued in self._queued.items() if queued]

    def history(self, event_type: str) -> list[int]:
        return self._committed.get(event_type, []) + self._queued.get(event_type, [])

    def count_in_range(
        self,
        event_type: str,
        start: int | None = None,
        end: int | None = None,
    ) -> int:
        """Count occurrences with ``start <= ts <= end`` (open bounds allowed)."""
        return range_index.count_in_range(self.history(event_type), start, end)
