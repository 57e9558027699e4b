"""PersistenceLayer — recovery from and incremental writes to on-disk logs."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from src.core.exceptions import RecoveryIOError
from src.core.types import RETENTION_MS
from src.persistence.log_stream import LogStream
from src.persistence.state_file import StateFile, StateSnapshot

logger = structlog.get_logger(__name__)


@dataclass
class RecoveryResult:
    """What start-up recovery found on disk."""

    # event type -> retained timestamps, oldest first
    timestamps: dict[str, list[int]] = field(default_factory=dict)
    # raw contents of the state file
    state: dict[str, Any] = field(default_factory=dict)


def parse_log(text: str, cutoff: int) -> tuple[list[int], int]:
    """Parse one timestamp per line, keeping those ``>= cutoff``.

    Only newline-terminated lines count: a trailing line without its
    newline is an interrupted write and is ignored, as are blank lines.
    Returns the kept timestamps and the number of unparseable lines skipped.
    """
    kept: list[int] = []
    skipped = 0
    *complete, _partial = text.split("\n")
    for line in complete:
        line = line.strip()
        if not line:
            continue
        try:
            ts = int(line)
        except ValueError:
            skipped += 1
            continue
        if ts >= cutoff:
            kept.append(ts)
    return kept, skipped


class PersistenceLayer:
    """Owns the per-event log streams and the state file.

    Usage::

        layer = PersistenceLayer(root)
        result = await layer.recover({"db_error": root / "db_error.log"}, now)
        ...
        if layer.write("db_error", path, [ts]):
            store.commit("db_error")
        layer.save(snapshot)
        await layer.close()
    """

    def __init__(self, root: str | Path, high_water_mark: int = 16_384) -> None:
        self._root = Path(root)
        self._state_file = StateFile(self._root)
        self._high_water_mark = high_water_mark
        self._streams: dict[str, LogStream] = {}
        self._draining: dict[str, bool] = {}

    def stream(self, event_type: str) -> LogStream | None:
        return self._streams.get(event_type)

    def draining(self, event_type: str) -> bool:
        """Whether writes for ``event_type`` are held until its stream drains."""
        return self._draining.get(event_type, False)

    # ── Recovery ──────────────────────────────────────────────────

    async def recover(self, targets: Mapping[str, Path], now: int) -> RecoveryResult:
        """Read every log and the state file, then open a stream per log.

        All reads run concurrently and are joined first.  Streams (which
        truncate their files) are only opened once every read succeeded,
        so a failed recovery leaves the logs on disk untouched.  The first
        failure (in target order, state file last) is raised once as
        :class:`RecoveryIOError` carrying the timestamps read so far.
        """
        cutoff = now - RETENTION_MS
        keys = list(targets)
        paths = {key: Path(targets[key]) for key in keys}
        outcomes = await asyncio.gather(
            *(self._read_log(key, paths[key], cutoff) for key in keys),
            self._state_file.read(),
            return_exceptions=True,
        )

        result = RecoveryResult()
        for key, outcome in zip(keys, outcomes[:-1]):
            if not isinstance(outcome, BaseException):
                result.timestamps[key] = outcome  # type: ignore[assignment]
        _raise_first(outcomes, result)
        result.state = outcomes[-1]  # type: ignore[assignment]

        opened = await asyncio.gather(
            *(self._open_stream(key, paths[key]) for key in keys),
            return_exceptions=True,
        )
        _raise_first(opened, result)

        logger.info(
            "recovery_complete",
            logs=len(keys),
            occurrences=sum(len(ts) for ts in result.timestamps.values()),
            state_keys=len(result.state),
        )
        return result

    async def _read_log(self, event_type: str, path: Path, cutoff: int) -> list[int]:
        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, _read_text, path)
        except FileNotFoundError:
            text = ""

        timestamps, skipped = parse_log(text, cutoff)
        if skipped:
            logger.warning("log_lines_skipped", event_type=event_type, path=str(path), skipped=skipped)
        return timestamps

    async def _open_stream(self, event_type: str, path: Path) -> None:
        stream = await LogStream.open(path, self._high_water_mark)
        stream.on_drain(lambda: self._on_drain(event_type))
        self._streams[event_type] = stream
        self._draining[event_type] = False

    def _on_drain(self, event_type: str) -> None:
        self._draining[event_type] = False
        logger.debug("log_stream_drained", event_type=event_type)

    # ── Steady state ──────────────────────────────────────────────

    def write(
        self,
        event_type: str,
        log_path: Path | None,
        timestamps: Sequence[int],
    ) -> bool:
        """Try to hand ``timestamps`` to the event's log stream.

        Returns True when the data was accepted or there is nothing to
        persist, False when the caller must keep it queued and retry.
        """
        if log_path is None:
            return True

        stream = self._streams.get(event_type)
        if stream is None or stream.closed or self._draining.get(event_type, False):
            return False

        if not timestamps:
            return True

        data = "\n".join(str(ts) for ts in timestamps) + "\n"
        if not stream.write(data):
            self._draining[event_type] = True
            logger.debug("log_stream_backpressured", event_type=event_type)
        return True

    def save(self, snapshot: StateSnapshot) -> bool:
        """Write the state snapshot. I/O errors are logged, not raised."""
        try:
            self._state_file.write(snapshot)
        except OSError:
            logger.exception("state_save_failed", path=str(self._state_file.path))
            return False
        return True

    async def wait_drained(self) -> None:
        """Wait until every stream has handed its buffer to the file."""
        await asyncio.gather(*(stream.wait_drained() for stream in self._streams.values()))

    async def close(self) -> None:
        for event_type, stream in list(self._streams.items()):
            try:
                await stream.close()
            except OSError:
                logger.exception("log_stream_close_error", event_type=event_type)
        self._streams.clear()
        self._draining.clear()


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _raise_first(outcomes: Sequence[object], result: RecoveryResult) -> None:
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, (OSError, ValueError)):
                raise outcome
            logger.error("recovery_failed", error=str(outcome))
            raise RecoveryIOError(str(outcome), result.timestamps) from outcome
