"""LogStream — buffered append stream with backpressure and drain signalling."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

import structlog

logger = structlog.get_logger(__name__)

DrainListener = Callable[[], None]

_RETRY_DELAY_SECS = 1.0


class LogStream:
    """Text stream whose writes never block the caller.

    ``write()`` accepts data into an in-memory buffer and schedules a
    background task that hands it to the file through the running loop's
    default executor.  Once the buffer reaches ``high_water_mark``
    characters the call returns False; the caller should hold further data
    until the drain listeners fire, which happens as soon as the buffer
    empties again.

    Usage::

        stream = await LogStream.open(path)
        stream.on_drain(lambda: ...)
        if not stream.write("1700000000000\\n"):
            ...  # wait for drain
        await stream.close()
    """

    def __init__(self, path: Path, high_water_mark: int = 16_384) -> None:
        self._path = path
        self._high_water_mark = high_water_mark
        self._file: TextIO | None = None
        self._buffer: list[str] = []
        self._buffered = 0
        self._needs_drain = False
        self._task: asyncio.Task[None] | None = None
        self._retry: asyncio.TimerHandle | None = None
        self._retry_loop: asyncio.AbstractEventLoop | None = None
        self._listeners: list[DrainListener] = []
        self._closed = False

    @classmethod
    async def open(cls, path: str | Path, high_water_mark: int = 16_384) -> LogStream:
        """Create (or truncate) ``path`` and return a stream writing to it."""
        stream = cls(Path(path), high_water_mark)
        loop = asyncio.get_running_loop()
        stream._file = await loop.run_in_executor(None, stream._open_file)
        return stream

    def _open_file(self) -> TextIO:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        return open(self._path, "w", encoding="utf-8")

    # ── Properties ────────────────────────────────────────────────

    @property
    def path(self) -> Path:
        return self._path

    @property
    def buffered(self) -> int:
        """Characters accepted but not yet handed to the file."""
        return self._buffered

    @property
    def closed(self) -> bool:
        return self._closed

    # ── Writing ───────────────────────────────────────────────────

    def on_drain(self, listener: DrainListener) -> None:
        """Register a callback fired when a full buffer has been emptied."""
        self._listeners.append(listener)

    def write(self, data: str) -> bool:
        """Accept ``data``. Returns False once the buffer is full.

        Inside a running loop the data is flushed in the background.
        Without one (a synchronous caller) it is written before returning.
        """
        if self._closed or self._file is None:
            raise ValueError(f"write to closed log stream {self._path}")

        self._buffer.append(data)
        self._buffered += len(data)
        self._schedule_flush()

        if self._buffered >= self._high_water_mark:
            self._needs_drain = True
            return False
        return True

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._flush_now()
            return

        if self._retry is not None and self._retry_loop is loop:
            return
        if self._task is None or self._task.done() or self._task.get_loop() is not loop:
            self._task = loop.create_task(self._flush())

    async def _flush(self) -> None:
        loop = asyncio.get_running_loop()
        while self._buffer:
            chunk = "".join(self._buffer)
            self._buffer.clear()
            try:
                await loop.run_in_executor(None, self._write_chunk, chunk)
            except OSError:
                # keep the data and try again later
                self._buffer.insert(0, chunk)
                logger.exception("log_stream_write_failed", path=str(self._path))
                self._retry = loop.call_later(_RETRY_DELAY_SECS, self._retry_flush)
                self._retry_loop = loop
                return
            self._buffered -= len(chunk)

        self._signal_drain()

    def _flush_now(self) -> None:
        if not self._buffer:
            return
        chunk = "".join(self._buffer)
        try:
            self._write_chunk(chunk)
        except OSError:
            # stays buffered for the next write or close
            logger.exception("log_stream_write_failed", path=str(self._path))
            return
        self._buffer.clear()
        self._buffered = 0
        self._signal_drain()

    def _signal_drain(self) -> None:
        if self._needs_drain:
            self._needs_drain = False
            for listener in self._listeners:
                listener()

    def _retry_flush(self) -> None:
        self._retry = None
        self._retry_loop = None
        self._schedule_flush()

    def _write_chunk(self, chunk: str) -> None:
        assert self._file is not None
        self._file.write(chunk)
        self._file.flush()

    # ── Lifecycle ─────────────────────────────────────────────────

    async def wait_drained(self) -> None:
        """Wait until everything accepted so far has reached the file."""
        loop = asyncio.get_running_loop()
        while self._task is not None and not self._task.done() and self._task.get_loop() is loop:
            await self._task

    async def close(self) -> None:
        if self._closed:
            return
        await self.wait_drained()
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None
            self._retry_loop = None
        self._closed = True
        if self._file is not None:
            loop = asyncio.get_running_loop()
            if self._buffer:
                chunk = "".join(self._buffer)
                self._buffer.clear()
                try:
                    await loop.run_in_executor(None, self._write_chunk, chunk)
                except OSError:
                    logger.exception(
                        "log_stream_data_dropped",
                        path=str(self._path),
                        chars=len(chunk),
                    )
                self._buffered = 0
            await loop.run_in_executor(None, self._file.close)
            self._file = None
