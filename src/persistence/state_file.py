"""StateFile — the JSON snapshot of last-alert timestamps per event type."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

STATE_FILENAME = "_state"

# event type -> {"minute": ts | None, "hour": ts | None, "day": ts | None}
StateSnapshot = dict[str, dict[str, int | None]]


class StateFile:
    """Reads and writes ``{root}/_state``."""

    def __init__(self, root: str | Path) -> None:
        self._path = Path(root) / STATE_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    async def read(self) -> dict[str, Any]:
        """Load the snapshot. A missing file is an empty snapshot.

        Raises:
            OSError: The file exists but could not be read.
            ValueError: The file is not a JSON object.
        """
        loop = asyncio.get_running_loop()
        try:
            text = await loop.run_in_executor(None, self._read_text)
        except FileNotFoundError:
            return {}
        data = json.loads(text) if text.strip() else {}
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return data

    def _read_text(self) -> str:
        return self._path.read_text(encoding="utf-8")

    def write(self, snapshot: StateSnapshot) -> None:
        """Synchronously replace the snapshot on disk."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(snapshot, f)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self._path)
