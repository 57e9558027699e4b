"""Tests for PersistenceLayer — recovery, retention, write attempts, save."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.core.exceptions import RecoveryIOError
from src.core.types import RETENTION_MS
from src.persistence.layer import PersistenceLayer, parse_log

NOW = 1_700_000_000_000


# ── parse_log ───────────────────────────────────────────────────


class TestParseLog:
    def test_parses_lines(self) -> None:
        assert parse_log("1\n2\n3\n", 0) == ([1, 2, 3], 0)

    def test_empty_text(self) -> None:
        assert parse_log("", 0) == ([], 0)

    def test_partial_trailing_line_ignored(self) -> None:
        assert parse_log("10\n20\n3", 0) == ([10, 20], 0)

    def test_blank_lines_ignored(self) -> None:
        assert parse_log("10\n\n20\n", 0) == ([10, 20], 0)

    def test_garbage_counted(self) -> None:
        assert parse_log("10\nnope\n20\n", 0) == ([10, 20], 1)

    def test_cutoff_is_inclusive(self) -> None:
        assert parse_log("5\n10\n15\n", 10) == ([10, 15], 0)


# ── Recovery ────────────────────────────────────────────────────


class TestRecover:
    async def test_missing_files_are_empty(self, tmp_path: Path) -> None:
        layer = PersistenceLayer(tmp_path)
        result = await layer.recover({"db_error": tmp_path / "db_error.log"}, NOW)
        assert result.timestamps == {"db_error": []}
        assert result.state == {}
        assert layer.stream("db_error") is not None
        assert layer.draining("db_error") is False
        await layer.close()

    async def test_drops_entries_older_than_retention(self, tmp_path: Path) -> None:
        log = tmp_path / "db_error.log"
        stale = NOW - RETENTION_MS - 1
        edge = NOW - RETENTION_MS
        fresh = NOW - 1000
        log.write_text(f"{stale}\n{edge}\n{fresh}\n")

        layer = PersistenceLayer(tmp_path)
        result = await layer.recover({"db_error": log}, NOW)
        assert result.timestamps["db_error"] == [edge, fresh]
        await layer.close()

    async def test_reads_state_file(self, tmp_path: Path) -> None:
        state = {"db_error": {"minute": 123, "hour": None, "day": None}}
        (tmp_path / "_state").write_text(json.dumps(state))
        layer = PersistenceLayer(tmp_path)
        result = await layer.recover({}, NOW)
        assert result.state == state

    async def test_unreadable_log_aborts(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.log"
        bad.mkdir()
        layer = PersistenceLayer(tmp_path)
        with pytest.raises(RecoveryIOError):
            await layer.recover({"bad": bad, "good": tmp_path / "good.log"}, NOW)
        await layer.close()

    async def test_corrupt_state_aborts(self, tmp_path: Path) -> None:
        (tmp_path / "_state").write_text("{not json")
        layer = PersistenceLayer(tmp_path)
        with pytest.raises(RecoveryIOError):
            await layer.recover({}, NOW)

    async def test_failed_read_leaves_logs_untouched(self, tmp_path: Path) -> None:
        good = tmp_path / "good.log"
        good.write_text(f"{NOW - 20}\n{NOW - 10}\n")
        (tmp_path / "_state").write_text("{not json")

        layer = PersistenceLayer(tmp_path)
        with pytest.raises(RecoveryIOError) as exc_info:
            await layer.recover({"good": good}, NOW)
        assert exc_info.value.timestamps == {"good": [NOW - 20, NOW - 10]}
        assert layer.stream("good") is None
        assert good.read_text() == f"{NOW - 20}\n{NOW - 10}\n"

    async def test_state_must_be_object(self, tmp_path: Path) -> None:
        (tmp_path / "_state").write_text("[1, 2]")
        layer = PersistenceLayer(tmp_path)
        with pytest.raises(RecoveryIOError):
            await layer.recover({}, NOW)

    async def test_recovered_log_is_rewritten_on_write(self, tmp_path: Path) -> None:
        log = tmp_path / "db_error.log"
        stale = NOW - RETENTION_MS - 5
        log.write_text(f"{stale}\n{NOW - 10}\n")

        layer = PersistenceLayer(tmp_path)
        result = await layer.recover({"db_error": log}, NOW)
        assert layer.write("db_error", log, result.timestamps["db_error"]) is True
        stream = layer.stream("db_error")
        assert stream is not None
        await stream.wait_drained()
        assert log.read_text() == f"{NOW - 10}\n"
        await layer.close()


# ── Write attempts ──────────────────────────────────────────────


class TestWrite:
    def test_no_log_path_is_success(self, tmp_path: Path) -> None:
        layer = PersistenceLayer(tmp_path)
        assert layer.write("x", None, [1, 2]) is True

    def test_unopened_stream_is_failure(self, tmp_path: Path) -> None:
        layer = PersistenceLayer(tmp_path)
        assert layer.write("x", tmp_path / "x.log", [1]) is False

    async def test_backpressure_accepts_then_defers(self, tmp_path: Path) -> None:
        log = tmp_path / "x.log"
        layer = PersistenceLayer(tmp_path, high_water_mark=4)
        await layer.recover({"x": log}, NOW)

        # bytes accepted even though the buffer is now full
        assert layer.write("x", log, [NOW]) is True
        assert layer.draining("x") is True
        assert layer.write("x", log, [NOW + 1]) is False

        stream = layer.stream("x")
        assert stream is not None
        await stream.wait_drained()
        assert layer.draining("x") is False
        assert layer.write("x", log, [NOW + 1]) is True
        await layer.close()
        assert log.read_text() == f"{NOW}\n{NOW + 1}\n"


# ── Save ────────────────────────────────────────────────────────


class TestSave:
    def test_save_writes_json(self, tmp_path: Path) -> None:
        layer = PersistenceLayer(tmp_path)
        snapshot = {"_all": {"minute": None, "hour": 5, "day": None}}
        assert layer.save(snapshot) is True
        assert json.loads((tmp_path / "_state").read_text()) == snapshot

    def test_save_creates_root(self, tmp_path: Path) -> None:
        layer = PersistenceLayer(tmp_path / "new")
        assert layer.save({}) is True
        assert (tmp_path / "new" / "_state").exists()

    def test_save_failure_is_reported_not_raised(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")
        layer = PersistenceLayer(blocker)
        assert layer.save({}) is False
