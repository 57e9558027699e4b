"""Tests for Alerter — tell, thresholds, persistence wiring, lifecycle."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from src.alerter.alerter import Alerter
from src.core.exceptions import LifecycleError
from src.core.types import ALL, RETENTION_MS, WindowKey
from src.monitor.formatters import CRASH_TITLE

from fakes import T0, FakeChannel, FakeClock

SECOND = 1000
MINUTE = 60 * SECOND


class DbError(Exception):
    pass


# ── Scenarios ───────────────────────────────────────────────────


class TestThresholdScenario:
    async def test_two_within_a_minute_alert_once(
        self, make_alerter, clock: FakeClock, channel: FakeChannel, tmp_path: Path
    ) -> None:
        alerter = make_alerter()
        alerter.one("db_error").minute().on().threshold(2).cooldown(60)
        await alerter.start()

        assert alerter.tell("db_error") == []
        clock.advance(10 * SECOND)
        assert alerter.tell("db_error") == [("db_error", WindowKey.MINUTE)]
        clock.advance(2 * SECOND)
        assert alerter.tell("db_error") == []

        await alerter.dispatcher.wait_idle()
        assert len(channel.sent) == 1
        msg = channel.sent[0]
        assert msg.title == "ALERT: db_error has reached its minute threshold."
        assert msg.sender == "app@example.com"
        assert msg.recipients == ["ops@example.com"]

        state = json.loads((tmp_path / "_state").read_text())
        assert state["db_error"]["minute"] == T0 + 10 * SECOND
        await alerter.close()

    async def test_log_without_threshold_never_alerts(
        self, make_alerter, clock: FakeClock, channel: FakeChannel, tmp_path: Path
    ) -> None:
        log = tmp_path / "x"
        alerter = make_alerter()
        alerter.all().log(log)
        await alerter.start()

        for _ in range(50):
            alerter.tell("anything")
            clock.advance(1)

        assert alerter.store.queued(ALL) == []
        assert alerter.count(ALL) == 50
        await alerter.close()
        lines = log.read_text().splitlines()
        assert lines == [str(T0 + i) for i in range(50)]
        assert channel.sent == []

    async def test_exceptions_keyed_by_class(
        self, make_alerter, channel: FakeChannel
    ) -> None:
        alerter = make_alerter()
        alerter.one(DbError).minute().on().threshold(1)
        await alerter.start()
        assert alerter.tell(DbError("connection reset")) == [("DbError", WindowKey.MINUTE)]
        assert alerter.count("DbError") == 1
        await alerter.close()

    async def test_aggregate_and_specific_both_fire(self, make_alerter) -> None:
        alerter = make_alerter()
        alerter.all().hour().on().threshold(1)
        alerter.one("db_error").hour().on().threshold(1)
        await alerter.start()
        assert alerter.tell("db_error") == [
            (ALL, WindowKey.HOUR),
            ("db_error", WindowKey.HOUR),
        ]
        await alerter.close()

    async def test_aggregate_counts_every_key(self, make_alerter) -> None:
        alerter = make_alerter()
        alerter.all().minute().on().threshold(3)
        await alerter.start()
        assert alerter.tell("a") == []
        assert alerter.tell("b") == []
        assert alerter.tell("c") == [(ALL, WindowKey.MINUTE)]
        assert alerter.count("a") == 1
        await alerter.close()


# ── Ingestion ───────────────────────────────────────────────────


class TestIngestion:
    @pytest.mark.parametrize("value", [None, 42, 3.5, {"k": "v"}, DbError])
    async def test_unsupported_inputs_ignored(self, make_alerter, value: object) -> None:
        alerter = make_alerter()
        alerter.all().minute().on().threshold(1)
        assert alerter.tell(value) == []
        assert alerter.count(ALL) == 0

    async def test_ignored_type_never_stored_or_alerted(
        self, make_alerter, channel: FakeChannel
    ) -> None:
        alerter = make_alerter()
        alerter.one("noise").ignore().minute().on().threshold(1)
        await alerter.start()
        for _ in range(100):
            assert alerter.tell("noise") == []
        assert alerter.count("noise") == 0
        assert alerter.count(ALL) == 100
        await alerter.dispatcher.wait_idle()
        assert channel.sent == []
        await alerter.close()

    async def test_unwatched_aggregate(self, make_alerter) -> None:
        alerter = make_alerter()
        alerter.all().ignore()
        alerter.tell("x")
        assert alerter.count(ALL) == 0
        assert alerter.count("x") == 1

    async def test_unseen_key_inherits_default(self, make_alerter) -> None:
        alerter = make_alerter()
        alerter.default().minute().on().threshold(2)
        alerter.tell("first")
        assert alerter.tell("first") == [("first", WindowKey.MINUTE)]
        assert alerter.tell("second") == []

    async def test_telling_all_key_counts_once(self, make_alerter) -> None:
        alerter = make_alerter()
        alerter.tell(ALL)
        assert alerter.count(ALL) == 1


# ── Side effects ────────────────────────────────────────────────


class TestSideEffects:
    async def test_act_called_with_type_and_window(self, make_alerter) -> None:
        calls: list[tuple[str, WindowKey]] = []
        alerter = make_alerter()
        alerter.one("db_error").act(lambda k, w: calls.append((k, w))).day().on().threshold(1)
        alerter.tell("db_error")
        assert calls == [("db_error", WindowKey.DAY)]

    async def test_async_act_runs_in_background(self, make_alerter) -> None:
        calls: list[str] = []

        async def restart_pool(event_type: str, window: WindowKey) -> None:
            calls.append(event_type)

        alerter = make_alerter()
        alerter.one("db_error").act(restart_pool).day().on().threshold(1)
        alerter.tell("db_error")
        await alerter.dispatcher.wait_idle()
        assert calls == ["db_error"]

    async def test_failing_act_does_not_break_tell(
        self, make_alerter, channel: FakeChannel, tmp_path: Path
    ) -> None:
        def explode(event_type: str, window: WindowKey) -> None:
            raise RuntimeError("side effect failed")

        alerter = make_alerter()
        alerter.one("db_error").act(explode).minute().on().threshold(1)
        assert alerter.tell("db_error") == [("db_error", WindowKey.MINUTE)]
        await alerter.dispatcher.wait_idle()
        assert len(channel.sent) == 1
        assert (tmp_path / "_state").exists()


# ── Persistence wiring ──────────────────────────────────────────


class TestPersistenceWiring:
    async def test_memory_only_commits_immediately(self, make_alerter) -> None:
        alerter = make_alerter()
        alerter.tell("db_error")
        assert alerter.store.queued("db_error") == []
        assert alerter.store.committed("db_error") == [T0]

    async def test_told_before_start_is_queued_then_flushed(
        self, make_alerter, clock: FakeClock, tmp_path: Path
    ) -> None:
        alerter = make_alerter()
        alerter.one("db_error").log()
        alerter.tell("db_error")
        assert alerter.store.queued("db_error") == [T0]
        assert alerter.count("db_error") == 1

        await alerter.start()
        assert alerter.ready is True
        assert alerter.store.queued("db_error") == []
        await alerter.close()
        assert (tmp_path / "db_error.log").read_text() == f"{T0}\n"

    async def test_backpressure_keeps_queue(self, clock: FakeClock, tmp_path: Path) -> None:

        alerter = Alerter(tmp_path, clock=clock, high_water_mark=1)
        alerter.one("db_error").log()
        await alerter.start()

        alerter.tell("db_error")
        assert alerter.persistence.draining("db_error") is True
        clock.advance(1)
        alerter.tell("db_error")
        assert alerter.store.queued("db_error") == [T0 + 1]
        assert alerter.count("db_error") == 2

        stream = alerter.persistence.stream("db_error")
        assert stream is not None
        await stream.wait_drained()
        alerter.flush_queued()
        assert alerter.store.queued("db_error") == []
        await alerter.close()
        assert (tmp_path / "db_error.log").read_text() == f"{T0}\n{T0 + 1}\n"

    async def test_old_history_pruned_from_memory(self, make_alerter, clock: FakeClock) -> None:
        alerter = make_alerter()
        alerter.tell("db_error")
        clock.advance(RETENTION_MS + 1)
        alerter.tell("db_error")
        assert alerter.store.committed("db_error") == [clock.now]


# ── Lifecycle ───────────────────────────────────────────────────


class TestLifecycle:
    async def test_start_twice_fails(self, make_alerter) -> None:
        alerter = make_alerter()
        await alerter.start()
        with pytest.raises(LifecycleError):
            await alerter.start()
        assert alerter.started is True
        assert alerter.ready is True
        await alerter.close()

    async def test_not_ready_before_start(self, make_alerter) -> None:
        alerter = make_alerter()
        assert alerter.started is False
        assert alerter.ready is False

    async def test_contact_and_sender(self, make_alerter) -> None:
        alerter = make_alerter()
        assert alerter.contact("solo@example.com").contacts == ["solo@example.com"]
        alerter.contact(["a@example.com", "b@example.com"])
        assert alerter.contacts == ["a@example.com", "b@example.com"]
        assert alerter.from_address("x@example.com").sender == "x@example.com"


# ── on_fatal ────────────────────────────────────────────────────


class TestOnFatal:
    async def test_saves_sends_then_continues(
        self, make_alerter, channel: FakeChannel, tmp_path: Path
    ) -> None:
        alerter = make_alerter()
        alerter.one("db_error").minute().on().threshold(1)
        alerter.tell("db_error")
        (tmp_path / "_state").unlink()

        order: list[str] = []
        try:
            raise RuntimeError("fatal")
        except RuntimeError as exc:
            await alerter.on_fatal(exc, lambda: order.append(f"sent={len(channel.sent)}"))

        assert (tmp_path / "_state").exists()
        crash = [m for m in channel.sent if m.title == CRASH_TITLE]
        assert len(crash) == 1
        assert "RuntimeError: fatal" in crash[0].body
        assert order and order[0].startswith("sent=")
        assert int(order[0].split("=")[1]) >= 1

    async def test_continuation_optional(self, make_alerter, channel: FakeChannel) -> None:
        alerter = make_alerter()
        await alerter.on_fatal("out of memory")
        assert channel.sent[-1].title == CRASH_TITLE
