"""Fixtures for alerter tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from src.alerter.alerter import Alerter
from src.monitor.dispatcher import AlertDispatcher

from fakes import FakeChannel, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def make_alerter(
    clock: FakeClock, channel: FakeChannel, tmp_path: Path
) -> Callable[..., Alerter]:
    def _make(root: Path | None = None) -> Alerter:
        return Alerter(
            root or tmp_path,
            sender="app@example.com",
            contacts=["ops@example.com"],
            dispatcher=AlertDispatcher(channels=[channel]),
            clock=clock,
        )

    return _make
