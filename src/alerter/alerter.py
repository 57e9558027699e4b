"""Alerter — counts occurrences per event type and alerts on rate thresholds."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog

from src.alerter.registry import ConfigurationRegistry, EventConfigurator, occurrence_key
from src.core.exceptions import LifecycleError, RecoveryIOError
from src.core.types import ALL, DEFAULT, RETENTION_MS, EventSettings, WindowKey, now_ms
from src.monitor.dispatcher import AlertDispatcher
from src.monitor.evaluator import ThresholdEvaluator
from src.monitor.formatters import format_crash_alert, format_threshold_alert
from src.persistence.layer import PersistenceLayer
from src.tracker.store import OccurrenceStore

logger = structlog.get_logger(__name__)

Clock = Callable[[], int]


class Alerter:
    """Tracks occurrences of named events and alerts when they come too fast.

    Construct once, configure, then ``await start()`` exactly once to
    recover history and alert state from ``root_directory``.  Occurrences
    told before recovery finishes are kept and checked, but their window
    counts cannot include the history still being read.

    Usage::

        alerter = Alerter("/var/lib/myapp/alerts", sender="app@example.com")
        alerter.contact(["ops@example.com"])
        alerter.one("db_error").log().minute().on().threshold(2).cooldown(60)
        await alerter.start()

        alerter.tell(exc)          # an exception, keyed by its class name
        alerter.tell("db_error")   # or a plain string key
    """

    ALL = ALL
    DEFAULT = DEFAULT

    def __init__(
        self,
        root_directory: str | Path,
        sender: str | None = None,
        contacts: Sequence[str] | None = None,
        dispatcher: AlertDispatcher | None = None,
        clock: Clock = now_ms,
        high_water_mark: int = 16_384,
    ) -> None:
        self._root = Path(root_directory)
        self._sender = sender
        self._contacts: list[str] = list(contacts or [])
        self._clock = clock
        self._registry = ConfigurationRegistry(self._root)
        self._store = OccurrenceStore()
        self._persistence = PersistenceLayer(self._root, high_water_mark)
        self._dispatcher = dispatcher or AlertDispatcher()
        self._evaluator = ThresholdEvaluator(self._store, self._alert)
        self._started = False
        self._ready = False

    # ── Properties ────────────────────────────────────────────────

    @property
    def started(self) -> bool:
        return self._started

    @property
    def ready(self) -> bool:
        """Whether start-up recovery has completed."""
        return self._ready

    @property
    def root(self) -> Path:
        return self._root

    @property
    def sender(self) -> str | None:
        return self._sender

    @property
    def contacts(self) -> list[str]:
        return list(self._contacts)

    @property
    def registry(self) -> ConfigurationRegistry:
        return self._registry

    @property
    def store(self) -> OccurrenceStore:
        return self._store

    @property
    def persistence(self) -> PersistenceLayer:
        return self._persistence

    @property
    def dispatcher(self) -> AlertDispatcher:
        return self._dispatcher

    # ── Configuration ─────────────────────────────────────────────

    def contact(self, contacts: str | Sequence[str]) -> Alerter:
        """Replace the alert recipients."""
        if isinstance(contacts, str):
            self._contacts = [contacts]
        else:
            self._contacts = list(contacts)
        return self

    def from_address(self, sender: str) -> Alerter:
        self._sender = sender
        return self

    def one(self, occurrence: object) -> EventConfigurator:
        return self._registry.one(occurrence)

    def all(self) -> EventConfigurator:
        return self._registry.all()

    def default(self) -> EventConfigurator:
        return self._registry.default()

    # ── Lifecycle ─────────────────────────────────────────────────

    async def start(self) -> None:
        """Recover occurrence history and alert state, then flush.

        Raises:
            LifecycleError: ``start`` was already called on this instance.
            RecoveryIOError: A log or the state file could not be read.
        """
        if self._started:
            raise LifecycleError("start: starting has already been initiated")
        self._started = True

        targets = self._registry.log_targets()
        logger.info("alerter_starting", root=str(self._root), logs=len(targets))

        try:
            result = await self._persistence.recover(targets, self._clock())
        except RecoveryIOError as exc:
            # keep what was read so counts still see it
            await self._restore_history(exc.timestamps)
            raise
        await self._restore_history(result.timestamps)
        try:
            restored = self._registry.restore(result.state)
        except ValueError as exc:
            raise RecoveryIOError(f"invalid alert state: {exc}", result.timestamps) from exc

        self._ready = True
        logger.info("alerter_ready", restored_state=restored)

    async def _restore_history(self, timestamps: dict[str, list[int]]) -> None:
        """Queue recovered history and write it back to any opened (truncated) log."""
        for event_type, history in timestamps.items():
            self._store.restore(event_type, history)
        self.flush_queued()
        await self._persistence.wait_drained()

    async def close(self) -> None:
        """Wait for in-flight alerts, then close log streams and channels."""
        await self._dispatcher.close()
        await self._persistence.close()

    # ── Occurrences ───────────────────────────────────────────────

    def tell(self, occurrence: object) -> list[tuple[str, WindowKey]]:
        """Record one occurrence and run the threshold checks.

        Only exceptions and strings are accepted; anything else is ignored.
        Returns the ``(event_type, window)`` pairs that alerted.
        """
        if not isinstance(occurrence, (BaseException, str)):
            return []

        # one timestamp for both the aggregate and the specific key
        current_time = self._clock()
        fired: list[tuple[str, WindowKey]] = []

        aggregate = self._registry.ensure(ALL)
        if aggregate.watch:
            fired.extend(self._tell(aggregate, current_time))

        key = occurrence_key(occurrence)
        if key == ALL:
            return fired
        settings = self._registry.ensure(key, inherit=True)
        if settings.watch:
            fired.extend(self._tell(settings, current_time))
        return fired

    def _tell(self, settings: EventSettings, current_time: int) -> list[tuple[str, WindowKey]]:
        self._store.append(settings.key, current_time)
        self._store.prune(settings.key, current_time - RETENTION_MS)
        self.flush_queued()
        return [(settings.key, w) for w in self._evaluator.check(settings, current_time)]

    def count(self, event_type: str, start: int | None = None, end: int | None = None) -> int:
        """Occurrences of ``event_type`` with ``start <= ts <= end``."""
        return self._store.count_in_range(event_type, start, end)

    def flush_queued(self) -> None:
        """Try to write every queued timestamp; keep whatever is refused."""
        for event_type in self._store.pending():
            settings = self._registry.get(event_type)
            log_path = settings.log_path if settings is not None else None
            if self._persistence.write(event_type, log_path, self._store.queued(event_type)):
                self._store.commit(event_type)

    # ── Alerting ──────────────────────────────────────────────────

    def _alert(
        self,
        settings: EventSettings,
        window: WindowKey,
        count: int,
        current_time: int,
    ) -> None:
        msg = format_threshold_alert(
            settings.key,
            window,
            count,
            settings.windows[window].threshold or count,
            current_time,
            sender=self._sender,
            recipients=self._contacts,
        )
        self._dispatcher.notify(msg)
        self._run_trigger(settings, window)
        self.save()

    def _run_trigger(self, settings: EventSettings, window: WindowKey) -> None:
        try:
            result = settings.on_trigger(settings.key, window)
            if asyncio.iscoroutine(result):
                self._dispatcher.spawn(result)
        except Exception:
            logger.exception(
                "trigger_callback_error",
                event_type=settings.key,
                window=window.value,
            )

    def save(self) -> bool:
        """Snapshot every event type's last-alert times to the state file."""
        return self._persistence.save(self._registry.snapshot())

    async def on_fatal(
        self,
        error: BaseException | str,
        continuation: Callable[[], object] | None = None,
    ) -> None:
        """Save state and send the crash alert before the process dies.

        ``continuation`` runs once the delivery attempt has finished,
        whether or not it succeeded.
        """
        self.save()
        msg = format_crash_alert(error, sender=self._sender, recipients=self._contacts)
        delivered = await self._dispatcher.send(msg)
        logger.info("crash_alert_dispatched", delivered=delivered)
        if continuation is not None:
            continuation()
