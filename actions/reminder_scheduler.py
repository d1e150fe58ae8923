"""
Reminder Scheduler
Background poll loop that evaluates every patient and dispatches due notifications
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from actions.reminder_engine import ReminderEngine
from config import settings
from services.errors import StoreError
from services.store import DocumentStore, StoreChange
from tools.notification_service import NotificationService


logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """What one pass over the patients did"""
    started_at: datetime
    patients_seen: int = 0
    patients_skipped: int = 0
    events_emitted: int = 0
    emails_failed: int = 0
    compacted: bool = False
    skipped: bool = False  # another tick was already running

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data


class ReminderScheduler:
    """
    Polls the store on a fixed interval and runs the reminder engine for
    each patient. Store writes wake the loop early. Ticks never overlap.
    """

    def __init__(
        self,
        store: DocumentStore,
        engine: ReminderEngine,
        notifier: NotificationService,
        interval: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.engine = engine
        self.notifier = notifier
        self.ledger = engine.ledger
        self.interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.last_report: Optional[TickReport] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return

        loop = asyncio.get_running_loop()
        wake = asyncio.Event()
        self._wake = wake

        def on_change(change: StoreChange) -> None:
            # Writes may come from threadpool request handlers
            loop.call_soon_threadsafe(wake.set)

        self._unsubscribe = self.store.subscribe(None, on_change)
        self._task = asyncio.create_task(self._run(), name="reminder-scheduler")
        logger.info(f"Reminder scheduler started (interval {self.interval}s)")

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Reminder scheduler stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Reminder tick failed")

            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

    async def run_once(self, now: Optional[datetime] = None) -> TickReport:
        """
        Evaluate every patient once and dispatch what is due.

        A call made while another tick is running returns immediately with
        `skipped=True`.
        """
        now = now or self._clock()
        if self._lock.locked():
            logger.info("Reminder tick already in progress; skipping trigger")
            return TickReport(started_at=now, skipped=True)

        async with self._lock:
            report = TickReport(started_at=now)

            try:
                patients = self.store.get_all_patients()
            except StoreError as e:
                logger.error(f"Could not load patients, skipping tick: {e}")
                self.last_report = report
                return report

            for schedule in patients:
                report.patients_seen += 1
                try:
                    dose_log = self.store.get_dose_logs(schedule.patient_id)
                except StoreError as e:
                    logger.error(f"Could not load dose log for {schedule.patient_id}, skipping: {e}")
                    report.patients_skipped += 1
                    continue

                for event in self.engine.evaluate(schedule, dose_log, now):
                    result = await self.notifier.dispatch(event)
                    report.events_emitted += 1
                    if result.email_failed:
                        report.emails_failed += 1

            report.compacted = self.ledger.maybe_compact()

        if report.events_emitted:
            logger.info(
                f"Tick done: {report.events_emitted} events for {report.patients_seen} patients "
                f"({report.emails_failed} emails failed)"
            )
        self.last_report = report
        return report
