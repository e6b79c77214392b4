"""Periodic release of stale holds.

The engine has no timer of its own; this sweeper is the scheduler that
calls expire_stale_holds on a fixed interval. It also retries a
pending snapshot write on every tick.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

from reservation_engine.application.reservation_engine import ReservationEngine, utc_now
from reservation_engine.domain.exceptions import PersistenceFailureError

logger = logging.getLogger(__name__)

JOB_ID = "hold-expiry-sweep"


class HoldExpirySweeper:

    def __init__(
        self,
        engine: ReservationEngine,
        interval: timedelta,
        ttl: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.engine = engine
        self.interval = interval
        self.ttl = ttl
        self._clock = clock
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def run_once(self, now: datetime | None = None) -> int:
        now = now or self._clock()
        released = self.engine.expire_stale_holds(now, self.ttl)
        if released:
            logger.info("Released %s stale holds (ttl=%s)", released, self.ttl)

        try:
            self.engine.retry_persistence()
        except PersistenceFailureError:
            logger.warning("Snapshot write still failing; will retry next tick")
        return released

    def start(self) -> None:
        if self.running:
            return
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            self._tick,
            "interval",
            seconds=self.interval.total_seconds(),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(
            "Hold sweeper started. interval=%ss ttl=%ss",
            self.interval.total_seconds(),
            self.ttl.total_seconds(),
        )

    def stop(self, wait: bool = True) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._scheduler = None
        logger.info("Hold sweeper stopped")

    def _tick(self) -> None:
        try:
            self.run_once()
        except Exception:
            logger.exception("Hold sweep failed")
