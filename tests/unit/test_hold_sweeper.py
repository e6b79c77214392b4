# tests/unit/test_hold_sweeper.py

import time
from datetime import timedelta

from reservation_engine.application.hold_sweeper import JOB_ID, HoldExpirySweeper
from reservation_engine.domain.state_machine import SeatStatus


def test_run_once_releases_stale_holds(engine, clock):
    sweeper = HoldExpirySweeper(
        engine,
        interval=timedelta(minutes=1),
        ttl=timedelta(minutes=15),
        clock=clock,
    )
    engine.finalize(1, 1, [101], 600)

    assert sweeper.run_once() == 0
    clock.advance(minutes=16)
    assert sweeper.run_once() == 1
    assert engine.inventory.seat(101).status is SeatStatus.FREE


def test_run_once_retries_pending_persistence(engine, clock, persistence):
    class BrokenOnce:
        def __init__(self):
            self.calls = 0

        def persist_seats(self, snapshot):
            self.calls += 1
            if self.calls == 1:
                raise OSError("transient")
            persistence.persist_seats(snapshot)

        def persist_orders(self, snapshot):
            persistence.persist_orders(snapshot)

    engine.persistence = BrokenOnce()
    engine.finalize(1, 1, [101], 600)
    assert engine.persistence_pending

    HoldExpirySweeper(engine, timedelta(minutes=1), timedelta(minutes=15), clock=clock).run_once()

    assert not engine.persistence_pending
    assert len(persistence.orders) == 1


def test_background_thread_sweeps(engine, clock):
    engine.finalize(1, 1, [101], 600)
    clock.advance(minutes=20)
    sweeper = HoldExpirySweeper(
        engine,
        interval=timedelta(milliseconds=50),
        ttl=timedelta(minutes=15),
        clock=clock,
    )

    sweeper.start()
    try:
        deadline = time.monotonic() + 2
        while time.monotonic() < deadline and not engine.inventory.seat(101).is_free:
            time.sleep(0.01)
    finally:
        sweeper.stop()

    assert engine.inventory.seat(101).is_free


def test_start_schedules_one_interval_job_and_stop_shuts_it_down(engine, clock):
    sweeper = HoldExpirySweeper(engine, timedelta(minutes=1), timedelta(minutes=15), clock=clock)

    sweeper.start()
    try:
        scheduler = sweeper._scheduler
        sweeper.start()
        assert sweeper._scheduler is scheduler
        assert sweeper.running

        (job,) = scheduler.get_jobs()
        assert job.id == JOB_ID
        assert job.trigger.interval == timedelta(minutes=1)
    finally:
        sweeper.stop()

    assert not sweeper.running
    assert not scheduler.running


def test_stop_without_start_is_harmless(engine):
    sweeper = HoldExpirySweeper(engine, timedelta(minutes=1), timedelta(minutes=15))
    sweeper.stop()
    assert not sweeper.running


def test_failed_tick_is_logged_not_raised(engine, caplog):
    sweeper = HoldExpirySweeper(engine, timedelta(minutes=1), timedelta(minutes=15))
    sweeper.engine = None

    sweeper._tick()

    assert "Hold sweep failed" in caplog.text
