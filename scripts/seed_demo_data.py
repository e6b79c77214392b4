from datetime import datetime, timedelta, timezone

from reservation_engine.bootstrap import build_persistence, load_engine
from reservation_engine.config import Settings
from reservation_engine.domain.models import Event


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    target = datetime.now(timezone.utc) + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)


def demo_events() -> list[Event]:
    return [
        Event(id=1, start_time=_dt(days_from_now=1, hour=21, minute=0), title="Dune: Part Two"),
        Event(id=2, start_time=_dt(days_from_now=2, hour=21, minute=0), title="Interstellar"),
        Event(id=3, start_time=_dt(days_from_now=3, hour=20, minute=30), title="Arrival"),
    ]


def main() -> None:
    settings = Settings.from_env()
    persistence = build_persistence(settings)

    events = demo_events()
    persistence.save_events(events)
    engine = load_engine(persistence, settings.seats_per_event, default_events=events)

    for event in engine.list_events():
        free = sum(1 for seat in engine.seats_for(event.id) if seat.is_free)
        print(f"{event.id}: {event.title} at {event.start_time:%Y-%m-%d %H:%M}, {free} free seats")
    print(f"Seed complete ({settings.persistence_backend} backend).")


if __name__ == "__main__":
    main()
