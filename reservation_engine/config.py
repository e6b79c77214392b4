import logging
import os
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv

from reservation_engine.application.operator_auth import parse_operator_ids

load_dotenv()

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Non-positive %s=%r, using default %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./data/reservations.db"
    persistence_backend: str = "sql"
    data_dir: str = "./data"
    ticket_price: int = 600
    seats_per_event: int = 25
    hold_ttl_seconds: int = 900
    sweep_interval_seconds: int = 60
    admin_ids: frozenset[int] = frozenset()
    log_level: str = "INFO"

    @property
    def hold_ttl(self) -> timedelta:
        return timedelta(seconds=self.hold_ttl_seconds)

    @property
    def sweep_interval(self) -> timedelta:
        return timedelta(seconds=self.sweep_interval_seconds)

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        backend = os.getenv("PERSISTENCE_BACKEND", defaults.persistence_backend).lower()
        if backend not in ("sql", "json"):
            logger.warning("Unknown PERSISTENCE_BACKEND=%r, using sql", backend)
            backend = "sql"

        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            persistence_backend=backend,
            data_dir=os.getenv("DATA_DIR", defaults.data_dir),
            ticket_price=_env_int("TICKET_PRICE", defaults.ticket_price),
            seats_per_event=_env_int("SEATS_PER_EVENT", defaults.seats_per_event),
            hold_ttl_seconds=_env_int("HOLD_TTL_SECONDS", defaults.hold_ttl_seconds),
            sweep_interval_seconds=_env_int(
                "SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds
            ),
            admin_ids=parse_operator_ids(os.getenv("ADMIN_IDS")),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )
