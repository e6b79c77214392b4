import logging

from fastapi import FastAPI

from reservation_engine.api.routes.routes import router
from reservation_engine.application.hold_sweeper import HoldExpirySweeper
from reservation_engine.application.operator_auth import OperatorDirectory
from reservation_engine.application.reservation_engine import ReservationEngine
from reservation_engine.bootstrap import create_engine_from_settings
from reservation_engine.config import Settings
from reservation_engine.domain.exceptions import PersistenceFailureError

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    engine: ReservationEngine | None = None,
) -> FastAPI:
    """
    Builds the API. With no engine given, one is loaded from the
    configured persistence backend on startup and the hold sweeper runs
    in the background.
    """
    settings = settings or Settings.from_env()

    app = FastAPI(title="Seat Reservation Engine")
    app.include_router(router)
    app.state.settings = settings
    app.state.operators = OperatorDirectory(settings.admin_ids)
    app.state.engine = engine
    app.state.sweeper = None

    @app.on_event("startup")
    def on_startup() -> None:
        if app.state.engine is None:
            app.state.engine = create_engine_from_settings(settings)
            app.state.sweeper = HoldExpirySweeper(
                app.state.engine,
                interval=settings.sweep_interval,
                ttl=settings.hold_ttl,
            )
            app.state.sweeper.start()

    @app.on_event("shutdown")
    def on_shutdown() -> None:
        if app.state.sweeper is not None:
            app.state.sweeper.stop()
        if app.state.engine is not None and app.state.engine.persistence_pending:
            logger.warning("Shutting down with an unwritten snapshot; retrying once")
            try:
                app.state.engine.retry_persistence()
            except PersistenceFailureError:
                logger.exception("Final snapshot write failed; last durable state will be loaded")

    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=Settings.from_env().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


_configure_logging()
app = create_app()
