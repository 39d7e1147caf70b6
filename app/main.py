# app/main.py
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from app.api.routes import admin, chat, health, internal, sessions
from app.core.config import get_settings
from app.core.exceptions import (
    SchedulerError,
    generic_exception_handler,
    scheduler_exception_handler,
    validation_exception_handler,
)
from app.db.session import init_db_for_startup
from app.services.actor_registry import ActorRegistry, AlarmDispatcher

logger = logging.getLogger(__name__)

# Third-party loggers that are too chatty at DEBUG/INFO
NOISY_LOGGERS = ["httpx", "httpcore", "aiosqlite", "sqlalchemy.engine"]


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def create_app() -> FastAPI:
    """
    Application factory for the Meeting Scheduler service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Group meeting scheduling service. Each session is owned by a single-writer\n"
            "actor addressed by its session code; participants chat with an AI assistant\n"
            "that proposes meeting times, and idle sessions expire automatically."
        ),
        version="0.1.0",
    )

    app.state.registry = ActorRegistry(settings=settings)
    app.state.alarm_dispatcher = AlarmDispatcher(
        registry=app.state.registry,
        poll_seconds=settings.ALARM_POLL_SECONDS,
    )

    # Exception handlers
    app.add_exception_handler(SchedulerError, scheduler_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(sessions.router)
    app.include_router(chat.router)
    app.include_router(admin.router)
    app.include_router(internal.router)

    @app.on_event("startup")
    async def on_startup() -> None:  # pragma: no cover
        await init_db_for_startup()
        if settings.ALARM_DISPATCH_ENABLED:
            app.state.alarm_dispatcher.start()
        logger.info("Starting %s in %s mode", settings.APP_NAME, settings.APP_ENV)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:  # pragma: no cover
        await app.state.alarm_dispatcher.stop()

    return app


app = create_app()
