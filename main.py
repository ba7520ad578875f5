import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.application.realtime.runtime import notification_worker, subscription_registry
from app.config import get_settings
from app.infrastructure.database import engine, initialize_database
from app.infrastructure.feed import register_feed_hooks
from app.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare the message log and realtime workers, then release them on shutdown."""

    initialize_database()
    register_feed_hooks()
    notification_worker.start()
    logger.info("Messaging service started")
    yield
    await notification_worker.stop()
    await subscription_registry.close_all()
    engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title="Messaging API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
