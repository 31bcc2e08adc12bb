import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatorder.core.config import CORS_ORIGINS, DATABASE_URL, ENV
from chatorder.core.database import Base, engine
from chatorder.core.logging_setup import configure_logging
from chatorder.core.startup_checks import ensure_migrations_applied, validate_database_environment
from chatorder.middleware.observability import REQUEST_ID_HEADER, ObservabilityMiddleware
import chatorder.models  # noqa: F401
from chatorder.routers.ingest import router as ingest_router

configure_logging()

logger = logging.getLogger(__name__)

ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(Path(__file__).resolve().parents[1] / "alembic.ini"))
)


def _startup_tasks() -> None:
    validate_database_environment()
    if DATABASE_URL.startswith("sqlite"):
        # local sqlite databases are created in place instead of migrated
        Base.metadata.create_all(bind=engine)
    else:
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    logger.info("[STARTUP] ready env=%s", ENV)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield
    logger.info("[STARTUP] shutting down")


def create_app() -> FastAPI:
    application = FastAPI(title="Chat Order API", lifespan=lifespan)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    application.add_middleware(ObservabilityMiddleware)
    application.include_router(ingest_router)
    return application


app = create_app()
