from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from chatorder.core.config import DATABASE_URL, ENV_NORMALIZED, IS_PROD

logger = logging.getLogger(__name__)


class StartupCheckError(RuntimeError):
    pass


def validate_database_environment(database_url: str = DATABASE_URL, *, is_prod: bool = IS_PROD) -> None:
    if is_prod and database_url.startswith("sqlite"):
        logger.critical("[STARTUP] sqlite database configured in production")
        raise StartupCheckError("SQLite is not supported in production")


def expected_heads(alembic_config_path: Path) -> set[str]:
    if not alembic_config_path.exists():
        raise StartupCheckError(f"alembic config not found at {alembic_config_path}")
    script = ScriptDirectory.from_config(Config(str(alembic_config_path)))
    return set(script.get_heads())


def database_heads(engine: Engine) -> set[str]:
    with engine.connect() as connection:
        return set(MigrationContext.configure(connection).get_current_heads())


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    """Refuses to serve traffic against a schema that is not at the alembic head."""
    if ENV_NORMALIZED == "test":
        return

    current = database_heads(engine)
    if not current:
        logger.critical("[STARTUP] database has no alembic revision, run `alembic upgrade head`")
        raise StartupCheckError("database is not migrated")
    wanted = expected_heads(alembic_config_path)
    if current != wanted:
        logger.critical("[STARTUP] schema out of date current=%s expected=%s", sorted(current), sorted(wanted))
        raise StartupCheckError("pending migrations")
    logger.info("[STARTUP] schema at revision %s", ",".join(sorted(current)))
