from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from chatorder.core import startup_checks
from chatorder.core.startup_checks import (
    StartupCheckError,
    ensure_migrations_applied,
    expected_heads,
    validate_database_environment,
)


def test_sqlite_is_refused_in_production():
    with pytest.raises(StartupCheckError):
        validate_database_environment("sqlite:///./chatorder.db", is_prod=True)

    validate_database_environment("sqlite:///./chatorder.db", is_prod=False)
    validate_database_environment("postgresql://db/chatorder", is_prod=True)


def test_unmigrated_database_is_refused(monkeypatch):
    monkeypatch.setattr(startup_checks, "ENV_NORMALIZED", "prod")
    engine = create_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)

    with pytest.raises(StartupCheckError, match="not migrated"):
        ensure_migrations_applied(engine=engine, alembic_config_path=Path("alembic.ini"))


def test_migration_check_is_skipped_in_test_env(monkeypatch):
    monkeypatch.setattr(startup_checks, "ENV_NORMALIZED", "test")
    engine = create_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)

    ensure_migrations_applied(engine=engine, alembic_config_path=Path("missing.ini"))


def test_missing_alembic_config(tmp_path):
    with pytest.raises(StartupCheckError, match="alembic config not found"):
        expected_heads(tmp_path / "alembic.ini")
