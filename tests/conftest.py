import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import chatorder.models  # noqa: F401
from chatorder.core.database import Base
from chatorder.models.catalog_item import CatalogItem
from chatorder.models.tenant import Tenant
from chatorder.services.catalog import catalog_cache
from chatorder.services.integration_guard import integration_guard
from tests.fixtures_data import RESTAURANT_CATALOG, RESTAURANT_TENANT


@pytest.fixture(autouse=True)
def _reset_process_caches():
    catalog_cache.invalidate()
    integration_guard.reset()
    yield
    catalog_cache.invalidate()
    integration_guard.reset()


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def seed_restaurant(db, **overrides):
    db.add(Tenant(**{**RESTAURANT_TENANT, **overrides}))
    for item_id, canonical, display, variant, price in RESTAURANT_CATALOG:
        db.add(
            CatalogItem(
                id=item_id,
                tenant_id=RESTAURANT_TENANT["id"],
                canonical_name=canonical,
                display_name=display,
                variant=variant,
                price=price,
                active=True,
            )
        )
    db.commit()


@pytest.fixture
def restaurant_db(db):
    seed_restaurant(db)
    return db
