import os

# before anything under app/ reads its settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["STOCK_UPDATE_URL"] = ""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.api.dependencies import get_session_factory
from app.data import models  # noqa: F401
from app.data.database import Base, get_db, make_engine
from app.data.models.product import ProductModel
from app.main import create_app
from app.services.cart_service import CartStore
from app.services.enrichment import EnrichmentJoiner, ProductBatchReader


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'fulfillment.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def joiner(session_factory):
    return EnrichmentJoiner(ProductBatchReader(session_factory), batch_size=100, max_workers=4, timeout=5)


@pytest.fixture
def cart_store(db, joiner):
    return CartStore(db, joiner=joiner)


@pytest.fixture
def add_product(db):
    def _add_product(**overrides):
        now = datetime.now(timezone.utc)
        defaults = {
            "product_id": "W1",
            "name": "Widget",
            "description": "",
            "category": "tools",
            "unit_price": 250,
            "image_ref": "img/w1.png",
            "stock_quantity": 5,
            "created_at": now,
            "updated_at": now,
        }
        defaults.update(overrides)
        defaults.setdefault("in_stock", defaults["stock_quantity"] > 0)
        product = ProductModel(**defaults)
        db.add(product)
        db.commit()
        return defaults["product_id"]

    return _add_product


@pytest.fixture
def client(session_factory):
    app = create_app()

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    # no context manager: the lifespan would create tables on the default engine
    return TestClient(app)
