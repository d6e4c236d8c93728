"""
Shared fixtures. Environment is pinned before the app package is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SHOPIFY_SHOP_URL", "test-shop.myshopify.com")
os.environ.setdefault("SHOPIFY_ACCESS_TOKEN", "test-token")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("DASH_USER", "")
os.environ.setdefault("DASH_PASS", "")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import clv_insights.models  # noqa: E402,F401  registers tables
from clv_insights.api.deps import get_shopify_client  # noqa: E402
from clv_insights.main import app  # noqa: E402
from clv_insights.models.base import Base, get_db  # noqa: E402
from tests.shopify_fakes import FakeShopify  # noqa: E402


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def fake_shopify():
    return FakeShopify()


@pytest.fixture
def api_client(db_session, fake_shopify):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_shopify_client] = fake_shopify.client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
