"""Shared fixtures: in-memory and SQLite stores, HTTP mocks, API client."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import aihub.models  # noqa: F401  (registers tables on Base.metadata)
from aihub.db import Base, get_db
from aihub.main import app
from aihub.services.discovery.store import InMemoryDiscoveryStore
from aihub.services.scraper import ScrapeResult
from aihub.settings import settings


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    """No rate-limit sleeps and no real Slack webhook during tests."""
    monkeypatch.setattr(settings, "DISCOVERY_RATE_LIMIT_DELAY", 0.0)
    monkeypatch.setattr(settings, "VALIDATION_PROBE_DELAY", 0.0)
    monkeypatch.setattr(settings, "SLACK_WEBHOOK_URL", None)
    monkeypatch.setattr(settings, "GITHUB_TOKEN", None)


@pytest.fixture
def store():
    return InMemoryDiscoveryStore()


@pytest.fixture
def db_session():
    """SQLite session with all tables created, dropped afterwards."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def mock_http():
    """Build an AsyncClient whose requests are answered by ``handler``."""
    def factory(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return factory


@pytest.fixture
def make_metadata():
    """Build the ScrapeResult a metadata extractor would return."""
    def factory(name: str, description: str = None, category: str = "productivity") -> ScrapeResult:
        return ScrapeResult(
            name=name,
            description=description,
            og_image_url=None,
            favicon_url="https://www.google.com/s2/favicons?domain=example.com&sz=128",
            suggested_category=category,
            suggested_tags=[category],
        )
    return factory
