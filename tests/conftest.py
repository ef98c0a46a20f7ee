from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inboxpilot.config import settings
from inboxpilot.database import Base, get_db
from inboxpilot.main import app
from inboxpilot.models import Business, BusinessIntegration, Service
from inboxpilot.services.business_context import BusinessContextCache


@pytest.fixture
def db_session():
    """Mock database session."""
    return Mock()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a file database, so several threads get real connections."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'inboxpilot.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep tests off real credentials and endpoints."""
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "knowledge_base_url", None)
    monkeypatch.setattr(settings, "meta_app_secret", None)
    monkeypatch.setattr(settings, "meta_verify_token", "verify-me")
    monkeypatch.setattr(settings, "whatsapp_access_token", None)
    monkeypatch.setattr(settings, "whatsapp_phone_number_id", None)
    monkeypatch.setattr(settings, "instagram_access_token", None)
    monkeypatch.setattr(settings, "instagram_business_id", None)
    monkeypatch.setattr(settings, "alert_bot_token", None)
    monkeypatch.setattr(settings, "alert_chat_id", None)
    monkeypatch.setattr(settings, "admin_token", "admin-secret")
    monkeypatch.setattr(settings, "flyer_intents", ["pricing"])


@pytest.fixture
def business(db):
    business = Business(
        id="biz-1",
        name="Shine Auto Detailing",
        language_preference="en",
        office_hours="Mon-Fri 9:00-18:00",
        booking_rules={"min_notice_hours": 24},
        chatbot_enabled=True,
        ai_reply_enabled=True,
        flyer_cooldown_hours=24,
    )
    db.add(business)
    db.add_all(
        [
            Service(business_id="biz-1", name="Interior Clean", base_price=80, duration_minutes=90),
            Service(business_id="biz-1", name="Ceramic Coating", base_price=450, duration_minutes=240),
            Service(business_id="biz-1", name="Old Wax", base_price=20, is_active=False),
        ]
    )
    db.add(
        BusinessIntegration(
            business_id="biz-1",
            whatsapp_phone_number_id="phone-123",
            whatsapp_access_token="wa-token",
            instagram_business_id="ig-456",
            instagram_access_token="ig-token",
            webhook_verify_token="tenant-verify",
        )
    )
    db.commit()
    return business


@pytest.fixture
def client(session_factory):
    """TestClient bound to the in-memory database with a fresh context cache."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    previous_cache = app.state.context_cache
    app.state.context_cache = BusinessContextCache(ttl_seconds=60)
    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        app.state.context_cache = previous_cache
