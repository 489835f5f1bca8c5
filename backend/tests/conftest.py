"""
Pytest configuration and shared fixtures for backend tests.
"""

import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import json
from datetime import UTC, datetime
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from core.security.encryption import encrypt_credential
from infrastructure.config import get_settings
from infrastructure.database.connection import get_db
from infrastructure.database.models import (
    Base,
    Project,
    SocialConnection,
    SocialPost,
    WebhookDelivery,
)

settings = get_settings()

# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_SECRET_KEY = "test-secret-key-for-credential-encryption-0123456789"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def project(db_session: AsyncSession) -> Project:
    """A project with an enabled, signed webhook."""
    project = Project(
        user_id="user_123",
        name="Test Project",
        webhook_url="https://hooks.example.com/contentbot",
        webhook_secret="whsec_test",
        webhook_enabled=True,
        webhook_events=["article.published"],
    )
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


@pytest.fixture
def make_delivery(db_session: AsyncSession, project: Project):
    """Factory for webhook deliveries; due now unless told otherwise."""

    async def _make(**overrides) -> WebhookDelivery:
        values = {
            "user_id": project.user_id,
            "project_id": project.id,
            "webhook_url": project.webhook_url,
            "event_type": "article.published",
            "request_payload": json.dumps({"id": 1, "title": "Hello"}),
            "status": "pending",
            "attempts": 0,
            "max_attempts": 3,
            "next_retry_at": datetime.now(UTC),
        }
        values.update(overrides)
        delivery = WebhookDelivery(**values)
        db_session.add(delivery)
        await db_session.commit()
        await db_session.refresh(delivery)
        return delivery

    return _make


@pytest.fixture
def make_social_post(db_session: AsyncSession, project: Project):
    """Factory for social posts; due now unless told otherwise."""

    async def _make(**overrides) -> SocialPost:
        now = datetime.now(UTC)
        values = {
            "project_id": project.id,
            "user_id": project.user_id,
            "provider": "x",
            "payload": {"base": {"text": "Hello from Contentbot"}},
            "status": "pending",
            "attempts": 0,
            "max_attempts": 3,
            "publish_scheduled_at": now,
            "next_attempt_at": now,
        }
        values.update(overrides)
        post = SocialPost(**values)
        db_session.add(post)
        await db_session.commit()
        await db_session.refresh(post)
        return post

    return _make


@pytest.fixture
def make_connection(db_session: AsyncSession, project: Project):
    """Factory for social connections holding an encrypted refresh token."""

    async def _make(provider: str = "x", refresh_token: str | None = "refresh-abc", **overrides):
        values = {
            "project_id": project.id,
            "user_id": project.user_id,
            "provider": provider,
            "refresh_token_encrypted": (
                encrypt_credential(refresh_token, TEST_SECRET_KEY) if refresh_token else None
            ),
            "account_username": "contentbot",
            "is_active": True,
        }
        values.update(overrides)
        connection = SocialConnection(**values)
        db_session.add(connection)
        await db_session.commit()
        await db_session.refresh(connection)
        return connection

    return _make


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def no_cron_secret(monkeypatch):
    """Run with the cron secret check disabled."""
    monkeypatch.setattr(settings, "cron_secret", None)


@pytest.fixture
def credential_key() -> str:
    """Key the connection factory encrypts refresh tokens with."""
    return TEST_SECRET_KEY
