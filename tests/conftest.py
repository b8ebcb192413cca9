# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (mocks and an in-memory SQLite database)
- Integration tests (FastAPI TestClient)
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from src.infrastructure.database.connection import create_sessionmaker
from src.infrastructure.database.models import (
    Base,
    ClassStudent,
    Message,
    MusicClass,
    Student,
    User,
)
from src.utils.datetime import utc_now


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def test_environment() -> dict[str, str]:
    """Provide test environment variables.

    Returns:
        Dictionary of environment variables for testing.
    """
    return {
        "ENVIRONMENT": "development",
        "DEBUG": "true",
        "LOG_LEVEL": "DEBUG",
        "DB_HOST": "localhost",
        "DB_PORT": "5432",
        "JWT_SECRET_KEY": "test-secret-key-for-testing-only",
        "JWT_ALGORITHM": "HS256",
        "NOTIFY_CHANNEL_TIMEOUT_SECONDS": "5",
    }


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def db_engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Session bound to the in-memory engine, rolled back after the test."""
    sessionmaker = create_sessionmaker(db_engine)
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_student_id() -> str:
    """Provide a sample student ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440001"


@pytest.fixture
def sample_admin_id() -> str:
    """Provide a sample administrator ID for testing."""
    return "550e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def sample_message_data() -> dict[str, Any]:
    """Provide sample message creation data for testing."""
    return {
        "recipient": {"kind": "all_students"},
        "subject": "Ensayo general",
        "body": "Hola {{nombre}}, el ensayo general es el **viernes**.",
        "message_type": "announcement",
        "priority": "high",
        "delivery_channels": {"internal": True, "email": True, "whatsapp": False},
    }


@pytest_asyncio.fixture
async def directory(db_session: AsyncSession) -> dict[str, Any]:
    """Insert an admin, a teacher, three students and one class.

    Ana and Bruno are active members of "Guitarra 101". Carla is active
    but not enrolled. Returns the created rows by name.
    """
    session = db_session
    admin = User(username="Admin", email="admin@vac.cl", role="admin")
    teacher = User(username="Profesor Soto", email="soto@vac.cl", role="teacher")
    ana = Student(name="Ana", email="ana@vac.cl", phone=None, rut="11.111.111-1")
    bruno = Student(name="Bruno", email="bruno@vac.cl", phone="+56 9 1234 5678")
    carla = Student(name="Carla", email=None, phone=None, instrument="piano")
    session.add_all([admin, teacher, ana, bruno, carla])
    await session.flush()

    guitar = MusicClass(
        title="Guitarra 101",
        room="Sala 2",
        teacher_id=teacher.id,
        schedule=[{"day": "14-03-2025", "start": "10:00", "end": "11:00"}],
    )
    session.add(guitar)
    await session.flush()
    session.add_all(
        [
            ClassStudent(class_id=guitar.id, student_id=ana.id, position=0),
            ClassStudent(class_id=guitar.id, student_id=bruno.id, position=1),
        ]
    )
    await session.flush()

    return {
        "admin": admin,
        "teacher": teacher,
        "ana": ana,
        "bruno": bruno,
        "carla": carla,
        "guitar": guitar,
    }


@pytest.fixture
def make_message(db_session: AsyncSession) -> Callable[..., Awaitable[Message]]:
    """Factory inserting message rows directly."""

    async def _make(
        sender_id: str,
        status: str = "sent",
        recipient_kind: str = "all_students",
        recipient_ref: str | None = None,
        subject: str = "Aviso",
    ) -> Message:
        now = utc_now()
        message = Message(
            sender_id=sender_id,
            recipient_kind=recipient_kind,
            recipient_ref=recipient_ref,
            subject=subject,
            body="Contenido",
            status=status,
            sent_at=now if status == "sent" else None,
            created_by=sender_id,
        )
        db_session.add(message)
        await db_session.flush()
        return message

    return _make
