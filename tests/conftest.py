"""Global test fixtures and utilities for achievement engine tests"""
import pytest
from datetime import date
from unittest.mock import AsyncMock, MagicMock

from volunteer_achievements.db.memory_store import (
    MemoryAuditSink,
    MemoryNotificationSink,
    MemoryStore,
)
from volunteer_achievements.engine import AchievementEvaluationService
from volunteer_achievements.models.achievement import AchievementDefinition


# ============================================================================
# Store Fixtures
# ============================================================================

@pytest.fixture
def today():
    """Fixed 'today' so trailing windows are deterministic"""
    return date(2024, 5, 15)


@pytest.fixture
def store(today):
    """Empty in-memory store"""
    return MemoryStore(today=today)


@pytest.fixture
def notifier():
    return MemoryNotificationSink()


@pytest.fixture
def auditor():
    return MemoryAuditSink()


@pytest.fixture
def service(store, notifier, auditor):
    """Evaluation service wired to the in-memory store and sinks"""
    return AchievementEvaluationService(store=store, notifier=notifier, auditor=auditor)


# ============================================================================
# User & Definition Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test volunteer ID"""
    return 101


@pytest.fixture
def admin_user_id():
    """Standard test admin ID"""
    return 1


@pytest.fixture
def make_achievement():
    """Factory for achievement definitions"""
    def _make(achievement_id, rule_kind, criteria=None, **kwargs):
        kwargs.setdefault("title", f"Achievement {achievement_id}")
        return AchievementDefinition(
            id=achievement_id,
            rule_kind=rule_kind,
            criteria=criteria or {},
            **kwargs
        )
    return _make


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor with standard query results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    return cursor


@pytest.fixture
def mock_db_connection(mock_db_cursor):
    """Mock connection whose cursor() context manager yields mock_db_cursor"""
    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = mock_db_cursor
    conn.commit = AsyncMock()
    return conn
