"""Shared test fixtures and configuration.

Sets up fake environment variables so family_assistant.config doesn't
sys.exit(), and provides a small family, a fixed "today" and a stub model
client.
"""

import os

# Patch env vars BEFORE any family_assistant imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", "data/test-family.db")

from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from family_assistant.data.models import (
    ActiveTask,
    CompletedTask,
    FamilyContext,
    FamilyMember,
    MemberPoints,
    MemberRole,
)

TODAY = date(2025, 2, 13)   # a Thursday


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def members():
    return (
        FamilyMember(id="p1", name="Anna", role=MemberRole.PARENT, is_admin=True),
        FamilyMember(id="c1", name="Erik", role=MemberRole.CHILD),
        FamilyMember(id="c2", name="Sasha", role=MemberRole.CHILD),
    )


@pytest.fixture
def empty_family(members):
    """Roster only: no tasks, no history, no points."""
    return FamilyContext(family_id="fam-1", members=members)


@pytest.fixture
def family(members):
    """Erik: 5 done / 2 open (one overdue). Sasha: 3 done / 3 open."""
    active = (
        ActiveTask(id="t1", title="Clean room", points=3, due_date=date(2025, 2, 10),
                   assignee_id="c1", assignee_name="Erik"),
        ActiveTask(id="t2", title="Homework", points=5, due_date=date(2025, 2, 14),
                   assignee_id="c1", assignee_name="Erik"),
        ActiveTask(id="t3", title="Wash dishes", points=2, due_date=date(2025, 2, 13),
                   assignee_id="c2", assignee_name="Sasha"),
        ActiveTask(id="t4", title="Feed the cat", points=1, due_date=date(2025, 2, 14),
                   assignee_id="c2", assignee_name="Sasha"),
        ActiveTask(id="t5", title="Read a book", points=3, due_date=date(2025, 2, 15),
                   assignee_id="c2", assignee_name="Sasha"),
    )
    history = tuple(
        CompletedTask(title=f"Erik chore {i}", points=3,
                      completed_at=datetime(2025, 2, 12 - i, 18, 0),
                      assignee_id="c1", assignee_name="Erik")
        for i in range(5)
    ) + tuple(
        CompletedTask(title=f"Sasha chore {i}", points=2,
                      completed_at=datetime(2025, 2, 1 + i, 18, 0),
                      assignee_id="c2", assignee_name="Sasha")
        for i in range(3)
    )
    points = (
        MemberPoints(user_id="c1", user_name="Erik", current_points=15, total_earned=20),
        MemberPoints(user_id="c2", user_name="Sasha", current_points=6, total_earned=6),
    )
    return FamilyContext(
        family_id="fam-1",
        members=members,
        active_tasks=active,
        completion_history=history,
        points_data=points,
    )


@pytest.fixture
def llm():
    """Stub LanguageModelClient; set llm.complete.return_value / side_effect per test."""
    client = MagicMock()
    client.complete = AsyncMock()
    return client


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_family.db")


@pytest.fixture
def family_db(tmp_db_path):
    """Return a FamilyDB instance backed by a temp file."""
    from family_assistant.data.db import FamilyDB
    return FamilyDB(db_path=tmp_db_path)
