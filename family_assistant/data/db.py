"""
Family Task Assistant — Family Database.

SQLite store behind the chat front end: who is in which family, their tasks,
and the points ledger. The conversation pipeline never touches it directly;
it only receives the FamilyContext snapshot built here.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from family_assistant.data.models import (
    ActiveTask,
    CompletedTask,
    FamilyContext,
    FamilyMember,
    MemberPoints,
    MemberRole,
)

if TYPE_CHECKING:
    from family_assistant.core.task_extractor import ParsedTask

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("PENDING", "AVAILABLE", "COMPLETED", "OVERDUE")
VERIFIED = "VERIFIED"
DEFAULT_WINDOW_DAYS = 30


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_date(value: str):
    return datetime.fromisoformat(value).date()


class FamilyDB:
    """SQLite-backed storage for families, tasks and points."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from family_assistant.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS members (
                    id          TEXT    PRIMARY KEY,
                    family_id   TEXT    NOT NULL,
                    name        TEXT    NOT NULL,
                    role        TEXT    NOT NULL,
                    is_admin    INTEGER NOT NULL DEFAULT 0,
                    telegram_id INTEGER UNIQUE
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id                 TEXT    PRIMARY KEY,
                    family_id          TEXT    NOT NULL,
                    title              TEXT    NOT NULL,
                    description        TEXT,
                    points             INTEGER NOT NULL,
                    due_date           TEXT    NOT NULL,
                    status             TEXT    NOT NULL DEFAULT 'PENDING',
                    assignee_id        TEXT,
                    created_by         TEXT    NOT NULL,
                    is_bonus           INTEGER NOT NULL DEFAULT 0,
                    is_recurring       INTEGER NOT NULL DEFAULT 0,
                    recurrence_pattern TEXT,
                    due_date_only      INTEGER NOT NULL DEFAULT 0,
                    created_at         TEXT    NOT NULL,
                    verified_at        TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS points_history (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    family_id     TEXT    NOT NULL,
                    member_id     TEXT    NOT NULL,
                    points        INTEGER NOT NULL,
                    balance_after INTEGER NOT NULL,
                    reason        TEXT,
                    created_at    TEXT    NOT NULL
                )
            """)
        logger.debug("Family tables initialized at %s", self._db_path)

    # ---- members ----

    @staticmethod
    def _row_to_member(row: sqlite3.Row) -> FamilyMember:
        return FamilyMember(
            id=row["id"],
            name=row["name"],
            role=MemberRole(row["role"]),
            is_admin=bool(row["is_admin"]),
        )

    def add_member(
        self,
        family_id: str,
        name: str,
        role: MemberRole,
        telegram_id: int | None = None,
        is_admin: bool = False,
    ) -> FamilyMember:
        member_id = _new_id()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO members (id, family_id, name, role, is_admin, telegram_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (member_id, family_id, name, MemberRole(role).value, int(is_admin), telegram_id),
            )
        logger.info("Member added: %s (%s) to family %s", name, MemberRole(role).value, family_id)
        return FamilyMember(id=member_id, name=name, role=MemberRole(role), is_admin=is_admin)

    def get_member_by_telegram_id(self, telegram_id: int) -> FamilyMember | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM members WHERE telegram_id = ?", (telegram_id,)
            ).fetchone()
        return self._row_to_member(row) if row else None

    def get_family_id_for_member(self, member_id: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT family_id FROM members WHERE id = ?", (member_id,)
            ).fetchone()
        return row["family_id"] if row else None

    def validate_family_access(self, member_id: str, family_id: str) -> bool:
        """True when *member_id* belongs to *family_id*."""
        return self.get_family_id_for_member(member_id) == family_id

    # ---- ledger ----

    def record_points(
        self,
        family_id: str,
        member_id: str,
        points: int,
        balance_after: int,
        reason: str = "",
        created_at: datetime | None = None,
    ) -> None:
        """Append one ledger entry. The caller computes the balance."""
        created_at = created_at or datetime.now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO points_history
                    (family_id, member_id, points, balance_after, reason, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (family_id, member_id, points, balance_after, reason, created_at.isoformat()),
            )

    # ---- snapshot ----

    def build_context(
        self,
        family_id: str,
        window_days: int = DEFAULT_WINDOW_DAYS,
        now: datetime | None = None,
    ) -> FamilyContext:
        """Read-only snapshot of a family for one conversation turn."""
        now = now or datetime.now()
        since = (now - timedelta(days=window_days)).isoformat()
        placeholders = ", ".join("?" for _ in ACTIVE_STATUSES)

        with self._connect() as conn:
            member_rows = conn.execute(
                "SELECT * FROM members WHERE family_id = ? ORDER BY rowid", (family_id,)
            ).fetchall()
            active_rows = conn.execute(
                f"""
                SELECT t.*, m.name AS assignee_name FROM tasks t
                LEFT JOIN members m ON m.id = t.assignee_id
                WHERE t.family_id = ? AND t.status IN ({placeholders})
                ORDER BY t.due_date
                """,
                (family_id, *ACTIVE_STATUSES),
            ).fetchall()
            done_rows = conn.execute(
                """
                SELECT t.*, m.name AS assignee_name FROM tasks t
                LEFT JOIN members m ON m.id = t.assignee_id
                WHERE t.family_id = ? AND t.status = ? AND t.verified_at >= ?
                ORDER BY t.verified_at DESC
                """,
                (family_id, VERIFIED, since),
            ).fetchall()

            points: list[MemberPoints] = []
            for row in member_rows:
                latest = conn.execute(
                    """
                    SELECT balance_after FROM points_history
                    WHERE member_id = ? ORDER BY id DESC LIMIT 1
                    """,
                    (row["id"],),
                ).fetchone()
                earned = conn.execute(
                    """
                    SELECT COALESCE(SUM(points), 0) AS earned FROM points_history
                    WHERE member_id = ? AND points > 0
                    """,
                    (row["id"],),
                ).fetchone()
                points.append(MemberPoints(
                    user_id=row["id"],
                    user_name=row["name"],
                    current_points=latest["balance_after"] if latest else 0,
                    total_earned=earned["earned"],
                ))

        context = FamilyContext(
            family_id=family_id,
            members=tuple(self._row_to_member(r) for r in member_rows),
            active_tasks=tuple(
                ActiveTask(
                    id=r["id"],
                    title=r["title"],
                    description=r["description"],
                    points=r["points"],
                    due_date=_parse_date(r["due_date"]),
                    status=r["status"],
                    assignee_id=r["assignee_id"],
                    assignee_name=r["assignee_name"],
                )
                for r in active_rows
            ),
            completion_history=tuple(
                CompletedTask(
                    title=r["title"],
                    points=r["points"],
                    completed_at=datetime.fromisoformat(r["verified_at"]),
                    assignee_id=r["assignee_id"],
                    assignee_name=r["assignee_name"],
                )
                for r in done_rows
            ),
            points_data=tuple(points),
        )
        logger.debug(
            "Context for family %s: %d members, %d active, %d completed",
            family_id, len(context.members), len(context.active_tasks),
            len(context.completion_history),
        )
        return context

    # ---- tasks ----

    def create_task_from_proposal(
        self,
        family_id: str,
        task: ParsedTask,
        created_by: str,
    ) -> str:
        """Persist a reviewed proposal and return the new task id.

        Raises ValueError when the creator or assignee is not in the family.
        """
        if not self.validate_family_access(created_by, family_id):
            raise ValueError(f"Member {created_by} is not in family {family_id}")
        if task.assignee_id and not self.validate_family_access(task.assignee_id, family_id):
            raise ValueError(f"Assignee {task.assignee_id} is not in family {family_id}")

        task_id = _new_id()
        status = "AVAILABLE" if task.is_bonus_task or not task.assignee_id else "PENDING"
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO tasks
                    (id, family_id, title, description, points, due_date, status,
                     assignee_id, created_by, is_bonus, is_recurring,
                     recurrence_pattern, due_date_only, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id, family_id, task.title, task.description,
                    task.suggested_points, task.suggested_due_date.isoformat(), status,
                    task.assignee_id, created_by, int(task.is_bonus_task),
                    int(task.is_recurring),
                    task.recurrence_pattern.value if task.recurrence_pattern else None,
                    int(task.due_date_only), datetime.now().isoformat(),
                ),
            )
        logger.info("Task created: %s '%s' (%s) in family %s", task_id, task.title, status, family_id)
        return task_id
