"""
Family Task Assistant — Data Models.

Read-only snapshot of a family handed to the conversation pipeline.
The pipeline never writes these back; a fresh snapshot is built from the
family store for every conversation turn.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class MemberRole(str, Enum):
    PARENT = "PARENT"
    CHILD = "CHILD"


@dataclass(frozen=True)
class FamilyMember:
    """A person on the family roster."""

    id: str
    name: str                 # display name, e.g. "Erik"
    role: MemberRole
    is_admin: bool = False


@dataclass(frozen=True)
class ActiveTask:
    """A task that is still open (pending, available, completed-unverified, overdue)."""

    id: str
    title: str
    points: int
    due_date: date
    status: str = "PENDING"
    description: str | None = None
    assignee_id: str | None = None    # None for bonus tasks
    assignee_name: str | None = None


@dataclass(frozen=True)
class CompletedTask:
    """A verified task from the recent completion window."""

    title: str
    points: int
    completed_at: datetime
    assignee_id: str | None = None
    assignee_name: str | None = None


@dataclass(frozen=True)
class MemberPoints:
    """Points ledger summary for one member."""

    user_id: str
    user_name: str
    current_points: int = 0    # running balance
    total_earned: int = 0      # sum of all positive entries


@dataclass(frozen=True)
class FamilyContext:
    """Everything the assistant may know about a family for one turn."""

    family_id: str
    members: tuple[FamilyMember, ...] = field(default_factory=tuple)
    active_tasks: tuple[ActiveTask, ...] = field(default_factory=tuple)
    completion_history: tuple[CompletedTask, ...] = field(default_factory=tuple)
    points_data: tuple[MemberPoints, ...] = field(default_factory=tuple)

    def children(self) -> list[FamilyMember]:
        return [m for m in self.members if m.role == MemberRole.CHILD]

    def member_by_id(self, member_id: str | None) -> FamilyMember | None:
        if member_id is None:
            return None
        for member in self.members:
            if member.id == member_id:
                return member
        return None


@dataclass
class ConversationMessage:
    """One item of the caller-owned chat history."""

    role: str                         # "user" | "assistant" | "system"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    intent: str | None = None         # intent value produced by a prior turn
    data: dict | None = None
