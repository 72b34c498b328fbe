"""
Family Task Assistant — Roster name resolution.

Free-text names from the model or the user are reconciled against the family
roster here, and nowhere else.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from family_assistant.data.models import FamilyMember

logger = logging.getLogger(__name__)


def _normalize(name: str) -> str:
    return " ".join(name.split()).casefold()


def resolve_assignee(roster: Iterable[FamilyMember], free_text_name: str | None) -> str | None:
    """Return the id of the roster member whose name matches, case-insensitively.

    Returns None for empty input or when nobody matches.
    """
    if not free_text_name or not free_text_name.strip():
        return None

    wanted = _normalize(free_text_name)
    for member in roster:
        if _normalize(member.name) == wanted:
            return member.id

    logger.info("No roster member named '%s'", free_text_name)
    return None


def find_mentioned_member(roster: Iterable[FamilyMember], text: str) -> FamilyMember | None:
    """Return the first roster member whose name appears as a whole word in *text*."""
    if not text:
        return None
    for member in roster:
        if not member.name.strip():
            continue
        pattern = r"(?<!\w)" + re.escape(member.name.strip()) + r"(?!\w)"
        if re.search(pattern, text, re.IGNORECASE):
            return member
    return None


def roster_names(roster: Iterable[FamilyMember]) -> list[str]:
    return [m.name for m in roster]
