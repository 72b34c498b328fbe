"""
Family Task Assistant — Language Detection.

Families talk to the assistant in English or Russian. Every component that
needs the reply language calls the same heuristic here; there is no external
call and no failure mode.
"""

from __future__ import annotations

import re
from enum import Enum


class Language(str, Enum):
    EN = "en"
    RU = "ru"
    UNKNOWN = "unknown"


_CYRILLIC = re.compile(r"[\u0400-\u04FF]")

# Transliterated or mixed-script Russian that slipped past the script check
_RUSSIAN_WORDS = re.compile(
    r"\b(privet|spasibo|poka|zavtra|segodnya|zadach[aiu]?|sdelat|ubrat|pomyt|"
    r"ballov|ochkov|semya|nedelya)\b",
    re.IGNORECASE,
)

_ENGLISH_WORDS = re.compile(
    r"\b(how|what|show|tell|create|make|add|clean|wash|do|tomorrow|today|"
    r"week|room|home|dishes|homework|task|tasks|chore|chores|family|child|"
    r"kids|point|points|stats|hi|hello|thanks|bye)\b",
    re.IGNORECASE,
)


def detect_language(text: str) -> Language:
    """Classify *text* as English, Russian, or unknown.

    Any Cyrillic character is decisive. Otherwise a small keyword vocabulary
    per language is checked.
    """
    if not text:
        return Language.UNKNOWN
    if _CYRILLIC.search(text) or _RUSSIAN_WORDS.search(text):
        return Language.RU
    if _ENGLISH_WORDS.search(text):
        return Language.EN
    return Language.UNKNOWN


def resolve_language(text: str) -> Language:
    """Like detect_language(), but unknown falls back to English."""
    language = detect_language(text)
    return Language.EN if language == Language.UNKNOWN else language


def language_name(language: Language) -> str:
    """Human-readable language name for prompts."""
    return "Russian" if language == Language.RU else "English"
