"""
Family Task Assistant — Structured decode of model output.

Model output is an untyped blob. These helpers strip markdown fences and the
control characters that break the JSON decoder, then pull out the first JSON
object or array. Anything that cannot be extracted raises MalformedOutputError,
which the retry policy treats like an upstream failure.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

logger = logging.getLogger(__name__)


class MalformedOutputError(Exception):
    """Raised when model output has no usable JSON or misses required structure."""


# Raw control characters are invalid inside JSON strings; \t \n \r between
# tokens are harmless and kept so the decoder still sees token boundaries.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")


def clean_llm_response(raw_text: str) -> str:
    """Remove markdown code block delimiters from the model's raw response."""
    cleaned_text = raw_text.strip()
    if cleaned_text.startswith("```json"):
        cleaned_text = cleaned_text.removeprefix("```json")
    elif cleaned_text.startswith("```"):
        cleaned_text = cleaned_text.removeprefix("```")
    if cleaned_text.endswith("```"):
        cleaned_text = cleaned_text.removesuffix("```")
    return cleaned_text.strip()


def strip_control_chars(text: str) -> str:
    return _CONTROL_CHARS.sub("", text)


def _slice_between(text: str, opener: str, closer: str) -> str | None:
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _loads(candidate: str) -> Any:
    try:
        # strict=False tolerates literal newlines/tabs inside string values
        return json.loads(candidate, strict=False)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(f"Invalid JSON in model output: {exc}") from exc


def extract_json_object(raw_text: str) -> dict:
    """Return the outermost JSON object embedded in *raw_text*."""
    if not raw_text or not raw_text.strip():
        raise MalformedOutputError("Empty model output")

    text = strip_control_chars(clean_llm_response(raw_text))
    candidate = _slice_between(text, "{", "}")
    if candidate is None:
        raise MalformedOutputError("No JSON object found in model output")

    data = _loads(candidate)
    if not isinstance(data, dict):
        raise MalformedOutputError(f"Expected JSON object, got {type(data).__name__}")
    return data


def extract_json_payload(raw_text: str) -> dict | list:
    """Return the JSON object or array embedded in *raw_text*, whichever comes first."""
    if not raw_text or not raw_text.strip():
        raise MalformedOutputError("Empty model output")

    text = strip_control_chars(clean_llm_response(raw_text))
    obj_start = text.find("{")
    arr_start = text.find("[")

    if arr_start != -1 and (obj_start == -1 or arr_start < obj_start):
        candidate = _slice_between(text, "[", "]")
    else:
        candidate = _slice_between(text, "{", "}")

    if candidate is None:
        raise MalformedOutputError("No JSON found in model output")
    return _loads(candidate)


# ---------------------------------------------------------------------------
# Field coercion: never raises, always returns a usable value
# ---------------------------------------------------------------------------


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def coerce_float(value: Any, default: float) -> float:
    """Best-effort float conversion; bools, NaN and garbage give *default*."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def coerce_int(value: Any, default: int) -> int:
    """Best-effort integer conversion, rounding floats and numeric strings."""
    result = coerce_float(value, float("nan"))
    if math.isnan(result):
        return default
    return int(round(result))


def coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def coerce_str(value: Any) -> str | None:
    """Stripped string, or None for non-strings and blank strings."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() in ("null", "none"):
        return None
    return value
