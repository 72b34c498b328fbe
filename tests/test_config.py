"""Tests for family_assistant.config — settings parsing."""

import pytest
from unittest.mock import patch

from family_assistant.config import Settings, _load_settings


class TestSettings:
    def test_user_ids_from_comma_list(self):
        settings = Settings(LLM_API_KEY="k", ALLOWED_USER_IDS="1, 2,,3")
        assert settings.ALLOWED_USER_IDS == [1, 2, 3]

    def test_empty_user_ids(self):
        assert Settings(LLM_API_KEY="k", ALLOWED_USER_IDS="").ALLOWED_USER_IDS == []

    def test_windows_at_least_one(self):
        settings = Settings(LLM_API_KEY="k", HISTORY_WINDOW="0", COMPLETION_WINDOW_DAYS="14")
        assert settings.HISTORY_WINDOW == 1
        assert settings.COMPLETION_WINDOW_DAYS == 14

    def test_defaults(self):
        settings = Settings(LLM_API_KEY="k")
        assert settings.LLM_PROVIDER == "openai"
        assert settings.LLM_TEMPERATURE is None
        assert settings.HISTORY_WINDOW == 5


class TestLoadSettings:
    def test_missing_key_exits(self):
        with patch.dict("os.environ", {"LLM_API_KEY": ""}):
            with pytest.raises(SystemExit):
                _load_settings()

    def test_placeholder_key_exits(self):
        with patch.dict("os.environ", {"LLM_API_KEY": "your-key-here"}):
            with pytest.raises(SystemExit):
                _load_settings()

    def test_temperature_override(self):
        with patch.dict("os.environ", {"LLM_API_KEY": "k", "LLM_TEMPERATURE": "0.3"}):
            assert _load_settings().LLM_TEMPERATURE == 0.3
