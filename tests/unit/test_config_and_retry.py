"""
Unit tests for settings loading and the async retry helper.
"""
from unittest.mock import AsyncMock

import pytest

from signademy.core.config import Settings
from signademy.exceptions import get_user_message, RecognizerNotReadyError
from signademy.utils.retry import retry_async


class TestSettings:
    """Tests for Settings"""

    def test_defaults(self, mock_env, monkeypatch):
        monkeypatch.delenv("RUNTIME_ENDPOINTS", raising=False)
        monkeypatch.delenv("RECOGNITION_DISPLAY_THRESHOLD", raising=False)
        monkeypatch.delenv("RECOGNITION_SCORING_THRESHOLD", raising=False)

        settings = Settings()

        assert settings.model_storage_url == "https://storage.test"
        assert settings.recognition_display_threshold == 50
        assert settings.recognition_scoring_threshold == 60
        assert settings.recognition_grace_ms == 500
        assert settings.runtime_endpoints[0].startswith("mediapipe.tasks.python.vision")

    def test_default_runtime_endpoints_include_fallbacks(self, monkeypatch):
        monkeypatch.delenv("RUNTIME_ENDPOINTS", raising=False)

        endpoints = Settings().runtime_endpoints

        assert len(endpoints) >= 3
        assert len({e.partition("|")[0] for e in endpoints}) == len(endpoints)
        assert endpoints[-1] == "mediapipe:tasks.vision|"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MODEL_STORAGE_URL", "https://cdn.example.com/")
        monkeypatch.setenv("RUNTIME_ENDPOINTS", "pkg.a|/opt/a, pkg.b|")
        monkeypatch.setenv("RUNTIME_DELEGATE", "gpu")

        settings = Settings()

        assert settings.model_storage_url == "https://cdn.example.com"
        assert settings.runtime_endpoints == ["pkg.a|/opt/a", "pkg.b|"]
        assert settings.runtime_delegate == "GPU"


class TestRetryAsync:
    """Tests for retry_async"""

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        func = AsyncMock(side_effect=[OSError("down"), OSError("still down"), "ok"])
        sleep = AsyncMock()
        failures = []

        result = await retry_async(func, "endpoint", sleep=sleep, failures=failures)

        assert result == "ok"
        assert failures == ["endpoint (attempt 1): down", "endpoint (attempt 2): still down"]
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_reraises_last_error(self):
        func = AsyncMock(side_effect=[OSError("a"), OSError("b")])

        with pytest.raises(OSError, match="b"):
            await retry_async(func, "endpoint", max_retries=1, sleep=AsyncMock())
        assert func.await_count == 2

    @pytest.mark.asyncio
    async def test_unlisted_exception_is_not_retried(self):
        func = AsyncMock(side_effect=KeyError("boom"))

        with pytest.raises(KeyError):
            await retry_async(func, "endpoint", exceptions=(OSError,), sleep=AsyncMock())
        assert func.await_count == 1


class TestUserMessages:
    def test_user_message(self):
        assert get_user_message(RecognizerNotReadyError()) == "Please load a sign model first."
        assert get_user_message(ValueError("x")).startswith("An unexpected error")
