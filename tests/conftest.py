"""Shared fixtures."""

import pytest

from exam_parser.config import Settings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Every test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with AI enabled, no pauses between batches and no .env file."""
    return Settings(
        _env_file=None,
        gemini_api_key="test-gemini-api-key",
        ai_batch_delay_seconds=0,
        ai_extraction_backoff_seconds=0,
    )
