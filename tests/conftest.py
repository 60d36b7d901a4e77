"""Pytest configuration for commentary enricher tests."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from commentary_enricher.config import Settings
from commentary_enricher.utils.generation import GenerationClient, GenerationConfig
from commentary_enricher.utils.retry import RetryPolicy
from fixtures.doubles import RecordingSleep


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    root = tmp_path / "public-content"
    (root / "en").mkdir(parents=True)
    return root


@pytest.fixture
def settings(content_root: Path, tmp_path: Path) -> Settings:
    intros = tmp_path / "Book Introductions"
    intros.mkdir()
    return Settings(
        _env_file=None,
        openrouter_api_key="test-key",
        content_root=content_root,
        introductions_dir=intros,
        inter_call_delay=0.0,
        llm_min_interval=0.0,
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fake_llm() -> MagicMock:
    llm = MagicMock()
    llm.ainvoke = AsyncMock()
    return llm


@pytest.fixture
def generation_client(fake_llm: MagicMock, recording_sleep: RecordingSleep) -> GenerationClient:
    """GenerationClient whose remote model is ``fake_llm``."""
    return GenerationClient(
        GenerationConfig(primary_model="primary/model", fallback_model="fallback/model", api_key="test-key"),
        retry_policy=RetryPolicy(max_attempts=5, base_delay=2.0, max_delay=120.0),
        llm_factory=lambda model, json_mode: fake_llm,
        sleep=recording_sleep,
    )
