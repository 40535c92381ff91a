"""Tests for model validator."""

from unittest.mock import AsyncMock

import pytest

from src.domain.ports.config import AppConfig, LLMConfig
from src.infrastructure.config.model_validator import model_available, validate_agent_model
from src.shared.logging import setup_logging


@pytest.fixture
def config():
    """App config with an ollama model."""
    return AppConfig(llm=LLMConfig(provider="ollama", model="qwen2.5-coder:7b"))


@pytest.mark.asyncio
async def test_validate_model_available(config):
    """When the configured model exists, the list is returned."""
    llm = AsyncMock()
    llm.list_models = AsyncMock(return_value=["qwen2.5-coder:7b", "llama3.2:latest"])

    assert await validate_agent_model(llm, config) == ["qwen2.5-coder:7b", "llama3.2:latest"]
    llm.list_models.assert_called_once()


@pytest.mark.asyncio
async def test_validate_missing_model_logs_warning(config, capsys):
    """When the configured model is missing, log warning to stdout."""
    setup_logging("INFO")
    llm = AsyncMock()
    llm.list_models = AsyncMock(return_value=["llama3.2:latest"])

    await validate_agent_model(llm, config)

    out, err = capsys.readouterr()
    assert "configured_model_not_available" in out + err


@pytest.mark.asyncio
async def test_validate_llm_unreachable_skips(config, capsys):
    """When LLM is unreachable, skip validation without failing."""
    setup_logging("INFO")
    llm = AsyncMock()
    llm.list_models = AsyncMock(side_effect=ConnectionError("Connection refused"))

    assert await validate_agent_model(llm, config) == []

    out, err = capsys.readouterr()
    assert "llm_unreachable" in out + err


def test_base_name_match():
    """Base name match: 'qwen2.5-coder' matches available 'qwen2.5-coder:7b'."""
    assert model_available("qwen2.5-coder", ["qwen2.5-coder:7b"])
    assert model_available("Llama3.2:latest", ["llama3.2:latest"])
    assert not model_available("mistral", ["llama3.2:latest"])
