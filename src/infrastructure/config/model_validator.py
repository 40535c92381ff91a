"""Check the configured agent model against the provider at startup."""

import structlog

from src.domain.ports.config import AppConfig
from src.domain.ports.llm import LLMPort

log = structlog.get_logger()


def model_available(model: str, available: list[str]) -> bool:
    """True when ``model`` matches an available name exactly or by base name ("qwen2.5-coder" ~ "qwen2.5-coder:7b")."""
    wanted = model.strip().lower()
    wanted_base = wanted.split(":")[0]
    for name in available:
        name = name.strip().lower()
        if name == wanted or name.split(":")[0] == wanted_base:
            return True
    return False


async def validate_agent_model(llm: LLMPort, config: AppConfig) -> list[str]:
    """Log a warning when the configured model is missing. Never fails startup.

    Returns the provider's model list (empty when unreachable) so callers can seed
    the available-models registry used by switch-model steps.
    """
    provider = config.llm.provider
    try:
        available = await llm.list_models()
    except Exception as e:
        log.warning("model_validation_skipped", reason="llm_unreachable", provider=provider, error=str(e))
        return []

    if not available:
        log.warning("model_validation_skipped", reason="no_models_returned", provider=provider)
        return []

    if model_available(config.llm.model, available):
        log.debug("model_validation_ok", provider=provider, model=config.llm.model)
    else:
        hint = (
            "Pull with 'ollama pull <model>' or update llm.model in development.toml"
            if provider == "ollama"
            else "Load the model in LM Studio or update llm.model in development.toml"
        )
        log.warning(
            "configured_model_not_available",
            provider=provider,
            model=config.llm.model,
            available_count=len(available),
            hint=hint,
        )
    return available
