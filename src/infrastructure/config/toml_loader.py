"""TOML configuration loader with env overrides."""

import logging
import os
import tomllib
from pathlib import Path

from src.domain.ports.config import (
    AppConfig,
    GitHubConfig,
    LLMConfig,
    OllamaConfig,
    OpenAICompatibleConfig,
    SecurityConfig,
    ServerConfig,
    WorkflowConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"


def _load_toml(path: Path) -> dict:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _merge(base: dict, override: dict) -> dict:
    """Section-wise merge: tables are merged one level deep, scalars replaced."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _env_int(name: str, section: dict, key: str) -> None:
    if (raw := os.getenv(name)) is None or not raw.strip():
        return
    try:
        section[key] = int(raw)
    except ValueError:
        logger.warning("Invalid %s env value: %r, ignoring", name, raw)


def _apply_env_overrides(config: dict) -> dict:
    """Apply environment variable overrides."""
    if provider := os.getenv("LLM_PROVIDER"):
        config.setdefault("llm", {})["provider"] = provider
    if model := os.getenv("LLM_MODEL"):
        config.setdefault("llm", {})["model"] = model
    if host := os.getenv("OLLAMA_HOST"):
        config.setdefault("ollama", {})["host"] = host
    if base_url := os.getenv("OPENAI_BASE_URL"):
        config.setdefault("openai_compatible", {})["base_url"] = base_url
    _env_int("PORT", config.setdefault("server", {}), "port")
    if level := os.getenv("LOG_LEVEL"):
        config.setdefault("logging", {})["level"] = level.upper()
    if path := os.getenv("LOG_FILE"):
        config.setdefault("logging", {})["file"] = path.strip()
    if origins := os.getenv("CORS_ORIGINS"):
        config.setdefault("security", {})["cors_origins"] = [o.strip() for o in origins.split(",")]
    _env_int("RATE_LIMIT_PER_MINUTE", config.setdefault("security", {}), "rate_limit_requests_per_minute")

    workflow = config.setdefault("workflow", {})
    if dirs := os.getenv("WORKFLOW_DIRS"):
        workflow["directories"] = [d.strip() for d in dirs.split(os.pathsep) if d.strip()]
    if state_dir := os.getenv("WORKFLOW_STATE_DIR"):
        workflow["state_dir"] = state_dir.strip()
    _env_int("WORKFLOW_MAX_ITERATIONS", workflow, "max_iterations")

    github = config.setdefault("github", {})
    if token := os.getenv("GITHUB_TOKEN"):
        github["token"] = token.strip()
    if repo := os.getenv("GITHUB_REPOSITORY"):
        github["repository"] = repo.strip()
    return config


def load_config(config_dir: Path | None = None) -> AppConfig:
    """Load configuration from TOML files with env overrides.

    Loads default.toml, then development.toml if exists.
    """
    if config_dir is None:
        config_dir = DEFAULT_CONFIG_DIR

    config: dict = {}
    default_path = config_dir / "default.toml"
    if default_path.exists():
        config = _load_toml(default_path)
    dev_path = config_dir / "development.toml"
    if dev_path.exists():
        config = _merge(config, _load_toml(dev_path))

    config = _apply_env_overrides(config)

    logging_raw = config.get("logging") or {}
    return AppConfig(
        server=ServerConfig(**(config.get("server") or {})),
        llm=LLMConfig(**(config.get("llm") or {})),
        ollama=OllamaConfig(**(config.get("ollama") or {})),
        openai_compatible=OpenAICompatibleConfig(**(config.get("openai_compatible") or {})),
        workflow=WorkflowConfig(**(config.get("workflow") or {})),
        github=GitHubConfig(**(config.get("github") or {})),
        security=SecurityConfig(**(config.get("security") or {})),
        log_level=logging_raw.get("level", "INFO"),
        log_file=(logging_raw.get("file") or "").strip(),
        log_rotation_max_mb=int(logging_raw.get("log_rotation_max_mb", 5)),
        log_rotation_backups=int(logging_raw.get("log_rotation_backups", 3)),
    )
