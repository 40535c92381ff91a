"""Config Port - interface for configuration access."""

from typing import Protocol

from pydantic import BaseModel, Field

DEFAULT_WORKFLOW_DIRECTORIES = ["~/.codi/workflows", ".codi/workflows", "workflows"]
DEFAULT_MAX_ITERATIONS = 1000


class LLMConfig(BaseModel):
    """LLM provider selection."""

    provider: str = "ollama"  # "ollama" | "lm_studio"
    model: str = "qwen2.5-coder:7b"


class OllamaConfig(BaseModel):
    """Ollama connection configuration."""

    host: str = "http://localhost:11434"
    timeout: int = 120
    # Optional: None = use model defaults.
    num_ctx: int | None = None
    num_predict: int | None = None


class OpenAICompatibleConfig(BaseModel):
    """LM Studio, vLLM, LocalAI - OpenAI-compatible API."""

    base_url: str = "http://localhost:1234/v1"
    api_key: str = ""
    timeout: int = 120
    max_tokens: int | None = None


class WorkflowConfig(BaseModel):
    """Workflow engine settings."""

    # Ordered search path; "~" is expanded. Earlier directories win on name clashes.
    directories: list[str] = Field(default_factory=lambda: list(DEFAULT_WORKFLOW_DIRECTORIES))
    state_dir: str = "~/.codi/workflows/state"
    # Hard cap on loop traversals per session. Exceeding it fails the session.
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    shell_timeout: float = 300.0
    working_dir: str | None = None  # None = process cwd


class GitHubConfig(BaseModel):
    """Source hosting (GitHub REST API)."""

    api_url: str = "https://api.github.com"
    token: str = ""
    repository: str | None = None  # default "owner/name" for PR steps
    timeout: int = 30


class SecurityConfig(BaseModel):
    """Security settings."""

    rate_limit_requests_per_minute: int = 100
    cors_origins: list[str] = ["http://localhost:5173"]


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8000


class AppConfig(BaseModel):
    """Full application configuration."""

    server: ServerConfig = ServerConfig()
    llm: LLMConfig = LLMConfig()
    ollama: OllamaConfig = OllamaConfig()
    openai_compatible: OpenAICompatibleConfig = OpenAICompatibleConfig()
    workflow: WorkflowConfig = WorkflowConfig()
    github: GitHubConfig = GitHubConfig()
    security: SecurityConfig = SecurityConfig()
    log_level: str = "INFO"
    # Log file: path relative to cwd or absolute. Empty = only stdout.
    log_file: str = ""
    log_rotation_max_mb: int = 5
    log_rotation_backups: int = 3


class ConfigPort(Protocol):
    """Interface for configuration providers."""

    def get_config(self) -> AppConfig:
        """Get the full application configuration."""
        ...
