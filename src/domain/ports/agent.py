"""Agent Port - interface for the conversational agent used by workflow steps."""

from typing import Protocol

from pydantic import BaseModel, ConfigDict


class ProviderConfig(BaseModel):
    """Provider + model the agent talks to."""

    model_config = ConfigDict(frozen=True)

    name: str  # "ollama" | "lm_studio"
    model: str

    @classmethod
    def parse(cls, spec: str, default_provider: str) -> "ProviderConfig":
        """Parse ``provider:model`` or a bare model name.

        Ollama tags contain a colon too (``qwen2.5-coder:7b``), so the prefix only
        counts as a provider when it is a known provider name.
        """
        prefix, sep, rest = spec.partition(":")
        if sep and rest and prefix in KNOWN_PROVIDERS:
            return cls(name=prefix, model=rest)
        return cls(name=default_provider, model=spec)

    def __str__(self) -> str:
        return f"{self.name}:{self.model}"


KNOWN_PROVIDERS = ("ollama", "lm_studio", "openai_compatible")


class AgentTimeoutError(Exception):
    """Agent did not answer in time."""


class AgentUnavailableError(Exception):
    """Agent's provider could not be reached."""


class AgentPort(Protocol):
    """Chat interface consumed by ai-prompt and switch-model steps."""

    @property
    def provider(self) -> ProviderConfig:
        """Currently active provider and model."""
        ...

    def set_provider(self, config: ProviderConfig) -> None:
        """Switch to another provider/model. Conversation context is kept."""
        ...

    async def chat(self, prompt: str) -> str:
        """Send a user prompt, return the assistant's text.

        Raises:
            AgentTimeoutError: provider timed out
            AgentUnavailableError: provider unreachable

        """
        ...
