"""Dependency Injection Container - centralized service management."""

from functools import cached_property
from pathlib import Path

from src.application.workflow.executor import StepExecutor
from src.application.workflow.manager import WorkflowManager
from src.application.workflow.steps import StepContext
from src.domain.ports.agent import ProviderConfig
from src.domain.ports.config import AppConfig
from src.domain.ports.llm import LLMPort
from src.domain.ports.source_hosting import SourceHostingPort
from src.infrastructure.agents.chat_agent import ChatAgent
from src.infrastructure.config import load_config
from src.infrastructure.persistence.workflow_state_manager import StateManager
from src.infrastructure.services.github_client import GitHubClient
from src.infrastructure.services.process_runner import ProcessRunner


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached.

    Usage:
        container = Container()
        manager = container.workflow_manager
    """

    def __init__(self, config: AppConfig | None = None):
        """Initialize container with optional config override."""
        self._config_override = config

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    def llm_for(self, provider: str) -> LLMPort:
        """LLM adapter for a provider name ("ollama", "lm_studio", "openai_compatible")."""
        if provider in ("lm_studio", "openai_compatible"):
            from src.infrastructure.llm.openai_compatible import OpenAICompatibleAdapter

            return OpenAICompatibleAdapter(self.config.openai_compatible, default_model=self.config.llm.model)

        from src.infrastructure.llm.ollama import OllamaAdapter

        return OllamaAdapter(self.config.ollama, default_model=self.config.llm.model)

    @cached_property
    def llm(self) -> LLMPort:
        """LLM adapter for the configured provider."""
        return self.llm_for(self.config.llm.provider)

    @cached_property
    def agent(self) -> ChatAgent:
        """Conversational agent used by ai-prompt and switch-model steps."""
        configured = self.config.llm.provider

        def _factory(provider: str) -> LLMPort:
            return self.llm if provider == configured else self.llm_for(provider)

        return ChatAgent(
            adapter_factory=_factory,
            provider=ProviderConfig(name=configured, model=self.config.llm.model),
        )

    @cached_property
    def process_runner(self) -> ProcessRunner:
        wf = self.config.workflow
        return ProcessRunner(cwd=wf.working_dir, timeout=wf.shell_timeout)

    @cached_property
    def source_hosting(self) -> SourceHostingPort | None:
        """GitHub client, or None when no token is configured."""
        gh = self.config.github
        if not gh.token:
            return None
        return GitHubClient(token=gh.token, api_url=gh.api_url, timeout=gh.timeout)

    @cached_property
    def available_models(self) -> set[str]:
        """Models known to be usable; switch-model steps add to it."""
        return {f"{self.config.llm.provider}:{self.config.llm.model}"}

    @cached_property
    def state_manager(self) -> StateManager:
        return StateManager(Path(self.config.workflow.state_dir).expanduser())

    @cached_property
    def step_executor(self) -> StepExecutor:
        wf = self.config.workflow
        context = StepContext(
            agent=self.agent,
            runner=self.process_runner,
            hosting=self.source_hosting,
            available_models=self.available_models,
            cwd=wf.working_dir,
            shell_timeout=wf.shell_timeout,
            default_repo=self.config.github.repository,
        )
        return StepExecutor(self.state_manager, context, max_iterations=wf.max_iterations)

    @cached_property
    def workflow_manager(self) -> WorkflowManager:
        return WorkflowManager(
            self.state_manager,
            self.step_executor,
            directories=self.config.workflow.directories,
        )

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def set_container(container: Container) -> None:
    """Install a container (tests, embedding applications)."""
    global _container
    _container = container


def reset_container() -> None:
    """Reset global container (for testing)."""
    global _container
    if _container:
        _container.reset()
    _container = None
