"""Chat agent - conversational AgentPort over the configured LLM providers."""

import logging
import re
from collections.abc import Callable

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.domain.ports.agent import AgentTimeoutError, AgentUnavailableError, ProviderConfig
from src.domain.ports.llm import LLMMessage, LLMPort, LLMResponse

logger = logging.getLogger(__name__)

MAX_HISTORY_MESSAGES = 40
SYSTEM_PROMPT = (
    "You are a coding assistant running as one step of an automated development workflow. "
    "Answer the request directly; your reply may be fed to later steps."
)

# Reasoning models (DeepSeek-R1, QwQ) wrap their chain of thought in <think> tags
_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


def strip_reasoning(text: str) -> str:
    """Drop <think>...</think> blocks, keep the answer."""
    return _THINK_RE.sub("", text).strip()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((TimeoutError, ConnectionError, httpx.TransportError)),
    reraise=True,
)
async def generate_with_retry(
    llm: LLMPort,
    messages: list[LLMMessage],
    model: str,
    temperature: float = 0.7,
) -> LLMResponse:
    """Generate with retry on timeout/connection errors."""
    return await llm.generate(messages=messages, model=model, temperature=temperature)


class ChatAgent:
    """AgentPort implementation.

    Keeps one conversation across provider switches, so a workflow can ask one
    model for a plan and another to review it with the same context.
    """

    def __init__(
        self,
        adapter_factory: Callable[[str], LLMPort],
        provider: ProviderConfig,
        system_prompt: str = SYSTEM_PROMPT,
        temperature: float = 0.7,
    ) -> None:
        self._factory = adapter_factory
        self._adapters: dict[str, LLMPort] = {}
        self._provider = provider
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._history: list[LLMMessage] = []

    @property
    def provider(self) -> ProviderConfig:
        return self._provider

    @property
    def history(self) -> list[LLMMessage]:
        return list(self._history)

    def set_provider(self, config: ProviderConfig) -> None:
        if config != self._provider:
            logger.debug("Agent provider %s -> %s", self._provider, config)
        self._provider = config

    def reset(self) -> None:
        self._history.clear()

    def _adapter(self) -> LLMPort:
        name = self._provider.name
        if name not in self._adapters:
            self._adapters[name] = self._factory(name)
        return self._adapters[name]

    async def chat(self, prompt: str) -> str:
        messages = [LLMMessage(role="system", content=self._system_prompt), *self._history]
        messages.append(LLMMessage(role="user", content=prompt))
        try:
            response = await generate_with_retry(
                self._adapter(),
                messages,
                self._provider.model,
                self._temperature,
            )
        except (httpx.TimeoutException, TimeoutError) as e:
            raise AgentTimeoutError(f"{self._provider} did not answer in time") from e
        except (httpx.TransportError, ConnectionError) as e:
            raise AgentUnavailableError(f"{self._provider} is unreachable: {e}") from e

        content = strip_reasoning(response.content)
        self._history.append(LLMMessage(role="user", content=prompt))
        self._history.append(LLMMessage(role="assistant", content=content))
        del self._history[:-MAX_HISTORY_MESSAGES]
        return content
