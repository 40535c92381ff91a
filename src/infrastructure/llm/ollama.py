"""Ollama adapter - implements LLMPort."""

import logging

import httpx
from ollama import AsyncClient

from src.domain.ports.config import OllamaConfig
from src.domain.ports.llm import LLMMessage, LLMResponse

logger = logging.getLogger(__name__)

# Fail fast when the host is down; the read timeout covers generation time
DEFAULT_CONNECT_TIMEOUT = 5.0


class OllamaAdapter:
    """Ollama implementation of LLMPort."""

    def __init__(self, config: OllamaConfig, default_model: str = "qwen2.5-coder:7b") -> None:
        self._config = config
        self._default_model = default_model
        read_timeout = float(config.timeout) if config.timeout else 120.0
        timeout = httpx.Timeout(
            connect=DEFAULT_CONNECT_TIMEOUT,
            read=read_timeout,
            write=read_timeout,
            pool=30.0,
        )
        self._client = AsyncClient(host=config.host, timeout=timeout)

    def _ollama_options(self, temperature: float) -> dict:
        opts: dict = {"temperature": temperature}
        if self._config.num_ctx is not None:
            opts["num_ctx"] = self._config.num_ctx
        if self._config.num_predict is not None:
            opts["num_predict"] = self._config.num_predict
        return opts

    async def generate(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        model = model or self._default_model
        response = await self._client.chat(
            model=model,
            messages=[{"role": m.role, "content": m.content} for m in messages],
            options=self._ollama_options(temperature),
        )
        content = response.message.content if response.message else ""
        return LLMResponse(content=content or "", model=response.model or model, done=True)

    async def is_available(self) -> bool:
        """Check if Ollama server is available."""
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self._config.host.rstrip('/')}/api/tags")
                return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("Ollama availability check failed: %s", e)
            return False

    async def list_models(self) -> list[str]:
        try:
            resp = await self._client.list()
        except (httpx.HTTPError, ConnectionError) as e:
            logger.debug("Ollama list_models failed (unreachable): %s", e)
            return []
        # ollama package: Model has 'model' attr (newer) or 'name' (legacy)
        names = [getattr(m, "model", None) or getattr(m, "name", "") for m in resp.models or []]
        return [n for n in names if n]
