"""OpenAI-compatible adapter - LM Studio, vLLM, LocalAI."""

import logging

import httpx

from src.domain.ports.config import OpenAICompatibleConfig
from src.domain.ports.llm import LLMMessage, LLMResponse

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter:
    """Implements LLMPort via /v1/chat/completions."""

    def __init__(self, config: OpenAICompatibleConfig, default_model: str = "default") -> None:
        self._config = config
        self._default_model = default_model
        self._base_url = config.base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json"}
        if config.api_key:
            self._headers["Authorization"] = f"Bearer {config.api_key}"
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._config.timeout, headers=self._headers)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client (call during app shutdown)."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def generate(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        model = model or self._default_model
        body: dict = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            "stream": False,
        }
        if self._config.max_tokens is not None:
            body["max_tokens"] = self._config.max_tokens
        resp = await self._get_client().post(f"{self._base_url}/chat/completions", json=body)
        if resp.status_code >= 400:
            logger.error("LLM API error %s: %s", resp.status_code, resp.text[:500])
        resp.raise_for_status()
        data = resp.json()
        choice = (data.get("choices") or [{}])[0]
        content = choice.get("message", {}).get("content", "") or ""
        return LLMResponse(content=content, model=model, done=True)

    async def is_available(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self._base_url}/models", headers=self._headers)
                return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.debug("OpenAI-compatible availability check failed: %s", e)
            return False

    async def list_models(self) -> list[str]:
        """List available models from /v1/models."""
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                resp = await client.get(f"{self._base_url}/models", headers=self._headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            logger.debug("OpenAI-compatible list_models failed: %s", e)
            return []
        return [m.get("id", "") for m in data.get("data", []) if m.get("id")]
