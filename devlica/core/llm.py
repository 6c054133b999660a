import logging
import os
from dataclasses import dataclass

import litellm

from devlica.core.config import Settings

logger = logging.getLogger(__name__)

# Suppress litellm's verbose logging
litellm.suppress_debug_info = True

# Provider defaults applied when the caller leaves an option unset.
_DEFAULT_TEMPERATURE: dict[str, float] = {"openai": 0.3}
_DEFAULT_MAX_TOKENS: dict[str, int] = {"anthropic": 4096}


class LLMError(Exception):
    """Raised when a completion backend call fails or returns nothing."""


@dataclass
class CompleteOptions:
    """Per-request generation parameters. None means provider default."""

    temperature: float | None = None
    max_tokens: int | None = None


class LLMProvider:
    """Single-shot completion against one configured backend.

    openai and anthropic are hosted; ollama talks to a local server at api_base.
    All three go through litellm so callers only see complete().
    """

    def __init__(
        self,
        name: str,
        model: str,
        api_key: str | None = None,
        api_base: str | None = None,
    ) -> None:
        self.name = name
        self.model = model
        self.api_key = api_key
        self.api_base = api_base

    @property
    def litellm_model(self) -> str:
        return f"{self.name}/{self.model}"

    def _build_kwargs(
        self, system: str, prompt: str, options: CompleteOptions | None
    ) -> dict:
        messages: list[dict] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict = {"model": self.litellm_model, "messages": messages}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        options = options or CompleteOptions()
        temperature = options.temperature
        if temperature is None:
            temperature = _DEFAULT_TEMPERATURE.get(self.name)
        if temperature is not None:
            kwargs["temperature"] = temperature

        max_tokens = options.max_tokens
        if not max_tokens:
            max_tokens = _DEFAULT_MAX_TOKENS.get(self.name)
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        return kwargs

    async def complete(
        self, system: str, prompt: str, options: CompleteOptions | None = None
    ) -> str:
        """Return the assistant text for one system + user prompt pair."""
        kwargs = self._build_kwargs(system, prompt, options)
        try:
            response = await litellm.acompletion(**kwargs)
        except Exception as e:
            raise LLMError(f"{self.name} completion: {e}") from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise LLMError(f"{self.name} returned no choices")
        content = choices[0].message.content
        if content is None:
            raise LLMError(f"{self.name} returned no text content")
        return content


def create_provider(settings: Settings) -> LLMProvider:
    """Build the provider selected by settings.llm_provider."""
    name = settings.llm_provider
    if name in ("openai", "anthropic"):
        return LLMProvider(name, settings.effective_model, api_key=settings.api_key)
    if name == "ollama":
        return LLMProvider(name, settings.effective_model, api_base=settings.ollama_host)
    raise LLMError(f"unknown LLM provider: {name}")


def setup_langfuse(settings: Settings) -> None:
    """Configure litellm to send traces to Langfuse when enabled."""
    if not settings.langfuse_enabled:
        logger.debug("Langfuse observability is disabled")
        return

    os.environ["LANGFUSE_PUBLIC_KEY"] = settings.langfuse_public_key
    os.environ["LANGFUSE_SECRET_KEY"] = settings.langfuse_secret_key
    os.environ["LANGFUSE_HOST"] = settings.langfuse_host

    litellm.success_callback = ["langfuse"]
    litellm.failure_callback = ["langfuse"]
    logger.info("Langfuse observability enabled (host=%s)", settings.langfuse_host)
