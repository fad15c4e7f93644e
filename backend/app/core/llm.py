"""Central generation client — one OpenAI chat completion per call.

All calls are async. The client is built from an immutable GenerationConfig;
the process-wide instance is created once from Settings (asyncio.Lock guarded)
and never reconfigured. Tests construct GenerationClient directly.

A call makes a single attempt unless GENERATION_MAX_ATTEMPTS > 1, in which
case tenacity retries transient transport errors.

Completions go through the Langfuse OpenAI wrapper, so each one is traced
as a generation labelled with the task name.
"""

import asyncio

import httpx
import openai as openai_errors
from langfuse.openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from app.config import Settings, load_settings
from app.core.constants import DEFAULT_LLM_MODEL
from app.core.errors import GenerationFailed, ServiceUnavailable
from app.core.logger import logger

# Transient errors worth retrying
_RETRYABLE = (httpx.TimeoutException, httpx.ConnectError, openai_errors.APITimeoutError, openai_errors.APIConnectionError)


class GenerationConfig(BaseModel):
    """Credential + model settings, fixed for the lifetime of a client."""

    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    model: str = DEFAULT_LLM_MODEL
    base_url: str | None = None
    timeout_seconds: float | None = None
    max_attempts: int = 1

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationConfig":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.llm_model or DEFAULT_LLM_MODEL,
            base_url=settings.openai_base_url or None,
            timeout_seconds=settings.generation_timeout_seconds,
            max_attempts=max(1, settings.generation_max_attempts),
        )


class GenerationClient:
    """Stateless wrapper around AsyncOpenAI chat completions."""

    def __init__(self, config: GenerationConfig):
        self.config = config
        self.model = config.model
        self.openai_client = None
        if config.api_key:
            self.openai_client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout_seconds,
                # Retries are ours to decide (see max_attempts)
                max_retries=0,
            )

    @property
    def available(self) -> bool:
        return self.openai_client is not None

    def ensure_available(self) -> None:
        """Fail fast, without a network call, when no API key is configured."""
        if not self.available:
            raise ServiceUnavailable("OpenAI API key not configured")

    async def generate(self, prompt: str, temperature: float, name: str | None = None) -> str:
        """Send ``prompt`` as one user turn. Returns the first choice's text, or "".

        Raises ServiceUnavailable without a key, GenerationFailed on any
        transport/service error.
        """
        self.ensure_available()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.config.max_attempts),
                wait=wait_exponential(min=1, max=5),
                retry=retry_if_exception_type(_RETRYABLE),
                reraise=True,
            ):
                with attempt:
                    return await self._call_openai(prompt, temperature, name)
        except (openai_errors.APIError, httpx.HTTPError) as e:
            logger.warning(f"Generation failed ({name or 'unnamed'}): {e}")
            raise GenerationFailed(e) from e
        return ""

    async def _call_openai(self, prompt: str, temperature: float, name: str | None = None) -> str:
        kwargs = dict(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
        )
        if name:
            # Langfuse generation name
            kwargs["name"] = name

        response = await self.openai_client.chat.completions.create(**kwargs)

        if not response.choices:
            logger.warning("LLM returned no choices")
            return ""

        return response.choices[0].message.content or ""


_client: GenerationClient | None = None
_lock = asyncio.Lock()


async def get_generation_client() -> GenerationClient:
    """Get or create the process-wide generation client (config read once)."""
    global _client
    if _client is None:
        async with _lock:
            if _client is None:
                _client = GenerationClient(GenerationConfig.from_settings(load_settings()))
                logger.info(
                    f"Generation client ready: model={_client.model}, "
                    f"configured={_client.available}"
                )
    return _client
