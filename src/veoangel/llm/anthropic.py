"""
Anthropic API adapter.

Cloud key-based backend with a fixed, hardcoded model catalog.
"""

from collections.abc import AsyncIterator

import anthropic
from anthropic import (
    APIConnectionError,
    APIError,
    APIStatusError,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
)

from veoangel.core.logging import get_logger
from veoangel.llm.base import (
    ENHANCE_MAX_TOKENS,
    ENHANCE_TEMPERATURE,
    BackendAdapter,
    Completion,
    ModelDescriptor,
    ModelListing,
    ProviderType,
    TokenUsage,
)
from veoangel.llm.errors import BackendError, ErrorKind, classify_status
from veoangel.llm.registry import ANTHROPIC_MODELS, get_model_info

logger = get_logger("llm.anthropic")

PROBE_MAX_TOKENS = 10


class AnthropicAdapter(BackendAdapter):
    """Anthropic Messages API adapter."""

    provider_type = ProviderType.ANTHROPIC

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 120.0,
    ):
        super().__init__(api_key, default_model)
        self.timeout = timeout

    def _create_client(self, credential: str) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(api_key=credential, timeout=self.timeout)

    def _translate(self, exc: Exception) -> BackendError:
        if isinstance(exc, (AuthenticationError, PermissionDeniedError)):
            kind = ErrorKind.AUTH
        elif isinstance(exc, (RateLimitError, APIConnectionError)):
            kind = ErrorKind.TRANSIENT
        elif isinstance(exc, APIStatusError):
            kind = classify_status(exc.status_code)
        else:
            kind = ErrorKind.UNKNOWN
        status = getattr(exc, "status_code", None)
        return BackendError(f"Anthropic API error: {exc}", self.name, kind=kind, status_code=status)

    async def _probe(self, client: anthropic.AsyncAnthropic, model: str) -> None:
        try:
            response = await client.messages.create(
                model=model,
                max_tokens=PROBE_MAX_TOKENS,
                messages=[{"role": "user", "content": "hi"}],
            )
        except APIError as e:
            logger.warning(f"Anthropic connection test failed: {e}")
            raise self._translate(e) from e
        if not response.content:
            raise BackendError("Anthropic returned an empty response", self.name)

    async def _complete(
        self,
        system: str,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        logger.debug(f"Anthropic request: model={model}, max_tokens={max_tokens}")
        logger.debug(f"Anthropic system prompt ({len(system)} chars)")
        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except RateLimitError as e:
            logger.warning(f"Rate limited: {e}")
            raise self._translate(e) from e
        except APIError as e:
            logger.error(f"API error: {e}")
            raise self._translate(e) from e

        content = response.content[0].text if response.content else ""
        usage = TokenUsage(response.usage.input_tokens, response.usage.output_tokens)
        logger.debug(f"Anthropic usage: {usage.input_tokens} in, {usage.output_tokens} out")
        return Completion(text=content, model=model, usage=usage)

    async def _stream(
        self,
        system: str,
        prompt: str,
        model: str,
        completion: Completion,
    ) -> AsyncIterator[str]:
        logger.debug(f"Anthropic stream request: model={model}")
        try:
            async with self.client.messages.stream(
                model=model,
                max_tokens=ENHANCE_MAX_TOKENS,
                system=system,
                temperature=ENHANCE_TEMPERATURE,
                messages=[{"role": "user", "content": prompt}],
            ) as stream:
                async for text in stream.text_stream:
                    yield text
                final = await stream.get_final_message()
        except APIError as e:
            logger.error(f"API error during stream: {e}")
            raise self._translate(e) from e

        completion.usage = TokenUsage(final.usage.input_tokens, final.usage.output_tokens)

    async def list_models(self, force_refresh: bool = False) -> ModelListing:
        """Fixed catalog; force_refresh has no effect."""
        return ModelListing(models=list(ANTHROPIC_MODELS), cached=True)

    async def get_model_info(self, model_id: str) -> ModelDescriptor | None:
        return get_model_info(model_id)

    async def is_model_available(self, model_id: str) -> bool:
        return model_id in self.known_model_ids()

    def known_model_ids(self) -> list[str]:
        return [m.id for m in ANTHROPIC_MODELS]

    def _accepts_default(self, model_id: str) -> bool:
        return model_id in self.known_model_ids()

    def get_status(self) -> dict:
        status = super().get_status()
        status["availableModels"] = self.known_model_ids()
        return status
