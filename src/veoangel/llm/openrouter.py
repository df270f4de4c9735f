"""OpenRouter API adapter - hundreds of models behind one key, live catalog."""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

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
    translate_http_error,
)
from veoangel.llm.catalog import ModelCatalogCache
from veoangel.llm.errors import BackendError, FetchError
from veoangel.llm.registry import (
    OPENROUTER_FALLBACK_MODELS,
    placeholder_models,
    sort_by_vendor_preference,
)

logger = get_logger("llm.openrouter")

OPENROUTER_BASE = "https://openrouter.ai/api/v1"
MODELS_TTL = 60 * 60
PROBE_MAX_TOKENS = 10


def is_chat_model(entry: dict[str, Any]) -> bool:
    """Chat-capable, not deprecated, positive context length."""
    model_id = entry.get("id")
    if not model_id or "instruct:" in model_id:
        return False
    if "deprecated" in (entry.get("description") or "").lower():
        return False
    if (entry.get("context_length") or 0) <= 0:
        return False

    architecture = entry.get("architecture") or {}
    outputs = architecture.get("output_modalities")
    if outputs is not None:
        return "text" in outputs
    modality = architecture.get("modality")
    if modality and "->" in modality:
        return "text" in modality.split("->", 1)[1]
    return True


def to_descriptor(entry: dict[str, Any]) -> ModelDescriptor:
    model_id = entry["id"]
    return ModelDescriptor(
        id=model_id,
        display_name=entry.get("name") or model_id.split("/")[-1],
        context_length=int(entry.get("context_length") or 0),
        description=entry.get("description") or "",
    )


class OpenRouterAdapter(BackendAdapter):
    """OpenRouter multi-model adapter."""

    provider_type = ProviderType.OPENROUTER

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "anthropic/claude-3.5-sonnet",
        timeout: float = 120.0,
        models_ttl: float = MODELS_TTL,
        base_url: str = OPENROUTER_BASE,
    ):
        super().__init__(api_key, default_model)
        self.timeout = timeout
        self.base_url = base_url
        self.catalog = ModelCatalogCache(self._fetch_catalog, ttl=models_ttl, name="OpenRouter")
        self.total_fetched = 0

    def _create_client(self, credential: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {credential}",
                "HTTP-Referer": "https://github.com/veoangel",
                "X-Title": "VEO3 Angel",
            },
            timeout=self.timeout,
        )

    async def _probe(self, client: httpx.AsyncClient, model: str) -> None:
        payload = {
            "model": model,
            "max_tokens": PROBE_MAX_TOKENS,
            "messages": [{"role": "user", "content": "hi"}],
        }
        try:
            response = await client.post("/chat/completions", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"OpenRouter connection test failed: {e}")
            raise translate_http_error(e, self.name) from e

    def _payload(self, system: str, prompt: str, model: str, **extra: Any) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            **extra,
        }

    async def _complete(
        self,
        system: str,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        payload = self._payload(system, prompt, model, max_tokens=max_tokens, temperature=temperature)
        logger.debug(f"OpenRouter request: model={model}, max_tokens={max_tokens}")

        try:
            response = await self.client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"OpenRouter HTTP error: {e.response.status_code} - {e.response.text}")
            raise translate_http_error(e, self.name) from e
        except httpx.HTTPError as e:
            logger.error(f"OpenRouter error: {e}")
            raise translate_http_error(e, self.name) from e

        if "error" in data and not data.get("choices"):
            raise BackendError(f"OpenRouter error: {data['error']}", self.name)
        try:
            content = data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError) as e:
            raise BackendError(f"Invalid response format from OpenRouter: {e}", self.name) from e

        usage = data.get("usage") or {}
        token_usage = TokenUsage(usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0))
        logger.debug(f"OpenRouter usage: {token_usage.input_tokens}→{token_usage.output_tokens} tok")
        return Completion(text=content, model=data.get("model") or model, usage=token_usage)

    async def _stream(
        self,
        system: str,
        prompt: str,
        model: str,
        completion: Completion,
    ) -> AsyncIterator[str]:
        payload = self._payload(
            system,
            prompt,
            model,
            max_tokens=ENHANCE_MAX_TOKENS,
            temperature=ENHANCE_TEMPERATURE,
            stream=True,
            stream_options={"include_usage": True},
        )
        logger.debug(f"OpenRouter stream request: model={model}")

        try:
            async with self.client.stream("POST", "/chat/completions", json=payload) as response:
                if response.is_error:
                    await response.aread()
                response.raise_for_status()
                async for line in response.aiter_lines():
                    # SSE comments (": OPENROUTER PROCESSING") and blank keep-alives
                    if not line.startswith("data: "):
                        continue
                    data_str = line[6:]
                    if data_str == "[DONE]":
                        break
                    try:
                        chunk = json.loads(data_str)
                    except json.JSONDecodeError:
                        continue

                    if "error" in chunk:
                        raise BackendError(f"OpenRouter stream error: {chunk['error']}", self.name)
                    choices = chunk.get("choices") or []
                    if choices:
                        content = (choices[0].get("delta") or {}).get("content")
                        if content:
                            yield content
                    if chunk.get("usage"):
                        usage = chunk["usage"]
                        completion.usage = TokenUsage(
                            usage.get("prompt_tokens", 0), usage.get("completion_tokens", 0)
                        )
                    if chunk.get("model"):
                        completion.model = chunk["model"]
        except httpx.HTTPError as e:
            logger.error(f"OpenRouter streaming error: {e}")
            raise translate_http_error(e, self.name) from e

    # --- Catalog ---------------------------------------------------------

    async def _fetch_catalog(self) -> list[ModelDescriptor]:
        logger.info("Fetching available models from OpenRouter API")
        try:
            response = await self.client.get("/models")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch models: {e}", self.name) from e

        entries = data.get("data") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise FetchError("Invalid response format from OpenRouter API", self.name)

        self.total_fetched = len(entries)
        chat_models = [to_descriptor(e) for e in entries if isinstance(e, dict) and is_chat_model(e)]
        return sort_by_vendor_preference(chat_models)

    def _fallback_listing(self, message: str) -> ModelListing:
        return ModelListing(
            models=placeholder_models(OPENROUTER_FALLBACK_MODELS),
            success=False,
            message=message,
        )

    async def list_models(self, force_refresh: bool = False) -> ModelListing:
        """Live catalog, cached for an hour; placeholder list on failure."""
        if not self.initialized:
            logger.warning("Cannot fetch models - service not initialized")
            return self._fallback_listing("Service not initialized")

        try:
            read = await self.catalog.read(force_refresh)
        except FetchError as e:
            logger.error(f"Failed to fetch available models: {e.message}")
            return self._fallback_listing(e.message)

        return ModelListing(models=list(read.entries), cached=read.cached)

    async def get_model_info(self, model_id: str) -> ModelDescriptor | None:
        listing = await self.list_models()
        if not listing.success:
            return None
        return next((m for m in listing.models if m.id == model_id), None)

    async def is_model_available(self, model_id: str) -> bool:
        listing = await self.list_models()
        return model_id in listing.ids

    def known_model_ids(self) -> list[str]:
        cached = [m.id for m in self.catalog.entries]
        return cached + [m for m in OPENROUTER_FALLBACK_MODELS if m not in cached]

    def _accepts_default(self, model_id: str) -> bool:
        return model_id in self.known_model_ids()

    def get_status(self) -> dict:
        status = super().get_status()
        status["availableModels"] = self.known_model_ids()
        status["cachedModels"] = len(self.catalog.entries)
        return status
