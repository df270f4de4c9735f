"""Ollama adapter - local daemon, no credential, models pulled on the host."""

import json
from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from typing import Any

import httpx

from veoangel.core.logging import get_logger
from veoangel.llm.base import (
    ENHANCE_MAX_TOKENS,
    ENHANCE_TEMPERATURE,
    BackendAdapter,
    Completion,
    ConfigStatus,
    ModelDescriptor,
    ModelListing,
    ProviderType,
    TokenUsage,
    translate_http_error,
)
from veoangel.llm.catalog import ModelCatalogCache
from veoangel.llm.errors import BackendError, ErrorKind, FetchError, ModelNotAvailable
from veoangel.llm.registry import OLLAMA_RECOMMENDED, RecommendedModel

logger = get_logger("llm.ollama")

DEFAULT_HOST = "http://127.0.0.1:11434"
MODELS_TTL = 5 * 60


def estimate_tokens(text: str) -> int:
    """Rough count used when the daemon omits eval counts."""
    return len(text) // 4


def pick_default_model(
    model_ids: Sequence[str], current: str, families: Sequence[str]
) -> str:
    """Keep current if installed, else first id matching a preferred family, else first id."""
    if not model_ids or current in model_ids:
        return current
    for family in families:
        token = family.lower()
        match = next((m for m in model_ids if token in m.lower()), None)
        if match:
            return match
    return model_ids[0]


def to_descriptor(entry: dict[str, Any]) -> ModelDescriptor:
    details = entry.get("details") or {}
    summary = " ".join(
        part for part in (details.get("family"), details.get("parameter_size")) if part
    )
    return ModelDescriptor(
        id=entry["name"],
        display_name=entry["name"],
        description=summary,
    )


class OllamaAdapter(BackendAdapter):
    """Local Ollama daemon via its native REST API."""

    provider_type = ProviderType.OLLAMA
    requires_credential = False

    def __init__(
        self,
        host: str | None = None,
        default_model: str = "llama3.2:1b",
        preferred_families: Sequence[str] = ("llama",),
        timeout: float = 300.0,  # Local models can be slow
        models_ttl: float = MODELS_TTL,
    ):
        super().__init__(host or DEFAULT_HOST, default_model)
        self.preferred_families = list(preferred_families)
        self.timeout = timeout
        self.catalog = ModelCatalogCache(self._fetch_catalog, ttl=models_ttl, name="Ollama")

    @property
    def host(self) -> str:
        return self.credential

    def _create_client(self, credential: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=credential.rstrip("/"), timeout=self.timeout)

    async def _probe(self, client: httpx.AsyncClient, model: str) -> None:
        try:
            response = await client.get("/api/tags")
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug(f"Ollama connection test failed: {e}")
            raise translate_http_error(e, self.name) from e

    def _failure_message(self, reason: str, credential: str) -> str:
        if "Connection failed" in reason:
            return f"Ollama is not running. Please start Ollama and ensure it's accessible at {credential}"
        return f"Ollama connection failed: {reason}"

    def _success_message(self) -> str:
        return f"Ollama connected successfully at {self.host}"

    def _models_count(self) -> int | None:
        return len(self.catalog.entries)

    async def reconfigure(
        self, credential: str | None, model_id: str | None = None
    ) -> ConfigStatus:
        """Credential is the daemon URL; None keeps the current host."""
        return await super().reconfigure(credential or self.host, model_id)

    async def _after_configure(self) -> None:
        self.catalog.clear()
        try:
            await self.catalog.read(force_refresh=True)
        except FetchError as e:
            logger.warning(f"Ollama connected but model list unavailable: {e.message}")

    # --- Catalog ---------------------------------------------------------

    async def _fetch_catalog(self) -> list[ModelDescriptor]:
        logger.info("Fetching available models from Ollama")
        try:
            response = await self.client.get("/api/tags")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch models: {e}", self.name) from e

        entries = data.get("models") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise FetchError("Invalid response format from Ollama", self.name)

        models = [to_descriptor(e) for e in entries if isinstance(e, dict) and e.get("name")]
        chosen = pick_default_model([m.id for m in models], self.default_model, self.preferred_families)
        if chosen != self.default_model:
            self.default_model = chosen
            logger.info(f"Default model set to: {chosen}")
        return models

    async def list_models(self, force_refresh: bool = False) -> ModelListing:
        """Models installed on the daemon, cached for five minutes."""
        try:
            read = await self.catalog.read(force_refresh)
        except FetchError as e:
            logger.error(f"Failed to fetch available models from Ollama: {e.message}")
            return ModelListing(models=[], success=False, message=e.message)
        return ModelListing(models=list(read.entries), cached=read.cached)

    async def _resolve_model(self, model_id: str | None) -> str:
        try:
            read = await self.catalog.read()
            installed = read.entries
        except FetchError as e:
            if not self.catalog.entries:
                raise BackendError(e.message, self.name, kind=ErrorKind.TRANSIENT) from e
            logger.warning(f"Using stale Ollama model list: {e.message}")
            installed = self.catalog.entries

        model = model_id or self.default_model
        if model not in {m.id for m in installed}:
            raise ModelNotAvailable(model, self.name)
        return model

    async def is_model_available(self, model_id: str) -> bool:
        listing = await self.list_models()
        return listing.success and model_id in listing.ids

    def known_model_ids(self) -> list[str]:
        return [m.id for m in self.catalog.entries]

    def recommended_models(self) -> list[RecommendedModel]:
        return list(OLLAMA_RECOMMENDED)

    # --- Generation ------------------------------------------------------

    def _usage(self, data: dict[str, Any], prompt: str, text: str) -> TokenUsage:
        return TokenUsage(
            data.get("prompt_eval_count") or estimate_tokens(prompt),
            data.get("eval_count") or estimate_tokens(text),
        )

    async def _complete(
        self,
        system: str,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        payload = {
            "model": model,
            "system": system,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        logger.debug(f"Ollama request: model={model}, url={self.host}")

        try:
            response = await self.client.post("/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.ConnectError as e:
            logger.warning(f"Ollama not reachable at {self.host}: {e}")
            raise translate_http_error(e, self.name) from e
        except httpx.HTTPError as e:
            logger.error(f"Ollama error: {e}")
            raise translate_http_error(e, self.name) from e

        if "error" in data:
            raise BackendError(f"Ollama error: {data['error']}", self.name)
        text = data.get("response") or ""
        return Completion(text=text, model=data.get("model") or model, usage=self._usage(data, prompt, text))

    async def _stream(
        self,
        system: str,
        prompt: str,
        model: str,
        completion: Completion,
    ) -> AsyncIterator[str]:
        payload = {
            "model": model,
            "system": system,
            "prompt": prompt,
            "stream": True,
            "options": {"temperature": ENHANCE_TEMPERATURE, "num_predict": ENHANCE_MAX_TOKENS},
        }
        parts: list[str] = []
        final: dict[str, Any] = {}

        try:
            async with self.client.stream("POST", "/api/generate", json=payload) as response:
                if response.is_error:
                    await response.aread()
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line:
                        continue
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if "error" in chunk:
                        raise BackendError(f"Ollama error: {chunk['error']}", self.name)
                    if chunk.get("response"):
                        parts.append(chunk["response"])
                        yield chunk["response"]
                    if chunk.get("done"):
                        final = chunk
        except httpx.HTTPError as e:
            logger.error(f"Ollama streaming error: {e}")
            raise translate_http_error(e, self.name) from e

        completion.usage = self._usage(final, prompt, "".join(parts))

    # --- Model management ------------------------------------------------

    async def pull_model(self, model_name: str) -> dict[str, Any]:
        """Pull a model onto the daemon, logging progress."""
        logger.info(f"Pulling model: {model_name}")
        try:
            async with self.client.stream(
                "POST", "/api/pull", json={"model": model_name, "stream": True}
            ) as response:
                if response.is_error:
                    await response.aread()
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line:
                        continue
                    try:
                        chunk = json.loads(line)
                    except json.JSONDecodeError:
                        continue
                    if "error" in chunk:
                        raise BackendError(f"Failed to pull model: {chunk['error']}", self.name)
                    if chunk.get("status"):
                        logger.info(f"Pull progress: {chunk['status']}")
        except httpx.HTTPError as e:
            logger.error(f"Failed to pull model {model_name}: {e}")
            raise translate_http_error(e, self.name) from e

        await self._refresh_after_change()
        logger.info(f"Successfully pulled model: {model_name}")
        return {"success": True, "message": f"Model '{model_name}' pulled successfully"}

    async def delete_model(self, model_name: str) -> dict[str, Any]:
        logger.info(f"Deleting model: {model_name}")
        try:
            response = await self.client.request("DELETE", "/api/delete", json={"model": model_name})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Failed to delete model {model_name}: {e}")
            raise translate_http_error(e, self.name) from e

        await self._refresh_after_change()
        logger.info(f"Successfully deleted model: {model_name}")
        return {"success": True, "message": f"Model '{model_name}' deleted successfully"}

    async def _refresh_after_change(self) -> None:
        self.catalog.clear()
        try:
            await self.catalog.read(force_refresh=True)
        except FetchError as e:
            logger.warning(f"Model list refresh failed: {e.message}")

    def get_status(self) -> dict:
        status = super().get_status()
        fetched_at = self.catalog.fetched_at
        status.update(
            {
                "host": self.host,
                "availableModels": self.known_model_ids(),
                "modelsCount": len(self.catalog.entries),
                "lastModelsFetch": (
                    datetime.fromtimestamp(fetched_at).isoformat() if fetched_at else None
                ),
            }
        )
        return status
