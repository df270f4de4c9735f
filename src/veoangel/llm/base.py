"""
Backend adapter interface.

Every LLM backend (cloud key-based or local daemon) is wrapped in a
BackendAdapter subclass exposing the same enhance/analyze/list surface.
Subclasses supply the transport: client construction, the liveness probe,
one-shot completion and fragment streaming.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import httpx

from veoangel.core.logging import get_logger
from veoangel.core.typing import ChunkCallback, StatusDict
from veoangel.llm.categories import StructuredCategories, parse_categories
from veoangel.llm.errors import (
    BackendError,
    ConfigError,
    ErrorKind,
    ProviderConnectionError,
    ProviderError,
    classify_status,
)
from veoangel.llm.templates import build_analysis_request, build_enhance_request

logger = get_logger("llm.base")

ENHANCE_MAX_TOKENS = 4000
ENHANCE_TEMPERATURE = 0.7
ANALYSIS_MAX_TOKENS = 2000
ANALYSIS_TEMPERATURE = 0.3


class ProviderType(Enum):
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"
    OLLAMA = "ollama"


class AdapterState(Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURING = "configuring"
    INITIALIZED = "initialized"
    CONFIGURATION_FAILED = "configuration_failed"


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"input": self.input_tokens, "output": self.output_tokens}


@dataclass(frozen=True)
class ModelDescriptor:
    """One entry of a backend model catalog."""

    id: str
    display_name: str
    context_length: int = 0
    is_fallback_placeholder: bool = False
    description: str = ""

    @property
    def vendor(self) -> str:
        """Namespace before the first '/' (empty for un-namespaced ids)."""
        return self.id.split("/", 1)[0] if "/" in self.id else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.display_name,
            "description": self.description,
            "contextLength": self.context_length,
            "fallback": self.is_fallback_placeholder,
        }


@dataclass
class ModelListing:
    """Result of a catalog read."""

    models: list[ModelDescriptor]
    cached: bool = False
    success: bool = True
    message: str | None = None

    @property
    def ids(self) -> list[str]:
        return [m.id for m in self.models]

    @property
    def grouped(self) -> dict[str, dict[str, Any]]:
        """Models grouped by vendor namespace with display names."""
        from veoangel.llm.registry import group_by_vendor

        return group_by_vendor(self.models)


@dataclass
class ConfigStatus:
    """Outcome of initialize/reconfigure."""

    configured: bool
    message: str
    models_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.configured, "message": self.message}
        if self.models_count is not None:
            result["modelsCount"] = self.models_count
        return result


@dataclass
class Completion:
    """Raw text produced by one backend call."""

    text: str = ""
    model: str = ""
    usage: TokenUsage | None = None


@dataclass
class EnhancementResult:
    """Free-text enhancement plus provenance."""

    text: str
    model_used: str
    adapter_used: ProviderType
    usage: TokenUsage | None = None
    fallback_triggered: bool = False
    fallback_reason: str | None = None
    original_provider: ProviderType | None = None


@dataclass
class CategoryAnalysis:
    """Structured category breakdown plus provenance."""

    categories: StructuredCategories
    model_used: str
    adapter_used: ProviderType
    usage: TokenUsage | None = None
    fallback_triggered: bool = False
    fallback_reason: str | None = None
    original_provider: ProviderType | None = None


def translate_http_error(exc: Exception, provider: str) -> BackendError:
    """Map an httpx failure onto the backend error taxonomy."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        try:
            body = exc.response.text[:200]
        except httpx.ResponseNotRead:
            body = ""
        return BackendError(
            f"HTTP {status}: {body or exc.response.reason_phrase}",
            provider,
            kind=classify_status(status),
            status_code=status,
        )
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return BackendError(f"Connection failed: {exc}", provider, kind=ErrorKind.TRANSIENT)
    return BackendError(str(exc), provider, kind=ErrorKind.UNKNOWN)


class BackendAdapter(ABC):
    """Abstract LLM backend adapter."""

    provider_type: ProviderType
    requires_credential: bool = True

    def __init__(self, credential: str | None, default_model: str):
        self.credential = credential or ""
        self.default_model = default_model
        self.state = AdapterState.UNCONFIGURED
        self.last_connectivity_check: datetime | None = None
        self.last_error: str | None = None
        self._client: Any = None
        self._in_flight = 0
        self._retired: list[Any] = []

    @property
    def name(self) -> str:
        return self.provider_type.value

    @property
    def initialized(self) -> bool:
        return self.state == AdapterState.INITIALIZED

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._create_client(self.credential)
        return self._client

    # --- Transport hooks -------------------------------------------------

    @abstractmethod
    def _create_client(self, credential: str) -> Any:
        """Build a transport client bound to the given credential/endpoint."""
        ...

    @abstractmethod
    async def _probe(self, client: Any, model: str) -> None:
        """One lightweight round trip against the backend."""
        ...

    @abstractmethod
    async def _complete(
        self,
        system: str,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        ...

    @abstractmethod
    def _stream(
        self,
        system: str,
        prompt: str,
        model: str,
        completion: Completion,
    ) -> AsyncIterator[str]:
        """Yield text fragments in arrival order; fill completion usage/model."""
        ...

    @abstractmethod
    async def list_models(self, force_refresh: bool = False) -> ModelListing:
        ...

    async def _resolve_model(self, model_id: str | None) -> str:
        return model_id or self.default_model

    async def _after_configure(self) -> None:
        """Runs once a verified client has been installed."""

    async def _close_client(self, client: Any) -> None:
        close = getattr(client, "aclose", None) or getattr(client, "close", None)
        if close is not None:
            await close()

    @asynccontextmanager
    async def _tracked_call(self):
        """Count a backend call so swapped-out clients close only once idle."""
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1
            if not self._in_flight:
                await self._close_retired()

    async def _close_retired(self) -> None:
        retired, self._retired = self._retired, []
        for client in retired:
            await self._close_client(client)

    # --- Configuration ---------------------------------------------------

    async def initialize(self, credential: str | None = None) -> ConfigStatus:
        """Verify the configured credential. Never raises."""
        candidate = credential if credential is not None else self.credential
        if self.requires_credential and not candidate:
            logger.warning(f"{self.name}: no credential set, configuration required")
            self.state = AdapterState.UNCONFIGURED
            return ConfigStatus(False, "API key configuration required")
        return await self._apply(candidate, None, verb="initialized")

    async def reconfigure(
        self, credential: str | None, model_id: str | None = None
    ) -> ConfigStatus:
        """Swap credential and re-verify. Fails closed."""
        if self.requires_credential and (not credential or not isinstance(credential, str)):
            self.state = AdapterState.CONFIGURATION_FAILED
            self.last_error = "Valid API key is required"
            return ConfigStatus(False, "Configuration failed: Valid API key is required")
        return await self._apply(credential or self.credential, model_id, verb="configured")

    async def _apply(self, credential: str, model_id: str | None, verb: str) -> ConfigStatus:
        self.state = AdapterState.CONFIGURING
        use_requested = bool(model_id) and self._accepts_default(model_id)
        model = model_id if use_requested else self.default_model
        client = None
        try:
            client = self._create_client(credential)
            await self._probe(client, model)
        except Exception as e:
            reason = e.message if isinstance(e, ProviderError) else str(e)
            logger.error(f"Failed to configure {self.name}: {reason}")
            if client is not None:
                await self._close_client(client)
            self.state = AdapterState.CONFIGURATION_FAILED
            self.last_error = reason
            return ConfigStatus(False, self._failure_message(reason, credential))

        previous = self._client
        self._client = client
        self.credential = credential
        if use_requested:
            self.default_model = model
        self.last_connectivity_check = datetime.now()
        self.last_error = None
        await self._after_configure()
        self.state = AdapterState.INITIALIZED
        if previous is not None and previous is not client:
            if self._in_flight:
                self._retired.append(previous)
            else:
                await self._close_client(previous)

        logger.info(f"{self.name} service {verb} successfully")
        return ConfigStatus(True, self._success_message(), self._models_count())

    def _failure_message(self, reason: str, credential: str) -> str:
        return f"Configuration failed: {reason}"

    def _success_message(self) -> str:
        return "Service configured successfully"

    def _models_count(self) -> int | None:
        return None

    def _accepts_default(self, model_id: str) -> bool:
        return True

    async def test_connection(self) -> None:
        """Idempotent liveness probe."""
        try:
            await self._probe(self.client, self.default_model)
        except ProviderError as e:
            raise ProviderConnectionError(f"API connection failed: {e.message}", self.name) from e
        except Exception as e:
            raise ProviderConnectionError(f"API connection failed: {e}", self.name) from e
        self.last_connectivity_check = datetime.now()
        logger.info(f"{self.name} connection test successful")

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise ConfigError(f"{self.name} service not initialized", self.name)

    # --- Enhancement -----------------------------------------------------

    async def enhance(
        self,
        user_text: str,
        system_instructions: str,
        model_id: str | None = None,
    ) -> EnhancementResult:
        """Single non-streaming enhancement call."""
        self._require_initialized()
        model = await self._resolve_model(model_id)
        logger.info(f"{self.name}: enhancing prompt ({len(user_text)} chars) with {model}")

        async with self._tracked_call():
            completion = await self._complete(
                system_instructions,
                build_enhance_request(user_text),
                model,
                ENHANCE_MAX_TOKENS,
                ENHANCE_TEMPERATURE,
            )
        logger.info(f"{self.name}: enhancement completed ({len(completion.text)} chars)")
        return EnhancementResult(
            text=completion.text,
            model_used=completion.model or model,
            adapter_used=self.provider_type,
            usage=completion.usage,
        )

    async def enhance_streaming(
        self,
        user_text: str,
        system_instructions: str,
        model_id: str | None = None,
        on_chunk: ChunkCallback | None = None,
    ) -> EnhancementResult:
        """Enhancement delivering fragments to on_chunk as they arrive."""
        self._require_initialized()
        model = await self._resolve_model(model_id)
        logger.info(f"{self.name}: streaming enhancement with {model}")

        completion = Completion(model=model)
        parts: list[str] = []
        async with self._tracked_call():
            async for fragment in self._stream(
                system_instructions, build_enhance_request(user_text), model, completion
            ):
                parts.append(fragment)
                if on_chunk:
                    on_chunk(fragment)
        completion.text = "".join(parts)

        logger.info(f"{self.name}: streaming completed ({len(completion.text)} chars)")
        return EnhancementResult(
            text=completion.text,
            model_used=completion.model or model,
            adapter_used=self.provider_type,
            usage=completion.usage,
        )

    async def analyze_categories(
        self,
        user_text: str,
        system_instructions: str,
        model_id: str | None = None,
    ) -> CategoryAnalysis:
        """Ten-field category breakdown. Unparseable output degrades softly."""
        self._require_initialized()
        model = await self._resolve_model(model_id)

        async with self._tracked_call():
            completion = await self._complete(
                system_instructions,
                build_analysis_request(user_text),
                model,
                ANALYSIS_MAX_TOKENS,
                ANALYSIS_TEMPERATURE,
            )
        categories = parse_categories(completion.text)
        if categories.parse_error:
            logger.warning(f"{self.name}: category analysis was not valid JSON, returning raw text")

        return CategoryAnalysis(
            categories=categories,
            model_used=completion.model or model,
            adapter_used=self.provider_type,
            usage=completion.usage,
        )

    # --- Catalog ---------------------------------------------------------

    def known_model_ids(self) -> list[str]:
        return []

    def set_default_model(self, model: str) -> bool:
        if model in self.known_model_ids():
            self.default_model = model
            logger.info(f"{self.name}: default model changed to {model}")
            return True
        return False

    def get_status(self) -> StatusDict:
        return {
            "initialized": self.initialized,
            "state": self.state.value,
            "credentialConfigured": bool(self.credential),
            "defaultModel": self.default_model,
            "lastConnectivityCheck": (
                self.last_connectivity_check.isoformat()
                if self.last_connectivity_check
                else None
            ),
            "lastError": self.last_error,
            "provider": self.name,
        }

    async def close(self) -> None:
        """Close transport client."""
        await self._close_retired()
        if self._client is not None:
            await self._close_client(self._client)
            self._client = None
