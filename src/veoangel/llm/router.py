"""LLM provider router - preferred-provider dispatch with single-hop fallback."""

import dataclasses
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from veoangel.core.config import Settings, get_settings
from veoangel.core.logging import get_logger
from veoangel.core.typing import ChunkCallback, StatusDict
from veoangel.llm.base import (
    BackendAdapter,
    CategoryAnalysis,
    ConfigStatus,
    EnhancementResult,
    ModelListing,
    ProviderType,
)
from veoangel.llm.errors import (
    ConfigError,
    FallbackFailed,
    InvalidProvider,
    ModelNotAvailable,
    NoProvidersConfigured,
    NotConfigured,
    ProviderUnavailable,
)

logger = get_logger("llm.router")

R = TypeVar("R", EnhancementResult, CategoryAnalysis)

# Errors that fallback never masks: the caller has to act on them
NON_RECOVERABLE = (ConfigError, ModelNotAvailable)


class ProviderRouter:
    """Routes enhancement/analysis calls to the preferred adapter with fallback."""

    def __init__(
        self,
        adapters: Iterable[BackendAdapter] = (),
        preferred: ProviderType | str | None = None,
        fallback_enabled: bool = True,
    ):
        self._adapters: dict[ProviderType, BackendAdapter] = {}
        self.preferred: ProviderType | None = None
        for adapter in adapters:
            self.register(adapter)
        if preferred is not None and self._provider_type(preferred) in self._adapters:
            self.preferred = self._provider_type(preferred)
        self.fallback_enabled = fallback_enabled
        self.is_initialized = False

    @staticmethod
    def _provider_type(name: ProviderType | str) -> ProviderType:
        if isinstance(name, ProviderType):
            return name
        try:
            return ProviderType(name)
        except ValueError as e:
            raise InvalidProvider(str(name)) from e

    def register(self, adapter: BackendAdapter) -> None:
        """Register an adapter. Registration order is fallback order."""
        if adapter.provider_type in self._adapters:
            raise ValueError(f"Provider already registered: {adapter.name}")
        self._adapters[adapter.provider_type] = adapter
        if self.preferred is None:
            self.preferred = adapter.provider_type
        logger.info(f"Registered provider: {adapter.name}")

    def get(self, name: ProviderType | str) -> BackendAdapter:
        """Get a registered adapter or raise InvalidProvider."""
        provider_type = self._provider_type(name)
        adapter = self._adapters.get(provider_type)
        if adapter is None:
            raise InvalidProvider(provider_type.value)
        return adapter

    @property
    def adapters(self) -> list[BackendAdapter]:
        return list(self._adapters.values())

    @property
    def available_providers(self) -> list[ProviderType]:
        """Initialized providers, in registration order."""
        return [ptype for ptype, adapter in self._adapters.items() if adapter.initialized]

    def _first_initialized(self, exclude: ProviderType | None = None) -> BackendAdapter | None:
        return next(
            (
                adapter
                for ptype, adapter in self._adapters.items()
                if ptype != exclude and adapter.initialized
            ),
            None,
        )

    def _preferred_is_live(self) -> bool:
        return self.preferred is not None and self._adapters[self.preferred].initialized

    def _repair_preferred(self) -> None:
        if self._preferred_is_live():
            return
        replacement = self._first_initialized()
        if replacement is not None:
            logger.info(f"Preferred provider not available, switching to: {replacement.name}")
            self.preferred = replacement.provider_type

    # --- Lifecycle -------------------------------------------------------

    async def initialize(self) -> dict[str, Any]:
        """Initialize every adapter independently; never raises."""
        logger.info("Initializing provider router...")
        results: dict[str, ConfigStatus] = {}
        for ptype, adapter in self._adapters.items():
            try:
                results[ptype.value] = await adapter.initialize()
            except Exception as e:
                logger.error(f"Failed to initialize provider {ptype.value}: {e}")
                results[ptype.value] = ConfigStatus(False, str(e))
            logger.info(f"Provider {ptype.value} initialization: {results[ptype.value].message}")

        providers = {name: status.to_dict() for name, status in results.items()}
        configured = [name for name, status in results.items() if status.configured]
        if not configured:
            logger.warning("No providers are configured")
            self.is_initialized = False
            error = NoProvidersConfigured()
            return {
                "success": False,
                "code": error.code,
                "message": error.message,
                "providers": providers,
            }

        self._repair_preferred()
        self.is_initialized = True
        logger.info(f"Provider router initialized with {len(configured)} configured providers")
        return {
            "success": True,
            "message": f"Initialized with providers: {', '.join(configured)}",
            "providers": providers,
            "activeProvider": self.preferred.value,
        }

    async def close_all(self) -> None:
        """Close all provider connections."""
        for adapter in self._adapters.values():
            await adapter.close()

    # --- Dispatch --------------------------------------------------------

    async def _dispatch(
        self,
        intent: str,
        call: Callable[[BackendAdapter, str | None], Awaitable[R]],
        provider: ProviderType | str | None,
        model: str | None,
    ) -> R:
        explicit = provider is not None
        if not self.available_providers:
            raise NoProvidersConfigured()

        target = self.get(provider) if explicit else self._adapters[self.preferred]
        if not target.initialized:
            raise ProviderUnavailable(target.name)

        logger.info(f"{intent}: dispatching to {target.name}")
        try:
            return await call(target, model)
        except Exception as error:
            logger.error(f"{intent}: provider {target.name} failed: {error}")
            if explicit or not self.fallback_enabled or isinstance(error, NON_RECOVERABLE):
                raise
            fallback = self._first_initialized(exclude=target.provider_type)
            if fallback is None:
                raise

            logger.info(f"{intent}: attempting fallback to provider: {fallback.name}")
            try:
                # Model ids are namespaced per backend; the fallback uses its own default
                result = await call(fallback, None)
            except Exception as fallback_error:
                logger.error(f"{intent}: fallback failed with provider {fallback.name}: {fallback_error}")
                raise FallbackFailed(target.name, error, fallback.name, fallback_error) from fallback_error

            logger.info(f"{intent}: fallback successful with provider: {fallback.name}")
            return dataclasses.replace(
                result,
                fallback_triggered=True,
                fallback_reason=str(error),
                original_provider=target.provider_type,
            )

    async def enhance(
        self,
        user_text: str,
        system_instructions: str,
        provider: ProviderType | str | None = None,
        model: str | None = None,
    ) -> EnhancementResult:
        """Free-text enhancement via preferred provider or explicit override."""

        async def call(adapter: BackendAdapter, model_id: str | None) -> EnhancementResult:
            return await adapter.enhance(user_text, system_instructions, model_id)

        return await self._dispatch("enhance", call, provider, model)

    async def enhance_streaming(
        self,
        user_text: str,
        system_instructions: str,
        on_chunk: ChunkCallback | None = None,
        provider: ProviderType | str | None = None,
        model: str | None = None,
    ) -> EnhancementResult:
        """Streaming enhancement. Fragments from a failed primary may precede fallback output."""

        async def call(adapter: BackendAdapter, model_id: str | None) -> EnhancementResult:
            return await adapter.enhance_streaming(
                user_text, system_instructions, model_id, on_chunk
            )

        return await self._dispatch("enhance_streaming", call, provider, model)

    async def analyze_categories(
        self,
        user_text: str,
        system_instructions: str,
        provider: ProviderType | str | None = None,
        model: str | None = None,
    ) -> CategoryAnalysis:

        async def call(adapter: BackendAdapter, model_id: str | None) -> CategoryAnalysis:
            return await adapter.analyze_categories(user_text, system_instructions, model_id)

        return await self._dispatch("analyze_categories", call, provider, model)

    # --- Configuration ---------------------------------------------------

    async def configure_provider(
        self,
        name: ProviderType | str,
        credential: str | None,
        model: str | None = None,
    ) -> dict[str, Any]:
        """Reconfigure one adapter; returns {success, message}."""
        try:
            adapter = self.get(name)
        except InvalidProvider as e:
            logger.error(f"Failed to configure provider {name}: {e.message}")
            return {"success": False, "message": e.message}

        had_live_provider = bool(self.available_providers)
        status = await adapter.reconfigure(credential, model)

        if status.configured:
            logger.info(f"Provider {adapter.name} configured successfully")
            if not had_live_provider or not self._preferred_is_live():
                self.preferred = adapter.provider_type
                logger.info(f"Set {adapter.name} as preferred provider")
            self.is_initialized = True
        else:
            self._repair_preferred()
            self.is_initialized = bool(self.available_providers)

        return status.to_dict()

    def set_preferred(self, name: ProviderType | str) -> bool:
        adapter = self.get(name)
        if not adapter.initialized:
            raise NotConfigured(adapter.name)
        self.preferred = adapter.provider_type
        logger.info(f"Preferred provider set to: {adapter.name}")
        return True

    def set_fallback_enabled(self, enabled: bool = True) -> None:
        self.fallback_enabled = enabled
        logger.info(f"Fallback mode {'enabled' if enabled else 'disabled'}")

    # --- Introspection ---------------------------------------------------

    def get_status(self) -> StatusDict:
        providers = {ptype.value: adapter.get_status() for ptype, adapter in self._adapters.items()}
        return {
            "initialized": self.is_initialized,
            "preferredProvider": self.preferred.value if self.preferred else None,
            "enableFallback": self.fallback_enabled,
            "configuredProviders": [p.value for p in self.available_providers],
            "totalProviders": len(self._adapters),
            "providers": providers,
        }

    async def list_models(
        self,
        provider: ProviderType | str | None = None,
        force_refresh: bool = False,
    ) -> ModelListing | dict[str, ModelListing]:
        """One provider's listing, or every provider's keyed by name."""
        if provider is not None:
            return await self.get(provider).list_models(force_refresh)
        return {
            ptype.value: await adapter.list_models(force_refresh)
            for ptype, adapter in self._adapters.items()
        }

    async def test_providers(self) -> dict[str, dict[str, Any]]:
        """Liveness probe of every initialized adapter."""
        results: dict[str, dict[str, Any]] = {}
        for ptype, adapter in self._adapters.items():
            if not adapter.initialized:
                results[ptype.value] = {"success": False, "message": "Service not initialized"}
                continue
            try:
                await adapter.test_connection()
                results[ptype.value] = {"success": True, "message": "Connection successful"}
            except Exception as e:
                results[ptype.value] = {"success": False, "message": str(e)}
        return results


def create_adapter(provider_type: ProviderType, settings: Settings) -> BackendAdapter:
    """Build the adapter for a provider from settings."""
    from veoangel.llm.anthropic import AnthropicAdapter
    from veoangel.llm.ollama import OllamaAdapter
    from veoangel.llm.openrouter import OpenRouterAdapter

    if provider_type == ProviderType.ANTHROPIC:
        return AnthropicAdapter(
            api_key=settings.anthropic_api_key,
            default_model=settings.anthropic_model,
            timeout=settings.request_timeout,
        )
    if provider_type == ProviderType.OPENROUTER:
        return OpenRouterAdapter(
            api_key=settings.openrouter_api_key,
            default_model=settings.openrouter_model,
            timeout=settings.request_timeout,
            models_ttl=settings.openrouter_models_ttl,
        )
    if provider_type == ProviderType.OLLAMA:
        return OllamaAdapter(
            host=settings.ollama_host,
            default_model=settings.ollama_model,
            preferred_families=settings.ollama_preferred_families,
            timeout=settings.ollama_timeout,
            models_ttl=settings.ollama_models_ttl,
        )
    raise InvalidProvider(provider_type.value)


def create_default_router(settings: Settings | None = None) -> ProviderRouter:
    """Create router with all providers from settings (not yet initialized)."""
    settings = settings or get_settings()
    adapters = [create_adapter(ptype, settings) for ptype in ProviderType]

    try:
        preferred = ProviderType(settings.preferred_provider)
    except ValueError:
        logger.warning(f"Unknown preferred provider {settings.preferred_provider}, using anthropic")
        preferred = ProviderType.ANTHROPIC

    return ProviderRouter(adapters, preferred=preferred, fallback_enabled=settings.enable_fallback)
