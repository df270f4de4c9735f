"""Enhancement service - wires settings, adapters, router and orchestrator.

This is the surface an outer layer (HTTP routes, CLI) talks to. Provider
configuration results come back as {success, message} dictionaries;
terminal enhancement failures propagate as ProviderError subclasses.
"""

import dataclasses
import inspect
from typing import Any

from veoangel.core.config import Settings, get_settings
from veoangel.core.credentials import CredentialStore
from veoangel.core.examples import ExampleLibrary
from veoangel.core.logging import get_logger
from veoangel.core.orchestrator import (
    EnhanceOptions,
    PromptEnhancement,
    PromptOrchestrator,
    load_system_prompt,
)
from veoangel.core.typing import CompletionHook, StatusDict
from veoangel.llm.base import ModelListing, ProviderType
from veoangel.llm.errors import ProviderError
from veoangel.llm.ollama import OllamaAdapter
from veoangel.llm.router import ProviderRouter, create_default_router

logger = get_logger("core.service")


class EnhancementService:
    """Facade over the routing core."""

    def __init__(
        self,
        router: ProviderRouter,
        orchestrator: PromptOrchestrator,
        credential_store: CredentialStore | None = None,
        on_enhanced: CompletionHook | None = None,
    ):
        self.router = router
        self.orchestrator = orchestrator
        self.credential_store = credential_store
        self.on_enhanced = on_enhanced

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        on_enhanced: CompletionHook | None = None,
    ) -> "EnhancementService":
        settings = settings or get_settings()
        router = create_default_router(settings)

        examples = ExampleLibrary()
        if settings.examples_path and settings.examples_path.exists():
            examples = ExampleLibrary.from_yaml(settings.examples_path)
        elif settings.examples_path:
            logger.warning(f"Examples file not found at {settings.examples_path}, continuing without")

        orchestrator = PromptOrchestrator(
            router,
            system_prompt=load_system_prompt(settings.system_prompt_path),
            examples=examples,
        )
        return cls(
            router,
            orchestrator,
            credential_store=CredentialStore(settings.env_file_path),
            on_enhanced=on_enhanced,
        )

    async def start(self) -> dict[str, Any]:
        """Initialize all providers. Reports no_providers_configured without raising."""
        return await self.router.initialize()

    async def close(self) -> None:
        await self.router.close_all()

    async def enhance(
        self, user_text: str, options: EnhanceOptions | None = None
    ) -> PromptEnhancement:
        enhancement = await self.orchestrator.enhance(user_text, options)

        if self.on_enhanced is not None:
            try:
                outcome = self.on_enhanced(enhancement)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning(f"Completion hook failed: {e}")
        return enhancement

    async def list_models(
        self,
        provider: ProviderType | str | None = None,
        force_refresh: bool = False,
    ) -> ModelListing | dict[str, ModelListing]:
        return await self.router.list_models(provider, force_refresh)

    async def configure_provider(
        self,
        name: ProviderType | str,
        credential: str | None,
        model: str | None = None,
    ) -> dict[str, Any]:
        result = await self.router.configure_provider(name, credential, model)
        if result["success"] and self.credential_store is not None:
            adapter = self.router.get(name)
            try:
                saved_model = adapter.default_model if model else None
                self.credential_store.save(adapter.name, adapter.credential, saved_model)
            except OSError as e:
                logger.error(f"Failed to persist {adapter.name} configuration: {e}")
                result["message"] += f" (not saved: {e})"
        return result

    def set_preferred(self, name: ProviderType | str) -> dict[str, Any]:
        try:
            self.router.set_preferred(name)
        except ProviderError as e:
            return {"success": False, "message": e.message}
        return {"success": True, "message": f"Preferred provider set to {self.router.preferred.value}"}

    def set_fallback_enabled(self, enabled: bool) -> dict[str, Any]:
        self.router.set_fallback_enabled(enabled)
        return {"success": True, "message": f"Fallback {'enabled' if enabled else 'disabled'}"}

    async def test_providers(self) -> dict[str, dict[str, Any]]:
        return await self.router.test_providers()

    async def pull_model(self, model_name: str) -> dict[str, Any]:
        """Pull a model onto the local Ollama daemon."""
        try:
            return await self._ollama().pull_model(model_name)
        except ProviderError as e:
            return {"success": False, "message": e.message}

    async def delete_model(self, model_name: str) -> dict[str, Any]:
        try:
            return await self._ollama().delete_model(model_name)
        except ProviderError as e:
            return {"success": False, "message": e.message}

    def recommended_models(self) -> list[dict[str, str]]:
        return [dataclasses.asdict(m) for m in self._ollama().recommended_models()]

    def _ollama(self) -> OllamaAdapter:
        return self.router.get(ProviderType.OLLAMA)

    def get_status(self) -> StatusDict:
        return {
            "router": self.router.get_status(),
            "systemPromptLoaded": bool(self.orchestrator.system_prompt),
            "exampleSets": self.orchestrator.examples.names,
            "exampleCount": self.orchestrator.examples.count(),
        }
