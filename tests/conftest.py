"""Shared fixtures: in-memory backend adapters for router/orchestrator tests."""

import json
from collections.abc import AsyncIterator

import pytest

from veoangel.llm.base import (
    ANALYSIS_MAX_TOKENS,
    BackendAdapter,
    Completion,
    ModelDescriptor,
    ModelListing,
    ProviderType,
    TokenUsage,
)

VALID_ANALYSIS = json.dumps(
    {
        "sceneDescription": "A cat rides a skateboard down a sunny street",
        "visualStyle": "Photorealistic",
        "cameraMovement": "Tracking shot",
        "mainSubject": "Orange tabby cat",
        "backgroundSetting": "Suburban street",
        "lightingMood": "Golden hour",
        "audioCue": "Wheels on asphalt",
        "colorPalette": "Warm oranges",
        "dialogue": "",
        "subtitles": "",
    }
)


class FakeAdapter(BackendAdapter):
    """Adapter with scripted behaviour and call recording."""

    requires_credential = False

    def __init__(
        self,
        provider_type: ProviderType,
        text: str = "enhanced prompt",
        analysis_text: str = VALID_ANALYSIS,
        fail_with: Exception | None = None,
        probe_error: Exception | None = None,
        chunks: tuple[str, ...] = ("enhanced ", "prompt"),
    ):
        self.provider_type = provider_type
        super().__init__("fake-credential", f"{provider_type.value}-default")
        self.text = text
        self.analysis_text = analysis_text
        self.fail_with = fail_with
        self.probe_error = probe_error
        self.chunks = chunks
        self.calls: list[str] = []

    def _create_client(self, credential: str) -> object:
        return object()

    async def _probe(self, client: object, model: str) -> None:
        if self.probe_error is not None:
            raise self.probe_error

    async def _complete(
        self,
        system: str,
        prompt: str,
        model: str,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        self.calls.append(model)
        if self.fail_with is not None:
            raise self.fail_with
        text = self.analysis_text if max_tokens == ANALYSIS_MAX_TOKENS else self.text
        return Completion(text=text, model=model, usage=TokenUsage(3, 5))

    async def _stream(
        self,
        system: str,
        prompt: str,
        model: str,
        completion: Completion,
    ) -> AsyncIterator[str]:
        self.calls.append(model)
        for chunk in self.chunks:
            yield chunk
        if self.fail_with is not None:
            raise self.fail_with
        completion.usage = TokenUsage(3, len(self.chunks))

    async def list_models(self, force_refresh: bool = False) -> ModelListing:
        return ModelListing(models=[ModelDescriptor(self.default_model, self.default_model)])


@pytest.fixture
def make_adapter():
    """Factory for FakeAdapter instances."""

    async def factory(provider_type: ProviderType, initialize: bool = True, **kwargs) -> FakeAdapter:
        adapter = FakeAdapter(provider_type, **kwargs)
        if initialize:
            await adapter.initialize()
        return adapter

    return factory
