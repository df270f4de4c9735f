"""Tests for prompt orchestrator."""

import random
from pathlib import Path

import pytest

from veoangel.core.examples import ExampleLibrary
from veoangel.core.orchestrator import (
    EnhanceOptions,
    PromptOrchestrator,
    load_system_prompt,
)
from veoangel.llm.base import ProviderType
from veoangel.llm.errors import BackendError, NoProvidersConfigured
from veoangel.llm.router import ProviderRouter
from veoangel.llm.templates import DEFAULT_SYSTEM_PROMPT

A = ProviderType.ANTHROPIC
B = ProviderType.OPENROUTER


@pytest.fixture
def examples() -> ExampleLibrary:
    return ExampleLibrary(
        {"default": [f"example {i}" for i in range(7)], "short": ["only one"]},
        rng=random.Random(1),
    )


def test_instructions_without_examples(examples):
    orchestrator = PromptOrchestrator(ProviderRouter(), "BASE", examples)

    assert orchestrator.build_system_instructions() == "BASE"


def test_instructions_with_sampled_examples(examples):
    orchestrator = PromptOrchestrator(ProviderRouter(), "BASE", examples)

    instructions = orchestrator.build_system_instructions(use_examples=True)

    assert instructions.startswith("BASE\n\n## Example Prompts for Reference:\n")
    assert instructions.count("### Example ") == 5
    assert "### Example 5:" in instructions


def test_instructions_with_small_set(examples):
    orchestrator = PromptOrchestrator(ProviderRouter(), "BASE", examples)

    instructions = orchestrator.build_system_instructions(use_examples=True, example_set="short")

    assert instructions.count("### Example ") == 1
    assert "only one" in instructions


@pytest.mark.asyncio
async def test_enhance_merges_categories_and_provenance(make_adapter):
    router = ProviderRouter([await make_adapter(A)])
    orchestrator = PromptOrchestrator(router)

    result = await orchestrator.enhance("a cat on a skateboard")

    assert result.enhanced_prompt == "enhanced prompt"
    assert result.provider == A
    assert result.model == "anthropic-default"
    assert result.fallback_used is False
    assert result.categories.main_subject == "Orange tabby cat"
    assert result.usage.output_tokens == 5
    data = result.to_dict()
    assert data["userPrompt"] == "a cat on a skateboard"
    assert data["categories"]["mainSubject"] == "Orange tabby cat"
    assert data["provider"] == "anthropic"


@pytest.mark.asyncio
async def test_enhance_without_categories_skips_analysis(make_adapter):
    adapter = await make_adapter(A)
    orchestrator = PromptOrchestrator(ProviderRouter([adapter]))

    result = await orchestrator.enhance("idea", EnhanceOptions(include_categories=False))

    assert result.categories is None
    assert len(adapter.calls) == 1


@pytest.mark.asyncio
async def test_unparseable_analysis_still_succeeds(make_adapter):
    router = ProviderRouter([await make_adapter(A, analysis_text="not json at all")])
    orchestrator = PromptOrchestrator(router)

    result = await orchestrator.enhance("idea")

    assert result.enhanced_prompt == "enhanced prompt"
    assert result.categories.parse_error is True
    assert result.categories.raw_text == "not json at all"


@pytest.mark.asyncio
async def test_analysis_failure_is_not_terminal(make_adapter, monkeypatch):
    """Failing analysis is recorded; enhancement still runs."""
    adapter = await make_adapter(A)
    router = ProviderRouter([adapter], fallback_enabled=False)
    orchestrator = PromptOrchestrator(router)

    async def failing_analysis(*args, **kwargs):
        raise BackendError("analysis exploded", "anthropic")

    monkeypatch.setattr(adapter, "analyze_categories", failing_analysis)
    result = await orchestrator.enhance("idea")

    assert result.categories is None
    assert "analysis exploded" in result.category_error
    assert result.enhanced_prompt == "enhanced prompt"


@pytest.mark.asyncio
async def test_enhancement_failure_propagates(make_adapter):
    router = ProviderRouter([await make_adapter(A, initialize=False)])
    orchestrator = PromptOrchestrator(router)

    with pytest.raises(NoProvidersConfigured):
        await orchestrator.enhance("idea", EnhanceOptions(include_categories=False))


@pytest.mark.asyncio
async def test_streaming_reports_fallback(make_adapter):
    failing = await make_adapter(A, chunks=(), fail_with=BackendError("auth", "anthropic"))
    router = ProviderRouter([failing, await make_adapter(B, chunks=("x", "y"))])
    orchestrator = PromptOrchestrator(router)
    chunks: list[str] = []

    result = await orchestrator.enhance(
        "idea",
        EnhanceOptions(include_categories=False, streaming=True, on_chunk=chunks.append),
    )

    assert chunks == ["x", "y"]
    assert result.enhanced_prompt == "xy"
    assert result.provider == B
    assert result.fallback_used is True
    assert result.original_provider == A


def test_load_system_prompt(tmp_path: Path):
    path = tmp_path / "system.md"
    path.write_text("You write video prompts.", encoding="utf-8")

    assert load_system_prompt(None) == DEFAULT_SYSTEM_PROMPT
    assert load_system_prompt(path) == "You write video prompts."
    with pytest.raises(FileNotFoundError):
        load_system_prompt(tmp_path / "missing.md")
