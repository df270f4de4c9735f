"""Prompt orchestrator - builds instructions, runs analysis and enhancement, merges."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from veoangel.core.examples import ExampleLibrary
from veoangel.core.logging import get_logger
from veoangel.core.typing import ChunkCallback
from veoangel.llm.base import EnhancementResult, ProviderType, TokenUsage
from veoangel.llm.categories import StructuredCategories
from veoangel.llm.router import ProviderRouter
from veoangel.llm.templates import DEFAULT_SYSTEM_PROMPT

logger = get_logger("core.orchestrator")

EXAMPLE_SAMPLE_SIZE = 5


@dataclass
class EnhanceOptions:
    """Per-request options. Text is assumed validated by the caller."""

    use_examples: bool = False
    include_categories: bool = True
    provider: ProviderType | str | None = None
    model: str | None = None
    streaming: bool = False
    on_chunk: ChunkCallback | None = None
    example_set: str | None = None


@dataclass
class PromptEnhancement:
    """Merged enhancement, categories and provenance."""

    user_prompt: str
    enhanced_prompt: str
    provider: ProviderType
    model: str
    fallback_used: bool = False
    fallback_reason: str | None = None
    original_provider: ProviderType | None = None
    usage: TokenUsage | None = None
    categories: StructuredCategories | None = None
    category_error: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "userPrompt": self.user_prompt,
            "enhancedPrompt": self.enhanced_prompt,
            "categories": self.categories.to_dict() if self.categories else None,
            "categoryError": self.category_error,
            "provider": self.provider.value,
            "model": self.model,
            "fallbackUsed": self.fallback_used,
            "fallbackReason": self.fallback_reason,
            "originalProvider": self.original_provider.value if self.original_provider else None,
            "usage": self.usage.to_dict() if self.usage else None,
            "timestamp": self.timestamp.isoformat(),
        }


def load_system_prompt(path: Path | None) -> str:
    """Base instructions from file, or the built-in default."""
    if path is None:
        return DEFAULT_SYSTEM_PROMPT
    if not path.exists():
        raise FileNotFoundError(f"System prompt file not found at: {path}")
    text = path.read_text(encoding="utf-8")
    logger.info(f"System prompt loaded ({len(text)} chars) from {path}")
    return text


class PromptOrchestrator:
    """Composes system instructions and drives the router for one request."""

    def __init__(
        self,
        router: ProviderRouter,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        examples: ExampleLibrary | None = None,
    ):
        self.router = router
        self.system_prompt = system_prompt
        self.examples = examples or ExampleLibrary()

    def build_system_instructions(
        self, use_examples: bool = False, example_set: str | None = None
    ) -> str:
        if not use_examples:
            return self.system_prompt

        sampled = self.examples.sample(example_set, EXAMPLE_SAMPLE_SIZE)
        if not sampled:
            return self.system_prompt

        context = "\n\n".join(
            f"### Example {i}:\n{example}" for i, example in enumerate(sampled, start=1)
        )
        return f"{self.system_prompt}\n\n## Example Prompts for Reference:\n{context}"

    async def enhance(
        self, user_text: str, options: EnhanceOptions | None = None
    ) -> PromptEnhancement:
        options = options or EnhanceOptions()
        logger.info(
            f"Processing prompt enhancement ({len(user_text)} chars, "
            f"examples={options.use_examples}, categories={options.include_categories}, "
            f"streaming={options.streaming})"
        )
        instructions = self.build_system_instructions(options.use_examples, options.example_set)

        categories = None
        category_error = None
        if options.include_categories:
            try:
                analysis = await self.router.analyze_categories(
                    user_text, instructions, provider=options.provider, model=options.model
                )
                categories = analysis.categories
            except Exception as e:
                logger.warning(f"Category analysis failed, continuing without: {e}")
                category_error = str(e)

        if options.streaming:
            result: EnhancementResult = await self.router.enhance_streaming(
                user_text,
                instructions,
                on_chunk=options.on_chunk,
                provider=options.provider,
                model=options.model,
            )
        else:
            result = await self.router.enhance(
                user_text, instructions, provider=options.provider, model=options.model
            )

        logger.info(
            f"Prompt enhancement completed via {result.adapter_used.value} "
            f"({len(result.text)} chars, categories={categories is not None})"
        )
        return PromptEnhancement(
            user_prompt=user_text,
            enhanced_prompt=result.text,
            provider=result.adapter_used,
            model=result.model_used,
            fallback_used=result.fallback_triggered,
            fallback_reason=result.fallback_reason,
            original_provider=result.original_provider,
            usage=result.usage,
            categories=categories,
            category_error=category_error,
        )
