"""
Static model registry.

Hardcoded catalogs and presentation metadata: the fixed Anthropic model
list, the OpenRouter placeholder list served when the live catalog cannot
be fetched, vendor ordering/display names, and recommended Ollama pulls.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from veoangel.llm.base import ModelDescriptor

ANTHROPIC_MODELS: list[ModelDescriptor] = [
    ModelDescriptor(
        id="claude-3-5-sonnet-20241022",
        display_name="Claude 3.5 Sonnet",
        context_length=200_000,
        description="Balanced quality/cost, default",
    ),
    ModelDescriptor(
        id="claude-3-5-haiku-20241022",
        display_name="Claude 3.5 Haiku",
        context_length=200_000,
        description="Fast, cheap",
    ),
    ModelDescriptor(
        id="claude-3-opus-20240229",
        display_name="Claude 3 Opus",
        context_length=200_000,
    ),
    ModelDescriptor(
        id="claude-sonnet-4-20250514",
        display_name="Claude Sonnet 4",
        context_length=200_000,
    ),
    ModelDescriptor(
        id="claude-opus-4-20250514",
        display_name="Claude Opus 4",
        context_length=200_000,
        description="Best reasoning, highest cost",
    ),
]

OPENROUTER_FALLBACK_MODELS: list[str] = [
    "anthropic/claude-3.5-sonnet",
    "openai/gpt-4o",
    "openai/gpt-4o-mini",
    "meta-llama/llama-3.1-70b-instruct",
    "google/gemini-pro-1.5",
]

# Lower sorts first; unknown vendors sort after all of these
VENDOR_ORDER: dict[str, int] = {
    "anthropic": 1,
    "openai": 2,
    "google": 3,
    "meta-llama": 4,
    "mistral": 5,
    "cohere": 6,
}
UNKNOWN_VENDOR_RANK = 99

VENDOR_DISPLAY_NAMES: dict[str, str] = {
    "anthropic": "Anthropic",
    "openai": "OpenAI",
    "google": "Google",
    "meta-llama": "Meta (Llama)",
    "mistral": "Mistral AI",
    "cohere": "Cohere",
    "huggingface": "Hugging Face",
    "microsoft": "Microsoft",
    "perplexity": "Perplexity",
    "together": "Together AI",
}


@dataclass(frozen=True)
class RecommendedModel:
    id: str
    name: str
    description: str
    size: str


OLLAMA_RECOMMENDED: list[RecommendedModel] = [
    RecommendedModel("llama3.2:1b", "Llama 3.2 1B", "Fast and lightweight, good for quick responses", "~1.3GB"),
    RecommendedModel("llama3.2:3b", "Llama 3.2 3B", "Balanced performance and speed", "~2GB"),
    RecommendedModel("llama3.1:8b", "Llama 3.1 8B", "High quality responses, requires more resources", "~4.7GB"),
    RecommendedModel("phi3:mini", "Phi-3 Mini", "Compact model, efficient for text tasks", "~2.3GB"),
    RecommendedModel("gemma2:2b", "Gemma 2 2B", "Efficient model for creative tasks", "~1.6GB"),
]


def get_model_info(model_id: str) -> ModelDescriptor | None:
    """Look up a static Anthropic model."""
    return next((m for m in ANTHROPIC_MODELS if m.id == model_id), None)


def placeholder_models(ids: Iterable[str]) -> list[ModelDescriptor]:
    """Descriptors flagged as placeholders for when a live catalog is unavailable."""
    return [
        ModelDescriptor(
            id=model_id,
            display_name=model_id.split("/")[-1],
            is_fallback_placeholder=True,
        )
        for model_id in ids
    ]


def vendor_display_name(vendor: str) -> str:
    if vendor in VENDOR_DISPLAY_NAMES:
        return VENDOR_DISPLAY_NAMES[vendor]
    return vendor[:1].upper() + vendor[1:]


def sort_by_vendor_preference(models: Iterable[ModelDescriptor]) -> list[ModelDescriptor]:
    """Vendor preference order first, then model id."""
    return sorted(
        models,
        key=lambda m: (VENDOR_ORDER.get(m.vendor, UNKNOWN_VENDOR_RANK), m.id),
    )


def group_by_vendor(models: Iterable[ModelDescriptor]) -> dict[str, dict[str, Any]]:
    """Group descriptors by vendor namespace, keeping input order within groups."""
    grouped: dict[str, dict[str, Any]] = {}
    for model in models:
        vendor = model.vendor or "local"
        if vendor not in grouped:
            grouped[vendor] = {"name": vendor_display_name(vendor), "models": []}
        grouped[vendor]["models"].append(model.to_dict())
    return grouped
