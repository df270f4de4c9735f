"""
CLI entry point.

Commands:
- enhance <idea> [--provider P] [--model M] [--examples] [--categories] [--stream]
- models [provider] [--refresh]: List available models
- status: Show router and provider status
- health: Probe every configured provider
- configure <provider> <credential> [--model M]: Verify and save credentials
- ollama-pull <model> / ollama-delete <model>: Manage local models

Flags:
- --debug: Enable debug logging to file
"""

import asyncio
import json
import logging
import sys

from veoangel.core.config import Settings, get_settings
from veoangel.core.logging import get_logger, setup_logging
from veoangel.core.orchestrator import EnhanceOptions
from veoangel.core.service import EnhancementService
from veoangel.llm.base import ModelListing
from veoangel.llm.errors import ProviderError

USAGE = """Usage: veoangel [--debug] <command> [args]
Commands:
  enhance <idea> [--provider P] [--model M] [--examples] [--categories] [--stream]
  models [provider] [--refresh]
  status
  health
  configure <provider> <credential> [--model M]
  ollama-pull <model>
  ollama-delete <model>
Flags: --debug (enable debug logging to data/veoangel.log)"""


def _pop_flag(args: list[str], flag: str) -> bool:
    if flag in args:
        args.remove(flag)
        return True
    return False


def _pop_option(args: list[str], option: str) -> str | None:
    if option not in args:
        return None
    index = args.index(option)
    if index + 1 >= len(args):
        raise ValueError(f"{option} requires a value")
    value = args[index + 1]
    del args[index : index + 2]
    return value


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    settings = get_settings()
    args = list(sys.argv[1:] if argv is None else argv)

    # --debug enables verbose DEBUG traces
    debug_mode = _pop_flag(args, "--debug")
    log_level = logging.DEBUG if debug_mode else logging.INFO
    setup_logging(level=log_level, log_file=settings.log_path, verbose=debug_mode)
    logger = get_logger("cli")

    logger.info(f"Logging to {settings.log_path}" + (" (debug mode)" if debug_mode else ""))

    if not args:
        print(USAGE)
        return 1

    command, rest = args[0], args[1:]
    try:
        if command == "enhance":
            return asyncio.run(_enhance(settings, rest))
        if command == "models":
            return asyncio.run(_models(settings, rest))
        if command == "status":
            return asyncio.run(_status(settings))
        if command == "health":
            return asyncio.run(_health_check(settings))
        if command == "configure":
            return asyncio.run(_configure(settings, rest))
        if command in ("ollama-pull", "ollama-delete"):
            return asyncio.run(_ollama_manage(settings, command, rest))
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print(f"Unknown command: {command}")
    print(USAGE)
    return 1


async def _start_service(settings: Settings) -> EnhancementService:
    service = EnhancementService.from_settings(settings)
    result = await service.start()
    if not result["success"]:
        print(f"Warning: {result['message']}")
    return service


async def _enhance(settings: Settings, args: list[str]) -> int:
    """Enhance one idea and print the result."""
    provider = _pop_option(args, "--provider")
    model = _pop_option(args, "--model")
    use_examples = _pop_flag(args, "--examples")
    include_categories = _pop_flag(args, "--categories")
    streaming = _pop_flag(args, "--stream")

    idea = " ".join(args).strip()
    if not idea:
        print("Usage: veoangel enhance <idea> [options]")
        return 1

    options = EnhanceOptions(
        use_examples=use_examples,
        include_categories=include_categories,
        provider=provider,
        model=model,
        streaming=streaming,
        on_chunk=(lambda chunk: print(chunk, end="", flush=True)) if streaming else None,
    )

    service = await _start_service(settings)
    try:
        enhancement = await service.enhance(idea, options)
    except ProviderError as e:
        print(f"Error [{e.code}]: {e.message}")
        return 1
    finally:
        await service.close()

    if streaming:
        print()
    else:
        print(enhancement.enhanced_prompt)

    if enhancement.categories is not None:
        print("\nCategories:")
        print(json.dumps(enhancement.categories.to_dict(), indent=2))
    elif enhancement.category_error:
        print(f"\nCategory analysis failed: {enhancement.category_error}")

    print(f"\n[{enhancement.provider.value} / {enhancement.model}]")
    if enhancement.fallback_used:
        print(f"  fallback from {enhancement.original_provider.value}: {enhancement.fallback_reason}")
    return 0


def _print_listing(name: str, listing: ModelListing) -> None:
    suffix = " (cached)" if listing.cached else ""
    print(f"{name}{suffix}:")
    if listing.message:
        print(f"  {listing.message}")
    for model in listing.models:
        marker = " *" if model.is_fallback_placeholder else ""
        context = f" [{model.context_length}]" if model.context_length else ""
        print(f"  {model.id}{context}{marker}")


async def _models(settings: Settings, args: list[str]) -> int:
    refresh = _pop_flag(args, "--refresh")
    provider = args[0] if args else None

    service = await _start_service(settings)
    try:
        listings = await service.list_models(provider, force_refresh=refresh)
    except ProviderError as e:
        print(f"Error: {e.message}")
        return 1
    finally:
        await service.close()

    if isinstance(listings, ModelListing):
        _print_listing(provider, listings)
    else:
        for name, listing in listings.items():
            _print_listing(name, listing)
    return 0


async def _status(settings: Settings) -> int:
    service = await _start_service(settings)
    try:
        print(json.dumps(service.get_status(), indent=2, default=str))
    finally:
        await service.close()
    return 0


async def _health_check(settings: Settings) -> int:
    """Check LLM provider health."""
    print("Checking LLM providers...")
    service = await _start_service(settings)
    try:
        results = await service.test_providers()
    finally:
        await service.close()

    for name, result in results.items():
        state = "OK" if result["success"] else result["message"]
        print(f"  {name}: {state}")
    return 0 if any(r["success"] for r in results.values()) else 1


async def _configure(settings: Settings, args: list[str]) -> int:
    model = _pop_option(args, "--model")
    if len(args) != 2:
        print("Usage: veoangel configure <provider> <credential> [--model M]")
        return 1

    service = await _start_service(settings)
    try:
        result = await service.configure_provider(args[0], args[1], model)
    finally:
        await service.close()

    print(result["message"])
    return 0 if result["success"] else 1


async def _ollama_manage(settings: Settings, command: str, args: list[str]) -> int:
    if len(args) != 1:
        print(f"Usage: veoangel {command} <model>")
        return 1

    service = await _start_service(settings)
    try:
        if command == "ollama-pull":
            result = await service.pull_model(args[0])
        else:
            result = await service.delete_model(args[0])
    finally:
        await service.close()

    print(result["message"])
    return 0 if result["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
