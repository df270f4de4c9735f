"""Shared typing aliases used across modules."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeAlias

StatusDict: TypeAlias = dict[str, Any]
ChunkCallback: TypeAlias = Callable[[str], None]
CompletionHook: TypeAlias = Callable[[Any], Awaitable[None] | None]
