"""
Few-shot example library.

Named sets of example prompts loaded from YAML. Either a plain mapping of
set name to prompt list, or:

    default_set: cinematic
    sets:
      cinematic:
        - "A slow dolly shot across..."
"""

import random
from pathlib import Path

import yaml

from veoangel.core.logging import get_logger

logger = get_logger("core.examples")

DEFAULT_SET = "default"


class ExampleLibrary:
    """In-memory example sets with random sampling."""

    def __init__(
        self,
        sets: dict[str, list[str]] | None = None,
        default_set: str = DEFAULT_SET,
        rng: random.Random | None = None,
    ):
        self._sets: dict[str, list[str]] = {}
        self.default_set = default_set
        self._rng = rng or random.Random()
        for name, prompts in (sets or {}).items():
            self.add_set(name, prompts)

    @classmethod
    def from_yaml(cls, path: Path | str, rng: random.Random | None = None) -> "ExampleLibrary":
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Examples file must contain a mapping: {path}")

        if "sets" in data:
            library = cls(data["sets"] or {}, data.get("default_set", DEFAULT_SET), rng)
        else:
            library = cls(data, next(iter(data), DEFAULT_SET), rng)

        logger.info(f"Loaded {library.count()} examples in {len(library.names)} sets from {path}")
        return library

    def add_set(self, name: str, prompts: list[str]) -> None:
        cleaned = [p.strip() for p in prompts if isinstance(p, str) and p.strip()]
        self._sets[name] = cleaned

    @property
    def names(self) -> list[str]:
        return list(self._sets)

    def get(self, name: str | None = None) -> list[str]:
        """Prompts of a set; unknown names fall back to the default set."""
        if name and name in self._sets:
            return list(self._sets[name])
        if name:
            logger.warning(f"Unknown example set {name}, using {self.default_set}")
        return list(self._sets.get(self.default_set, []))

    def count(self, name: str | None = None) -> int:
        if name is None:
            return sum(len(prompts) for prompts in self._sets.values())
        return len(self.get(name))

    def sample(self, name: str | None = None, k: int = 5) -> list[str]:
        """Up to k distinct prompts in random order."""
        pool = self.get(name)
        return self._rng.sample(pool, min(k, len(pool)))

    def random_example(self, name: str | None = None) -> str | None:
        pool = self.get(name)
        return self._rng.choice(pool) if pool else None
