"""Credential persistence to the .env file the settings layer reads."""

from pathlib import Path

from dotenv import set_key

from veoangel.core.logging import get_logger

logger = get_logger("core.credentials")

# provider -> (credential variable, model variable)
ENV_KEYS: dict[str, tuple[str, str]] = {
    "anthropic": ("VEOANGEL_ANTHROPIC_API_KEY", "VEOANGEL_ANTHROPIC_MODEL"),
    "openrouter": ("VEOANGEL_OPENROUTER_API_KEY", "VEOANGEL_OPENROUTER_MODEL"),
    "ollama": ("VEOANGEL_OLLAMA_HOST", "VEOANGEL_OLLAMA_MODEL"),
}


class CredentialStore:
    """Writes verified provider credentials to an env file."""

    def __init__(self, env_file: Path):
        self.env_file = env_file

    def save(self, provider: str, credential: str | None, model: str | None = None) -> None:
        if provider not in ENV_KEYS:
            raise ValueError(f"Unknown provider: {provider}")

        credential_key, model_key = ENV_KEYS[provider]
        self.env_file.parent.mkdir(parents=True, exist_ok=True)
        self.env_file.touch(exist_ok=True)

        if credential:
            set_key(str(self.env_file), credential_key, credential)
        if model:
            set_key(str(self.env_file), model_key, model)
        logger.info(f"Saved {provider} configuration to {self.env_file}")
