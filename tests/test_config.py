"""Tests for configuration module."""

from pathlib import Path

from veoangel.core.config import Settings, get_settings


def test_default_settings():
    """Settings load with defaults."""
    settings = Settings(
        _env_file=None,  # Don't load .env in tests
    )
    assert settings.data_dir == Path("data")
    assert settings.ollama_host == "http://127.0.0.1:11434"
    assert settings.preferred_provider == "anthropic"
    assert settings.enable_fallback is True
    assert settings.openrouter_models_ttl == 3600
    assert settings.ollama_models_ttl == 300
    assert settings.ollama_preferred_families == ["llama"]


def test_log_path():
    """Log path lives in data_dir."""
    settings = Settings(data_dir=Path("/tmp/test"), _env_file=None)
    assert settings.log_path == Path("/tmp/test/veoangel.log")


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("VEOANGEL_OPENROUTER_API_KEY", "sk-or-test")
    monkeypatch.setenv("VEOANGEL_ENABLE_FALLBACK", "false")

    settings = Settings(_env_file=None)

    assert settings.openrouter_api_key == "sk-or-test"
    assert settings.enable_fallback is False


def test_get_settings_reads_configured_env_file(tmp_path: Path, monkeypatch):
    env_file = tmp_path / "secrets.env"
    env_file.write_text("VEOANGEL_OPENROUTER_API_KEY=sk-or-saved\n")
    monkeypatch.setenv("VEOANGEL_ENV_FILE_PATH", str(env_file))

    settings = get_settings()

    assert settings.env_file_path == env_file
    assert settings.openrouter_api_key == "sk-or-saved"
