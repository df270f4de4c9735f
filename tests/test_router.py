"""Tests for provider router dispatch, failover and configuration."""

import pytest

from veoangel.core.config import Settings
from veoangel.llm.base import AdapterState, ProviderType
from veoangel.llm.errors import (
    BackendError,
    ConfigError,
    ErrorKind,
    FallbackFailed,
    InvalidProvider,
    ModelNotAvailable,
    NoProvidersConfigured,
    NotConfigured,
    ProviderUnavailable,
)
from veoangel.llm.router import ProviderRouter, create_default_router

A = ProviderType.ANTHROPIC
B = ProviderType.OPENROUTER
C = ProviderType.OLLAMA


@pytest.mark.asyncio
async def test_preferred_adapter_used_without_fallback(make_adapter):
    """Healthy preferred adapter handles the call, unconfigured peer ignored."""
    a = await make_adapter(A)
    b = await make_adapter(B, initialize=False)
    router = ProviderRouter([a, b], preferred=A)

    result = await router.enhance("a cat on a skateboard", "system")

    assert result.adapter_used == A
    assert result.fallback_triggered is False
    assert result.fallback_reason is None
    assert result.text == "enhanced prompt"
    assert b.calls == []


@pytest.mark.asyncio
async def test_transient_failure_falls_back_to_other_adapter(make_adapter):
    """Transient failure on preferred retries once on the other adapter."""
    a = await make_adapter(A, fail_with=BackendError("overloaded", "anthropic", kind=ErrorKind.TRANSIENT))
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A)

    result = await router.enhance("idea", "system")

    assert result.adapter_used == B
    assert result.fallback_triggered is True
    assert result.original_provider == A
    assert "overloaded" in result.fallback_reason


@pytest.mark.asyncio
async def test_auth_failure_falls_back_with_reason(make_adapter):
    """Auth failure is eligible for fallback and its text is the reason."""
    a = await make_adapter(A, fail_with=BackendError("invalid x-api-key", "anthropic", kind=ErrorKind.AUTH))
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A)

    result = await router.enhance("a cat on a skateboard", "system")

    assert result.adapter_used == B
    assert result.fallback_triggered is True
    assert "invalid x-api-key" in result.fallback_reason


@pytest.mark.asyncio
async def test_fallback_uses_fallback_adapter_default_model(make_adapter):
    """A model id meant for the primary is not forwarded to the fallback."""
    a = await make_adapter(A, fail_with=BackendError("down", "anthropic"))
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A)

    result = await router.enhance("idea", "system", model="claude-3-5-haiku-20241022")

    assert a.calls == ["claude-3-5-haiku-20241022"]
    assert b.calls == ["openrouter-default"]
    assert result.model_used == "openrouter-default"


@pytest.mark.asyncio
async def test_fallback_picks_first_initialized_in_registration_order(make_adapter):
    a = await make_adapter(A)
    b = await make_adapter(B)
    c = await make_adapter(C, fail_with=BackendError("boom", "ollama"))
    router = ProviderRouter([a, b, c], preferred=C)

    result = await router.enhance("idea", "system")

    assert result.adapter_used == A
    assert b.calls == []


@pytest.mark.asyncio
async def test_fallback_failure_raises_combined_error(make_adapter):
    """At most one hop; both messages carried."""
    a = await make_adapter(A, fail_with=BackendError("primary broke", "anthropic"))
    b = await make_adapter(B, fail_with=BackendError("fallback broke", "openrouter"))
    c = await make_adapter(C)
    router = ProviderRouter([a, b, c], preferred=A)

    with pytest.raises(FallbackFailed) as exc_info:
        await router.enhance("idea", "system")

    assert "primary broke" in exc_info.value.message
    assert "fallback broke" in exc_info.value.message
    assert exc_info.value.code == "all_providers_failed"
    assert c.calls == []


@pytest.mark.asyncio
async def test_fallback_disabled_propagates_original_error(make_adapter):
    error = BackendError("overloaded", "anthropic", kind=ErrorKind.TRANSIENT)
    a = await make_adapter(A, fail_with=error)
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A, fallback_enabled=False)

    with pytest.raises(BackendError) as exc_info:
        await router.enhance("idea", "system")

    assert exc_info.value is error
    assert b.calls == []


@pytest.mark.asyncio
async def test_explicit_override_failure_does_not_fall_back(make_adapter):
    a = await make_adapter(A)
    b = await make_adapter(B, fail_with=BackendError("nope", "openrouter"))
    router = ProviderRouter([a, b], preferred=A)

    with pytest.raises(BackendError):
        await router.enhance("idea", "system", provider="openrouter")

    assert a.calls == []


@pytest.mark.asyncio
async def test_explicit_unavailable_override_fails_immediately(make_adapter):
    """No adapter call at all when the override is not initialized."""
    a = await make_adapter(A)
    b = await make_adapter(B, initialize=False)
    router = ProviderRouter([a, b], preferred=A)

    with pytest.raises(ProviderUnavailable) as exc_info:
        await router.enhance("idea", "system", provider=B)

    assert exc_info.value.code == "provider_unavailable"
    assert a.calls == []
    assert b.calls == []


@pytest.mark.asyncio
async def test_model_not_available_is_not_masked_by_fallback(make_adapter):
    a = await make_adapter(A, fail_with=ModelNotAvailable("ghost", "anthropic"))
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A)

    with pytest.raises(ModelNotAvailable):
        await router.enhance("idea", "system")

    assert b.calls == []


@pytest.mark.asyncio
async def test_config_error_is_not_masked_by_fallback(make_adapter):
    a = await make_adapter(A, fail_with=ConfigError("reconfigure me", "anthropic"))
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A)

    with pytest.raises(ConfigError):
        await router.enhance("idea", "system")

    assert b.calls == []


@pytest.mark.asyncio
async def test_no_providers_configured(make_adapter):
    """Nothing configured reports no_providers_configured, not a transport error."""
    a = await make_adapter(A, initialize=False)
    b = await make_adapter(B, initialize=False)
    router = ProviderRouter([a, b])

    with pytest.raises(NoProvidersConfigured) as exc_info:
        await router.enhance("a cat on a skateboard", "system")

    assert exc_info.value.code == "no_providers_configured"


@pytest.mark.asyncio
async def test_unknown_provider_override(make_adapter):
    router = ProviderRouter([await make_adapter(A)])

    with pytest.raises(InvalidProvider):
        await router.enhance("idea", "system", provider="gemini")


@pytest.mark.asyncio
async def test_analyze_categories_follows_same_policy(make_adapter):
    a = await make_adapter(A, fail_with=BackendError("503", "anthropic", kind=ErrorKind.TRANSIENT))
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A)

    analysis = await router.analyze_categories("idea", "system")

    assert analysis.adapter_used == B
    assert analysis.fallback_triggered is True
    assert analysis.categories.parse_error is False
    assert analysis.categories.camera_movement == "Tracking shot"


@pytest.mark.asyncio
async def test_streaming_fallback_delivers_chunks_in_order(make_adapter):
    """Fragments from the failed primary precede the fallback's fragments."""
    a = await make_adapter(A, chunks=("partial",), fail_with=BackendError("cut off", "anthropic"))
    b = await make_adapter(B, chunks=("one ", "two"))
    router = ProviderRouter([a, b], preferred=A)
    received: list[str] = []

    result = await router.enhance_streaming("idea", "system", on_chunk=received.append)

    assert received == ["partial", "one ", "two"]
    assert result.text == "one two"
    assert result.fallback_triggered is True


@pytest.mark.asyncio
async def test_initialize_isolates_failures_and_repairs_preferred(make_adapter):
    a = await make_adapter(A, initialize=False, probe_error=BackendError("bad key", "anthropic", kind=ErrorKind.AUTH))
    b = await make_adapter(B, initialize=False)
    c = await make_adapter(C, initialize=False)
    router = ProviderRouter([a, b, c], preferred=A)

    result = await router.initialize()

    assert result["success"] is True
    assert result["activeProvider"] == "openrouter"
    assert result["providers"]["anthropic"]["success"] is False
    assert router.preferred == B
    assert a.state == AdapterState.CONFIGURATION_FAILED
    assert router.available_providers == [B, C]


@pytest.mark.asyncio
async def test_initialize_with_nothing_configured_reports_without_raising(make_adapter):
    a = await make_adapter(A, initialize=False, probe_error=BackendError("down", "anthropic"))
    router = ProviderRouter([a])

    result = await router.initialize()

    assert result["success"] is False
    assert result["code"] == "no_providers_configured"
    assert router.is_initialized is False


@pytest.mark.asyncio
async def test_configure_provider_promotes_first_live_adapter(make_adapter):
    a = await make_adapter(A, initialize=False)
    b = await make_adapter(B, initialize=False)
    router = ProviderRouter([a, b], preferred=A)

    result = await router.configure_provider("openrouter", "sk-or-new")

    assert result["success"] is True
    assert router.preferred == B
    assert b.credential == "sk-or-new"


@pytest.mark.asyncio
async def test_configure_provider_keeps_live_preferred(make_adapter):
    a = await make_adapter(A)
    b = await make_adapter(B, initialize=False)
    router = ProviderRouter([a, b], preferred=A)

    await router.configure_provider(B, "sk-or-new")

    assert router.preferred == A


@pytest.mark.asyncio
async def test_configure_provider_failure_fails_closed(make_adapter):
    a = await make_adapter(A)
    a.probe_error = BackendError("invalid key", "anthropic", kind=ErrorKind.AUTH)
    b = await make_adapter(B)
    router = ProviderRouter([a, b], preferred=A)

    result = await router.configure_provider(A, "sk-ant-bad")

    assert result["success"] is False
    assert "invalid key" in result["message"]
    assert a.initialized is False
    assert a.credential == "fake-credential"
    assert router.preferred == B


@pytest.mark.asyncio
async def test_configure_unknown_provider(make_adapter):
    router = ProviderRouter([await make_adapter(A)])

    result = await router.configure_provider("gemini", "key")

    assert result == {"success": False, "message": "Unknown provider: gemini"}


@pytest.mark.asyncio
async def test_set_preferred_errors(make_adapter):
    a = await make_adapter(A)
    b = await make_adapter(B, initialize=False)
    router = ProviderRouter([a, b])

    with pytest.raises(InvalidProvider):
        router.set_preferred("gemini")
    with pytest.raises(NotConfigured):
        router.set_preferred(B)

    assert router.set_preferred(A) is True


@pytest.mark.asyncio
async def test_get_status_and_test_providers(make_adapter):
    a = await make_adapter(A)
    b = await make_adapter(B, initialize=False)
    router = ProviderRouter([a, b])
    await router.initialize()

    status = router.get_status()
    probes = await router.test_providers()

    assert status["preferredProvider"] == "anthropic"
    assert status["configuredProviders"] == ["anthropic", "openrouter"]
    assert status["totalProviders"] == 2
    assert probes["anthropic"]["success"] is True


@pytest.mark.asyncio
async def test_list_models_for_all_providers(make_adapter):
    router = ProviderRouter([await make_adapter(A), await make_adapter(B)])

    listings = await router.list_models()
    single = await router.list_models("openrouter")

    assert set(listings) == {"anthropic", "openrouter"}
    assert single.ids == ["openrouter-default"]


@pytest.mark.asyncio
async def test_register_duplicate_rejected(make_adapter):
    router = ProviderRouter([await make_adapter(A)])

    with pytest.raises(ValueError):
        router.register(await make_adapter(A))


def test_create_default_router_registers_all_providers():
    settings = Settings(_env_file=None, preferred_provider="ollama", enable_fallback=False)
    router = create_default_router(settings)

    assert [adapter.provider_type for adapter in router.adapters] == [A, B, C]
    assert router.preferred == C
    assert router.fallback_enabled is False


def test_create_default_router_unknown_preferred():
    settings = Settings(_env_file=None, preferred_provider="gemini")
    router = create_default_router(settings)

    assert router.preferred == A
