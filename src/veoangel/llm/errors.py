"""
Provider error taxonomy.

Adapters translate transport and SDK exceptions into these types so the
router can decide between failover and propagation.
"""

from enum import Enum


class ErrorKind(Enum):
    TRANSIENT = "transient"
    AUTH = "auth"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """Base class for all provider-layer failures."""

    code = "provider_error"

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.message = message
        self.provider = provider


class ConfigError(ProviderError):
    """Missing or bad credential, unreachable endpoint. Reconfigure to fix."""

    code = "config_error"


class ProviderConnectionError(ProviderError):
    """Liveness probe failed."""

    code = "connection_error"


class BackendError(ProviderError):
    """Runtime failure of a backend call."""

    code = "backend_error"

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status_code: int | None = None,
    ):
        super().__init__(message, provider)
        self.kind = kind
        self.status_code = status_code


class ModelNotAvailable(ProviderError):
    """Requested model is not present in the backend catalog."""

    code = "model_not_available"

    def __init__(self, model: str, provider: str | None = None):
        super().__init__(
            f"Model '{model}' is not available. Please pull or select a different model.",
            provider,
        )
        self.model = model


class FetchError(ProviderError):
    """Model catalog could not be fetched."""

    code = "fetch_error"


class NoProvidersConfigured(ProviderError):
    code = "no_providers_configured"

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "No AI providers are configured. Please configure at least one provider."
        )


class InvalidProvider(ProviderError):
    code = "invalid_provider"

    def __init__(self, provider: str):
        super().__init__(f"Unknown provider: {provider}", provider)


class NotConfigured(ProviderError):
    code = "not_configured"

    def __init__(self, provider: str):
        super().__init__(f"Provider {provider} is not configured", provider)


class ProviderUnavailable(ProviderError):
    code = "provider_unavailable"

    def __init__(self, provider: str):
        super().__init__(f"Provider {provider} is not available", provider)


class FallbackFailed(ProviderError):
    """Both the target and its single fallback failed."""

    code = "all_providers_failed"

    def __init__(
        self,
        primary: str,
        primary_error: Exception,
        fallback: str,
        fallback_error: Exception,
    ):
        super().__init__(
            f"Primary provider {primary} failed: {primary_error}. "
            f"Fallback provider {fallback} failed: {fallback_error}",
            primary,
        )
        self.primary_error = primary_error
        self.fallback = fallback
        self.fallback_error = fallback_error


def classify_status(status_code: int) -> ErrorKind:
    """Error kind for an HTTP status returned by a backend."""
    if status_code in (401, 403):
        return ErrorKind.AUTH
    if status_code in (408, 409, 429) or status_code >= 500:
        return ErrorKind.TRANSIENT
    return ErrorKind.UNKNOWN
