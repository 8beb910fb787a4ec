"""
Service Errors

Failure taxonomy shared by provider adapters and fallback chains.
Individual ProviderErrors are absorbed inside a chain; only
ChainExhaustedError reaches the coordinating services.
"""

from typing import Optional


class ServiceError(Exception):
    """Base exception for service errors."""

    def __init__(self, service_name: str, message: str, details: Optional[dict] = None):
        self.service_name = service_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{service_name}] {message}")


class ProviderError(ServiceError):
    """A single provider call failed."""

    @property
    def provider(self) -> str:
        return self.service_name

    @property
    def status(self) -> Optional[int]:
        return self.details.get("status")


class NetworkError(ProviderError):
    """Timeout or connection failure."""
    pass


class RegionRestrictedError(ProviderError):
    """Provider refuses to serve this region (HTTP 451). A regional mirror may."""
    pass


class UnsupportedParameterError(ProviderError):
    """Provider rejected a request parameter, e.g. an unknown candle interval."""
    pass


class DecodeError(ProviderError):
    """Response body does not match the expected schema."""
    pass


class ServerError(ProviderError):
    """Any other 4xx/5xx response."""
    pass


class RateLimitError(ServerError):
    """Rate limit exceeded (HTTP 429)."""
    pass


class UnsupportedSymbolError(ProviderError):
    """Symbol has no mapping for this provider."""
    pass


class ChainExhaustedError(ServiceError):
    """Every provider of a fallback chain failed."""

    def __init__(self, chain_name: str, failures: list[ProviderError]):
        self.failures = list(failures)
        summary = "; ".join(str(f) for f in self.failures) or "no providers configured"
        super().__init__(
            chain_name,
            f"all providers failed: {summary}",
            details={"providers": [f.provider for f in self.failures]},
        )
