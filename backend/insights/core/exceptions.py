"""
Exception types shared across the analysis pipeline.

Provider failures come in two flavours that callers treat very differently:

- ProviderConfigurationError: the provider cannot be used at all (missing
  API key, no endpoint configured). This is a deployment problem and must
  reach the caller of the request path that needed the provider.
- ProviderResponseError: the provider was reachable but the call failed or
  returned something unusable. These are transient and are absorbed locally
  (tagged per file, or degraded to empty output).
"""


class InsightsError(Exception):
    """Base class for errors raised by the insights package."""
    pass


class ProviderConfigurationError(InsightsError):
    """Raised when an inference provider is missing required configuration."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderResponseError(InsightsError):
    """Raised when an inference provider returns a failed or malformed response."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")
