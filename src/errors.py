"""Error taxonomy shared by the provider clients and the dispatcher."""
from __future__ import annotations

from typing import Optional


class AgentError(Exception):
    """Base class for all agentic_workflow errors."""


class ConfigurationError(AgentError):
    """Raised when configuration values are missing or invalid."""


class RateLimitedError(AgentError):
    """Transient provider throttling (HTTP 429 / quota)."""


class ExhaustedError(AgentError):
    """Every model in the generative-text fallback chain was rate limited."""

    def __init__(self, models: list[str]):
        self.models = list(models)
        super().__init__(
            f"All models exhausted their quota ({', '.join(self.models)}). Please wait or upgrade your plan."
        )


class ProviderError(AgentError):
    """A remote provider call failed for a reason other than rate limiting."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class CredentialInvalidError(ProviderError):
    """The source-control provider rejected the stored bearer token."""

    def __init__(self, message: str = "GitHub token expired. Please reconnect your GitHub account."):
        super().__init__("github", message, status_code=401)


class NotAuthorizedError(AgentError):
    """No credential record exists for the identity."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"GitHub not connected for '{identity}'. Please connect your GitHub account first.")


class MissingParameterError(AgentError):
    def __init__(self, parameter: str, message: Optional[str] = None):
        self.parameter = parameter
        super().__init__(message or f"Missing required parameter: {parameter}")


class OAuthExchangeError(AgentError):
    """The OAuth code exchange returned an error payload."""
