"""site_audit.errors: exception hierarchy shared by the crawler, analyzers and CLI."""

from __future__ import annotations

from typing import Iterable, Optional


class AuditError(Exception):
    """Base class for every error raised by SiteAudit."""


class FetchError(AuditError):
    """A page could not be loaded (navigation error, timeout or non-ok status)."""

    def __init__(self, url: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class ConfigurationError(AuditError):
    """Fatal configuration/initialization problem; the run must not start."""

    def __init__(self, message: str, errors: Iterable[str] = ()) -> None:
        self.errors = list(errors)
        if self.errors:
            message = f"{message}: {', '.join(self.errors)}"
        super().__init__(message)


class AIProviderError(AuditError):
    """The AI backend rejected or failed a request."""


class AIAuthenticationError(AIProviderError):
    """Credentials were refused by the hosted API."""


class AIRateLimitError(AIProviderError):
    """The hosted API throttled the request."""


class AIModelNotFoundError(AIProviderError):
    """The configured model does not exist or is not accessible."""


class AITimeoutError(AIProviderError):
    """The provider did not answer in time."""


__all__ = [
    "AuditError",
    "FetchError",
    "ConfigurationError",
    "AIProviderError",
    "AIAuthenticationError",
    "AIRateLimitError",
    "AIModelNotFoundError",
    "AITimeoutError",
]
