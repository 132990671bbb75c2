"""Error taxonomy shared by the providers, the credential resolver and the jobs.

The orchestrator classifies failures by type rather than by message:

  CredentialError  — the repository's token cannot be resolved; fatal to that repo's cycle.
  ProviderError    — any provider call failed. Fatal when raised by the open-PR list,
                     non-fatal (logged, stale data kept) when raised by checks/reviews.

Store errors are not wrapped here: they propagate unchanged so a
failed write aborts the repository being synced without masking its cause.
"""

from __future__ import annotations

from datetime import datetime


class PrSignalError(Exception):
    """Base class for all prsignal errors."""


class ConfigError(PrSignalError):
    """Invalid or incomplete configuration."""


class CredentialError(PrSignalError):
    """A stored access token could not be decrypted or is missing."""


class ProviderError(PrSignalError):
    """A call to a git hosting provider failed."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.provider = provider
        self.status_code = status_code
        detail = f"{provider}: {message}"
        if status_code is not None:
            detail += f" (status: {status_code})"
        super().__init__(detail)


class AuthenticationFailed(ProviderError):
    pass


class PermissionDenied(ProviderError):
    pass


class NotFound(ProviderError):
    pass


class RateLimitExceeded(ProviderError):
    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        reset_at: datetime | None = None,
    ):
        super().__init__(provider, message, status_code)
        self.reset_at = reset_at


class ProviderTimeout(ProviderError):
    pass


class ProviderUnavailable(ProviderError):
    """Network-level failure: DNS, refused connection, TLS."""


class InvalidResponse(ProviderError):
    """The provider answered but the payload could not be understood."""


def error_for_status(provider: str, status_code: int, message: str) -> ProviderError:
    """Map an HTTP status code to the matching ProviderError subclass."""
    if status_code == 401:
        return AuthenticationFailed(provider, message, status_code)
    if status_code == 403:
        return PermissionDenied(provider, message, status_code)
    if status_code == 404:
        return NotFound(provider, message, status_code)
    if status_code == 429:
        return RateLimitExceeded(provider, message, status_code)
    return ProviderError(provider, message, status_code)
