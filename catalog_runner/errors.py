"""Exception types raised by the catalog runner."""

from __future__ import annotations

from typing import Optional

_SNIPPET_LENGTH = 300


def snippet(text: Optional[str], length: int = _SNIPPET_LENGTH) -> str:
    """Return ``text`` truncated for inclusion in error messages."""

    if not text:
        return ""
    text = text.strip()
    if len(text) <= length:
        return text
    return f"{text[:length]}..."


class CatalogRunnerError(RuntimeError):
    """Base class for every error raised by the package."""


class ConfigError(CatalogRunnerError):
    """Raised when required configuration is missing."""


class AuthError(CatalogRunnerError):
    """Raised when the login call fails or returns no usable token."""


class RetryableError(CatalogRunnerError):
    """Errors that a retry policy is allowed to retry."""


class NetworkError(RetryableError):
    """Raised when a HTTP request fails at the transport level."""


class FetchError(RetryableError):
    """Raised when an endpoint answers with an unexpected HTTP status."""

    def __init__(self, endpoint: str, status: int, body: Optional[str] = None) -> None:
        self.endpoint = endpoint
        self.status = status
        super().__init__(f"{endpoint} HTTP {status}: {snippet(body)}")


class DataFormatError(RetryableError):
    """Raised when a response body does not have the expected structure."""

    def __init__(self, endpoint: str, body: Optional[str] = None, reason: str = "unexpected response") -> None:
        self.endpoint = endpoint
        self.body_snippet = snippet(body)
        super().__init__(f"{endpoint}: {reason}: {self.body_snippet}")


class UnauthorizedError(AuthError):
    """Raised when a request is still answered with HTTP 401 after a token refresh."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"{endpoint} rejected a freshly issued token (HTTP 401)")


class WriteError(CatalogRunnerError):
    """Raised when an output directory or file cannot be written."""


class UploadError(CatalogRunnerError):
    """Raised when a file cannot be uploaded to cloud storage."""


class CredentialsError(UploadError):
    """Raised when the storage credentials are missing or malformed."""
