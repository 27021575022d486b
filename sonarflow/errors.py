"""Exception hierarchy shared by every sonarflow module.

    SonarflowError
    ├── ConfigurationError      bad or missing settings, bad PR link (fatal)
    ├── GitError                git could not be queried (fatal)
    ├── TransientNetworkError   PR detection failed (swallowed by the fetcher)
    └── SonarClientError        the issues query itself failed (fatal)
        ├── NetworkError
        ├── UnexpectedContentType
        └── HttpError
            ├── AuthenticationError
            └── NotFoundError
"""


class SonarflowError(Exception):
    """Base exception for all sonarflow errors."""


class ConfigurationError(SonarflowError):
    """Raised when required settings are missing or invalid."""


class GitError(SonarflowError):
    """Raised when a git query fails."""


class TransientNetworkError(SonarflowError):
    """Raised when a provider API is unreachable or answers badly during PR detection."""


# ---------------------------------------------------------------------------
# Issues fetch failures
# ---------------------------------------------------------------------------

class SonarClientError(SonarflowError):
    """Base exception for failures of the issues query."""


class NetworkError(SonarClientError):
    """Raised on connection timeout or unreachable server."""


class UnexpectedContentType(SonarClientError):
    """Raised when the service answers with something other than JSON."""

    def __init__(self, content_type: str | None, status: int, body_prefix: str) -> None:
        self.content_type = content_type
        self.status = status
        self.body_prefix = body_prefix
        super().__init__(
            f"Expected JSON but got '{content_type}' (status {status}). "
            f"Check authentication and API endpoint. Response preview: {body_prefix}"
        )


class HttpError(SonarClientError):
    """Raised on a non-2xx response."""

    def __init__(self, status: int, body_prefix: str, message: str | None = None) -> None:
        self.status = status
        self.body_prefix = body_prefix
        super().__init__(message or f"HTTP error {status}: {body_prefix}")


class AuthenticationError(HttpError):
    """Raised on HTTP 401/403: invalid, expired or insufficient token."""


class NotFoundError(HttpError):
    """Raised on HTTP 404: project, branch or pull request not found."""
