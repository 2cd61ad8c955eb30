"""Custom exception types for the GitHub metrics loader."""


class MetricsLoaderError(Exception):
    """Base exception for all recoverable metrics loader errors."""


class ConfigurationError(MetricsLoaderError):
    """Raised when runtime configuration or the repository list is missing or invalid."""


class AuthenticationError(ConfigurationError):
    """Raised when the GitHub access token is not configured."""


class FetchError(MetricsLoaderError):
    """Raised when a GitHub API request fails or returns an unexpected response."""


class MalformedRecordError(MetricsLoaderError):
    """Raised when a daily metric record has an invalid date or a negative count."""


class StoreError(MetricsLoaderError):
    """Base exception for object storage failures."""


class StoreReadError(StoreError):
    """Raised when a persisted series or auxiliary object cannot be read."""


class SeriesNotFoundError(StoreReadError):
    """Raised when no persisted series exists for a repository."""


class StoreWriteError(StoreError):
    """Raised when a series could not be written; the previous object stays in place."""
