# src/s3_publish/exceptions.py
"""Custom exceptions for the s3-publish application."""


class PublishError(Exception):
    """Base exception for all application-specific errors."""

    pass


class ConfigurationError(PublishError):
    """Raised for missing or invalid configuration values."""

    pass


class UnsupportedContentError(PublishError):
    """Raised when a file carries streamed instead of buffered contents."""

    pass


class ManifestLoadError(PublishError):
    """Raised when a persisted manifest cannot be read or parsed."""

    pass


class UploadError(PublishError):
    """Raised when a single object upload fails."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"Upload of '{key}' failed: {message}")
        self.key: str = key


class CleanupError(PublishError):
    """Raised when deleting stale remote objects fails."""

    pass
