"""Exceptions raised by the content sync engine and its collaborators."""

from typing import Any, Optional


class ContentSyncError(Exception):
    """Base exception for all content sync errors."""

    pass


class ContentSyncConfigError(ContentSyncError):
    """Raised when the API key or URL is missing or the config is unreadable."""

    pass


class ValidationError(ContentSyncError):
    """Raised when a path or argument is rejected before any I/O happens."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class NotFoundError(ContentSyncError):
    """Raised when a requested item cannot be found remotely."""

    pass


class IntegrityError(ContentSyncError):
    """Raised when a transferred file does not match the server digest."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        local_digest: Optional[str] = None,
        server_digest: Optional[str] = None,
    ):
        super().__init__(message)
        self.path = path
        self.local_digest = local_digest
        self.server_digest = server_digest


class TransportError(ContentSyncError):
    """Raised when a request to the content hub fails.

    Attributes:
        status_code: HTTP status code, or None for network-level failures
        body: Parsed response body (dict) if one was returned
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @property
    def vendor_codes(self) -> list[int]:
        """Vendor error codes found in the response body."""
        codes: list[int] = []
        if not isinstance(self.body, dict):
            return codes
        errors = self.body.get("errors")
        if isinstance(errors, dict):
            errors = [errors]
        if not isinstance(errors, list):
            return codes
        for error in errors:
            if not isinstance(error, dict):
                continue
            code = error.get("code")
            try:
                codes.append(int(code))
            except (TypeError, ValueError):
                continue
        return codes


class TransientTransportError(TransportError):
    """Raised for failures that are expected to succeed on a later attempt."""

    pass


class PermanentTransportError(TransportError):
    """Raised for failures that will not go away by retrying."""

    pass


class LocalIOError(ContentSyncError):
    """Raised when reading or writing the local working directory fails."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ManifestError(LocalIOError):
    """Raised when a manifest file is missing or malformed."""

    pass
