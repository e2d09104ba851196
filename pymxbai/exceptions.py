"""Exceptions raised by pymxbai."""

from typing import Optional


class MxbaiError(Exception):
    """Base exception for all pymxbai errors."""


class MxbaiAPIError(MxbaiError):
    """Raised when a request to the Mixedbread API fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MxbaiAuthenticationError(MxbaiAPIError):
    """Raised when the API key is invalid or missing permissions."""


class MxbaiPermissionError(MxbaiAPIError):
    """Raised when access to a resource is forbidden."""


class MxbaiNotFoundError(MxbaiAPIError):
    """Raised when a store or file does not exist."""


class MxbaiRateLimitError(MxbaiAPIError):
    """Raised when the API rate limit is exceeded."""


class MxbaiNetworkError(MxbaiAPIError):
    """Raised on transport-level failures (DNS, connection, timeouts)."""


class MxbaiInvalidResponseError(MxbaiAPIError):
    """Raised when the API returns a body that is not valid JSON."""


class MxbaiUploadError(MxbaiAPIError):
    """Raised when a file upload cannot be completed."""


class MxbaiConfigError(MxbaiError):
    """Raised when configuration is missing or invalid."""


class MxbaiFileNotFoundError(MxbaiError):
    """Raised when a local file does not exist."""

    def __init__(self, file_path: str):
        super().__init__(f"File not found: {file_path}")
        self.file_path = file_path


class SyncError(MxbaiError):
    """Base exception for sync engine failures."""


class SyncSetupError(SyncError):
    """Raised when a sync cannot start; no remote state has been mutated."""


class StoreNotFoundError(SyncSetupError):
    """Raised when a store identifier cannot be resolved."""

    def __init__(self, identifier: str, candidates: Optional[list[str]] = None):
        self.identifier = identifier
        self.candidates = candidates or []
        if self.candidates:
            names = ", ".join(self.candidates)
            message = f'Store "{identifier}" is ambiguous. Did you mean one of: {names}'
        else:
            message = f'Store "{identifier}" not found'
        super().__init__(message)


class RemoteStateError(SyncSetupError):
    """Raised when the files of a store cannot be listed."""


class RevisionUnavailableError(SyncSetupError):
    """Raised when revision-based detection is requested outside a repository."""


class MetadataError(SyncError):
    """Raised when user metadata input is malformed."""
