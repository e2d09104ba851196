"""pymxbai - sync local files into Mixedbread stores."""

from .api import MxbaiClient
from .exceptions import (
    MetadataError,
    MxbaiAPIError,
    MxbaiAuthenticationError,
    MxbaiConfigError,
    MxbaiError,
    MxbaiFileNotFoundError,
    MxbaiInvalidResponseError,
    MxbaiNetworkError,
    MxbaiNotFoundError,
    MxbaiPermissionError,
    MxbaiRateLimitError,
    MxbaiUploadError,
    RemoteStateError,
    RevisionUnavailableError,
    StoreNotFoundError,
    SyncError,
    SyncSetupError,
)

__all__ = [
    "MxbaiClient",
    "MxbaiError",
    "MxbaiAPIError",
    "MxbaiAuthenticationError",
    "MxbaiConfigError",
    "MxbaiFileNotFoundError",
    "MxbaiInvalidResponseError",
    "MxbaiNetworkError",
    "MxbaiNotFoundError",
    "MxbaiPermissionError",
    "MxbaiRateLimitError",
    "MxbaiUploadError",
    "SyncError",
    "SyncSetupError",
    "StoreNotFoundError",
    "RemoteStateError",
    "RevisionUnavailableError",
    "MetadataError",
]
