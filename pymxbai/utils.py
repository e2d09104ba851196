"""Utility functions for pymxbai."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants for file operations
# =============================================================================

# Timeout for a single file upload (10 minutes)
UPLOAD_TIMEOUT: float = 10 * 60.0

# Page size when listing store files
DEFAULT_PAGE_SIZE: int = 100

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Bounds for the --parallel option
MIN_PARALLEL: int = 1
MAX_PARALLEL: int = 200


# =============================================================================
# Timestamp utilities
# =============================================================================


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO 8601 string with a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp into an aware UTC datetime.

    Args:
        timestamp_str: ISO format timestamp (e.g., "2025-01-15T10:30:00.000Z")

    Returns:
        Timezone-aware datetime, or None if parsing fails
    """
    if not timestamp_str or not isinstance(timestamp_str, str):
        return None

    try:
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# Formatting utilities
# =============================================================================


def format_size(size_bytes: Optional[int]) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes is None:
        return "0 B"
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def format_count(count: int, noun: str) -> str:
    """Format a count with a naively pluralized noun.

    Examples:
        >>> format_count(1, "file")
        '1 file'
        >>> format_count(3, "file")
        '3 files'
    """
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
