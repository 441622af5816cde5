"""Utility functions for content sync."""

import fnmatch
import logging
import re
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# =============================================================================
# Constants for sync operations
# =============================================================================

# Page size for listing requests
DEFAULT_PAGE_LIMIT: int = 100

# Number of transfers running at the same time within one page
DEFAULT_CONCURRENT_LIMIT: int = 5

# Retry configuration for transient errors (seconds)
DEFAULT_RETRY_MAX_ATTEMPTS: int = 3
DEFAULT_RETRY_MIN_TIMEOUT: float = 1.0
DEFAULT_RETRY_MAX_TIMEOUT: float = 5.0
DEFAULT_RETRY_FACTOR: float = 2.0

# Chunk size for streamed transfers
DEFAULT_CHUNK_SIZE: int = 64 * 1024


# =============================================================================
# Path validation utilities
# =============================================================================

# Characters Windows does not allow in file names (besides path separators)
_WINDOWS_INVALID_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')

# Absolute URL scheme at the start of a path, with or without a leading slash
_URL_PREFIX = re.compile(r"^/?(?:https?:|ftp:|file:|[a-z][a-z0-9+.\-]*://)", re.I)


def is_windows() -> bool:
    """Check whether we are running on Windows."""
    return sys.platform.startswith("win")


def is_valid_path(path: Optional[str], windows: Optional[bool] = None) -> bool:
    """Check whether a path can be used for a local file.

    Args:
        path: Item path to check
        windows: Apply the Windows rules (defaults to the current platform)

    Returns:
        False for empty paths, paths with characters the OS does not allow,
        and paths that begin with an absolute URL

    Examples:
        >>> is_valid_path("/css/main.css")
        True
        >>> is_valid_path("")
        False
        >>> is_valid_path("https://example.com/main.css")
        False
        >>> is_valid_path("/a<b>.css", windows=True)
        False
    """
    if not path or not path.strip("/"):
        return False
    if "\x00" in path:
        return False
    if _URL_PREFIX.match(path):
        return False
    if windows is None:
        windows = is_windows()
    if windows and _WINDOWS_INVALID_CHARS.search(path):
        return False
    return True


def normalize_path(path: str) -> str:
    """Return a path with forward slashes and a single leading slash.

    Examples:
        >>> normalize_path("css/main.css")
        '/css/main.css'
        >>> normalize_path("\\\\css\\\\main.css")
        '/css/main.css'
    """
    path = path.replace("\\", "/")
    return "/" + path.lstrip("/")


def matches_path_filter(path: str, pattern: str) -> bool:
    """Check a path against a prefix or wildcard filter.

    Examples:
        >>> matches_path_filter("/css/main.css", "/css")
        True
        >>> matches_path_filter("/css/main.css", "css/*.css")
        True
        >>> matches_path_filter("/js/app.js", "/css")
        False
    """
    path = normalize_path(path)
    pattern = normalize_path(pattern)
    if any(c in pattern for c in "*?["):
        return fnmatch.fnmatchcase(path, pattern)
    return path.startswith(pattern)


# =============================================================================
# Timestamp utilities
# =============================================================================


def now_iso() -> str:
    """Return the current UTC time as an ISO timestamp."""
    return datetime.now(timezone.utc).isoformat()


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp into an aware UTC datetime.

    Args:
        timestamp_str: ISO format timestamp string (e.g., "2025-01-15T10:30:00.000Z")

    Returns:
        Timezone-aware datetime or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        dt = datetime.fromisoformat(timestamp_str)
    except (ValueError, AttributeError, TypeError):
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def get_oldest_timestamp(timestamps: list[Optional[str]]) -> Optional[str]:
    """Return the earliest of the given ISO timestamps.

    Returns None if any timestamp is missing or unparseable, so that
    callers fall back to a full listing instead of missing changes.

    Examples:
        >>> get_oldest_timestamp(["2024-01-02T00:00:00+00:00", "2024-01-01T00:00:00+00:00"])
        '2024-01-01T00:00:00+00:00'
        >>> get_oldest_timestamp(["2024-01-02T00:00:00+00:00", None]) is None
        True
    """
    oldest: Optional[str] = None
    oldest_dt: Optional[datetime] = None
    if not timestamps:
        return None
    for timestamp in timestamps:
        dt = parse_iso_timestamp(timestamp)
        if dt is None:
            return None
        if oldest_dt is None or dt < oldest_dt:
            oldest, oldest_dt = timestamp, dt
    return oldest


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Bounded concurrency
# =============================================================================


def run_bounded(
    tasks: list[Callable[[], T]], max_workers: int
) -> list[tuple[bool, object]]:
    """Run tasks with bounded concurrency and collect their outcomes.

    The outcome list has the same order as ``tasks``, independent of
    completion order.

    Args:
        tasks: Zero-argument callables
        max_workers: Maximum number of tasks running at the same time

    Returns:
        List of (succeeded, value_or_exception) tuples
    """
    if not tasks:
        return []

    outcomes: list[tuple[bool, object]] = []
    if max_workers <= 1 or len(tasks) == 1:
        for task in tasks:
            try:
                outcomes.append((True, task()))
            except Exception as e:
                outcomes.append((False, e))
        return outcomes

    with ThreadPoolExecutor(max_workers=min(max_workers, len(tasks))) as executor:
        futures = [executor.submit(task) for task in tasks]
        for future in futures:
            try:
                outcomes.append((True, future.result()))
            except Exception as e:
                outcomes.append((False, e))
    return outcomes
