"""Retry and deletion policies for push and delete operations."""

import logging
import random
import time
from typing import Any, Callable, TypeVar

from ..exceptions import TransportError
from ..models import AssetTypes, Item, is_content_path
from ..utils import is_valid_path
from .options import SyncOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Status codes for which a push is always retried
RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Vendor code returned with a 403 when the tenant tier does not allow the
# operation. Retrying cannot help.
TENANT_TIER_VENDOR_CODE = 3193

# Vendor codes returned with a 400 when a delete collides with a lock or an
# operation that is still in progress
DELETE_RETRY_VENDOR_CODES = frozenset({3008, 3009, 6000})


def filter_retry_push(error: Exception, options: SyncOptions) -> bool:
    """Decide whether a failed push should be attempted again.

    Args:
        error: Error raised by the push attempt
        options: Options providing additional retryable status codes

    Returns:
        True if the push should be retried

    Examples:
        >>> opts = SyncOptions()
        >>> filter_retry_push(TransportError("busy", status_code=503), opts)
        True
        >>> filter_retry_push(TransportError("teapot", status_code=418), opts)
        False
        >>> opts = SyncOptions(retry_status_codes=[418])
        >>> filter_retry_push(TransportError("teapot", status_code=418), opts)
        True
    """
    if not isinstance(error, TransportError):
        return False

    status_code = error.status_code
    if status_code is None:
        # Network-level failure, the request never got a response
        return True
    if status_code == 403:
        return TENANT_TIER_VENDOR_CODE not in error.vendor_codes
    if status_code in RETRY_STATUS_CODES:
        return True
    return status_code in (options.retry_status_codes or [])


def filter_retry_delete(error: Exception, options: SyncOptions) -> bool:
    """Decide whether a failed delete should be attempted again.

    Only a 400 response carrying a lock or in-progress vendor code is
    retried.
    """
    if not isinstance(error, TransportError):
        return False
    if error.status_code != 400:
        return False
    return any(code in DELETE_RETRY_VENDOR_CODES for code in error.vendor_codes)


def can_delete_item(item: Any, options: SyncOptions) -> bool:
    """Check whether an item may be deleted with the given options.

    Args:
        item: Item or item metadata dict
        options: Options providing the asset type restriction

    Returns:
        False if the item has no id or no valid path, or if its category
        conflicts with the asset type restriction
    """
    if isinstance(item, Item):
        item_id, path = item.id, item.path
    elif isinstance(item, dict):
        item_id, path = item.get("id"), item.get("path")
    else:
        return False

    if not item_id or not isinstance(path, str) or not is_valid_path(path):
        return False

    is_content = is_content_path(path)
    if options.asset_types == AssetTypes.WEB and is_content:
        return False
    if options.asset_types == AssetTypes.CONTENT and not is_content:
        return False
    return True


def compute_retry_delay(attempt: int, options: SyncOptions) -> float:
    """Calculate the delay before the next attempt.

    Args:
        attempt: Number of the attempt that failed (0-based)
        options: Options providing timeouts, factor and randomization

    Returns:
        Delay in seconds
    """
    delay = options.retry_min_timeout * (options.retry_factor**attempt)
    if options.retry_randomize:
        delay *= random.uniform(1, 2)
    return max(0.0, min(delay, options.retry_max_timeout))


def retry_call(
    operation: Callable[[int], T],
    should_retry: Callable[[Exception, SyncOptions], bool],
    options: SyncOptions,
    description: str = "operation",
) -> T:
    """Run an operation, retrying it while the error is retryable.

    The operation receives the attempt number and must acquire fresh
    streams on every call. The last error is raised unchanged.

    Args:
        operation: Callable performing one attempt
        should_retry: Policy deciding whether an error is retryable
        options: Options providing attempts and backoff settings
        description: Used in log messages

    Returns:
        Result of the first successful attempt
    """
    attempts = max(1, options.retry_max_attempts)
    attempt = 0
    while True:
        try:
            return operation(attempt)
        except Exception as e:
            if attempt + 1 >= attempts or not should_retry(e, options):
                raise
            delay = compute_retry_delay(attempt, options)
            logger.debug(
                f"Retrying {description} in {delay:.2f}s "
                f"(attempt {attempt + 1} of {attempts} failed: {e})"
            )
            time.sleep(delay)
            attempt += 1
