"""Options controlling sync operations."""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from ..models import AssetStatus, AssetTypes
from ..utils import (
    DEFAULT_CONCURRENT_LIMIT,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_RETRY_FACTOR,
    DEFAULT_RETRY_MAX_ATTEMPTS,
    DEFAULT_RETRY_MAX_TIMEOUT,
    DEFAULT_RETRY_MIN_TIMEOUT,
)


@dataclass
class SyncOptions:
    """Options for listing, pull, push, delete and compare operations.

    Examples:
        >>> opts = SyncOptions(asset_types=AssetTypes.CONTENT, filter_ready=True)
        >>> opts.categories()
        [<AssetTypes.CONTENT: 'content'>]
        >>> opts.states()
        [<AssetStatus.READY: 'ready'>]
    """

    asset_types: AssetTypes = AssetTypes.BOTH
    """Restrict the operation to web assets, content assets, or both"""

    filter_ready: bool = False
    """Only process ready content items"""

    filter_draft: bool = False
    """Only process draft content items"""

    filter_path: Optional[str] = None
    """Only process items whose path matches this prefix or wildcard"""

    offset: int = 0
    """Offset of the first search result"""

    limit: int = DEFAULT_PAGE_LIMIT
    """Page size for listing requests"""

    cursor: Optional[str] = None
    """Continuation cursor of the next page (set while listing)"""

    concurrent_limit: int = DEFAULT_CONCURRENT_LIMIT
    """Maximum number of transfers running at the same time"""

    retry_max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS
    """Total number of attempts for a retryable push or delete"""

    retry_min_timeout: float = DEFAULT_RETRY_MIN_TIMEOUT
    """Delay before the first retry in seconds"""

    retry_max_timeout: float = DEFAULT_RETRY_MAX_TIMEOUT
    """Upper bound for the retry delay in seconds"""

    retry_factor: float = DEFAULT_RETRY_FACTOR
    """Exponential factor applied to the delay for every attempt"""

    retry_randomize: bool = False
    """Multiply each delay by a random factor between 1 and 2"""

    retry_status_codes: list[int] = field(default_factory=list)
    """Additional HTTP status codes for which a push is retried"""

    disable_push_pull_resources: bool = False
    """Do not sync resources as part of bulk item operations"""

    no_virtual_folder: bool = False
    """Store assets directly in the working directory"""

    working_dir: Optional[Path] = None
    """Local working directory (defaults to the current directory)"""

    deletions: bool = False
    """Report local-only resources and remote deletions"""

    def copy(self, **changes) -> "SyncOptions":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def categories(self) -> list[AssetTypes]:
        """Asset categories processed by an operation with these options."""
        if self.asset_types == AssetTypes.WEB:
            return [AssetTypes.WEB]
        if self.asset_types == AssetTypes.CONTENT:
            return [AssetTypes.CONTENT]
        return [AssetTypes.WEB, AssetTypes.CONTENT]

    def states(self) -> list[AssetStatus]:
        """Lifecycle states processed by an operation with these options."""
        if self.filter_ready and not self.filter_draft:
            return [AssetStatus.READY]
        if self.filter_draft and not self.filter_ready:
            return [AssetStatus.DRAFT]
        return [AssetStatus.DRAFT, AssetStatus.READY]

    @property
    def is_single_category(self) -> bool:
        """True if the operation is restricted to one asset category."""
        return self.asset_types != AssetTypes.BOTH

    @property
    def resources_enabled(self) -> bool:
        """True if bulk operations should also sync resources."""
        return not self.disable_push_pull_resources and not self.is_single_category

    def accepts_status(self, status: AssetStatus) -> bool:
        """Check a lifecycle state against the draft/ready filters."""
        return status in self.states()
