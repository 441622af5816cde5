"""Paginated listing of remote and local items, and deletion detection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

from ..context import SyncContext
from ..hashes import ChangeFlag, HashLedger
from ..local_store import LocalAssetStore, parse_asset_path
from ..models import AssetStatus, AssetTypes, Item, is_content_path
from ..utils import is_valid_path, matches_path_filter, normalize_path
from .options import SyncOptions
from .timestamps import PullTimestamps

if TYPE_CHECKING:
    from ..api import ContentHubClient, SearchClient

logger = logging.getLogger(__name__)

PageFetcher = Callable[[SyncOptions], list[dict[str, Any]]]

# Characters with a meaning in search filter queries
_QUERY_SPECIAL = set('+-&|!(){}[]^"~:\\/ ')


def escape_query_value(value: str) -> str:
    """Escape a value for use in a search filter query.

    Wildcards are kept so that patterns still match.

    Examples:
        >>> escape_query_value("/dxdam/my file.jpg")
        '\\\\/dxdam\\\\/my\\\\ file.jpg'
    """
    return "".join(f"\\{c}" if c in _QUERY_SPECIAL else c for c in value)


def build_path_query(filter_path: str, options: SyncOptions) -> dict[str, Any]:
    """Build the search query selecting items below a path or matching a pattern."""
    pattern = normalize_path(filter_path)
    if not any(c in pattern for c in "*?"):
        pattern += "*"
    return {
        "q": "*:*",
        "fq": ["classification:asset", f"path:{escape_query_value(pattern)}"],
        "fl": "document",
        "rows": options.limit,
        "start": options.offset,
    }


def accepts_path(path: str, status: AssetStatus, options: SyncOptions) -> bool:
    """Check a path and lifecycle state against the category and draft/ready filters.

    The draft/ready filters only apply to content assets.
    """
    is_content = is_content_path(path)
    if options.asset_types == AssetTypes.WEB and is_content:
        return False
    if options.asset_types == AssetTypes.CONTENT and not is_content:
        return False
    if is_content and not options.accepts_status(status):
        return False
    return True


def iter_pages(
    fetch: PageFetcher, options: SyncOptions, stop_on_short_page: bool = False
) -> Iterator[list[dict[str, Any]]]:
    """Fetch pages until one arrives without a continuation cursor.

    Pages are fetched strictly one after another. The options are copied so
    the caller's cursor is never changed.

    Args:
        fetch: Fetches one page and stores the next cursor in the options
        options: Options providing the page size and the start cursor
        stop_on_short_page: Also stop after a page smaller than the limit

    Yields:
        The entries of each page
    """
    page_options = options.copy()
    while True:
        page = fetch(page_options)
        yield page
        if not page or not page_options.cursor:
            break
        if stop_on_short_page and len(page) < page_options.limit:
            break


class AssetLister:
    """Lists items on both sides and finds the ones deleted on either side."""

    def __init__(
        self,
        client: ContentHubClient,
        local_store: LocalAssetStore,
        ledger: HashLedger,
        search_client: Optional[SearchClient] = None,
    ):
        self.client = client
        self.local_store = local_store
        self.ledger = ledger
        self.search_client = search_client
        self.seen_remote: set[str] = set()
        self.seen_local: set[str] = set()

    def _accepts_item(self, item: Item, options: SyncOptions) -> bool:
        if not item.path or not is_valid_path(item.path):
            logger.debug(f"Skipping item {item.id} with invalid path {item.path!r}")
            return False
        if not accepts_path(item.path, item.status, options):
            return False
        if options.filter_path and not matches_path_filter(
            item.path, options.filter_path
        ):
            return False
        return True

    def _search_items(self, context: SyncContext, options: SyncOptions) -> list[Item]:
        if self.search_client is None:
            raise ValueError("A search client is required to filter by path")
        query = build_path_query(options.filter_path or "/", options)
        rows = query["rows"]
        items: list[Item] = []
        while True:
            documents = self.search_client.search_items(context, query)
            items.extend(Item.from_api_response(doc) for doc in documents)
            if len(documents) < rows:
                break
            query = dict(query, start=query["start"] + rows)
        return items

    def _collect(
        self,
        context: SyncContext,
        options: SyncOptions,
        pages: Iterator[list[dict[str, Any]]],
    ) -> list[Item]:
        items: list[Item] = []
        for page in pages:
            for data in page:
                item = Item.from_api_response(data)
                if self._accepts_item(item, options):
                    items.append(item)
                    self.seen_remote.add(self.local_store.get_asset_path(item))
        return items

    # -------------------------------------------------------------------------
    # Remote
    # -------------------------------------------------------------------------

    def list_remote_items(
        self, context: SyncContext, options: SyncOptions
    ) -> list[Item]:
        """List the remote items accepted by the options, in listing order.

        A path filter is answered by the search service instead of the
        item listing.
        """
        if options.filter_path and self.search_client is not None:
            items = [
                item
                for item in self._search_items(context, options)
                if self._accepts_item(item, options)
            ]
            for item in items:
                self.seen_remote.add(self.local_store.get_asset_path(item))
            return items

        return self._collect(
            context,
            options,
            iter_pages(lambda opts: self.client.get_items(context, opts), options),
        )

    def list_remote_item_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        """List the local asset paths of the remote items."""
        return [
            self.local_store.get_asset_path(item)
            for item in self.list_remote_items(context, options)
        ]

    def get_last_pull_timestamp(
        self, context: SyncContext, options: SyncOptions
    ) -> Optional[str]:
        base = self.local_store.get_dir(context, options)
        stored = self.ledger.get_last_pull_timestamp(base)
        return PullTimestamps.from_stored(stored).earliest(
            options.categories(), options.states()
        )

    def list_modified_remote_items(
        self,
        context: SyncContext,
        flags: list[ChangeFlag],
        options: SyncOptions,
    ) -> list[Item]:
        """List remote items that are new or modified since the last pull.

        Args:
            context: Sync context
            flags: NEW and/or MODIFIED (DELETED is handled by the names listing)
            options: Listing options

        Returns:
            Items whose revision differs from the ledger, or that are unknown
        """
        if options.filter_path and self.search_client is not None:
            candidates = self.list_remote_items(context, options)
        else:
            last_modified = self.get_last_pull_timestamp(context, options)
            logger.debug(f"Listing items modified since {last_modified}")
            candidates = self._collect(
                context,
                options,
                iter_pages(
                    lambda opts: self.client.get_modified_items(
                        context, opts, last_modified
                    ),
                    options,
                    stop_on_short_page=True,
                ),
            )

        base = self.local_store.get_dir(context, options)
        modified: list[Item] = []
        for item in candidates:
            if item.is_system:
                continue
            asset_path = self.local_store.get_asset_path(item)
            file_path = self.local_store.get_path(context, asset_path, options)
            if self.ledger.is_remote_modified(flags, item.to_dict(), base, file_path):
                modified.append(item)
        return modified

    def list_modified_remote_item_names(
        self,
        context: SyncContext,
        flags: list[ChangeFlag],
        options: SyncOptions,
    ) -> list[str]:
        names = [
            self.local_store.get_asset_path(item)
            for item in self.list_modified_remote_items(context, flags, options)
        ]
        if ChangeFlag.DELETED in flags:
            names.extend(self.list_remote_deleted_names(context, options))
        return names

    def _ledger_candidates(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        base = self.local_store.get_dir(context, options)
        names: list[str] = []
        seen: set[str] = set()
        for entry in self.ledger.list_files(base):
            path = entry.get("path") or ""
            if path in seen:
                continue
            seen.add(path)
            if not is_valid_path(path):
                continue
            item_path, status = parse_asset_path(path)
            if not accepts_path(item_path, status, options):
                continue
            if options.filter_path and not matches_path_filter(
                item_path, options.filter_path
            ):
                continue
            names.append(path)
        return names

    def list_remote_deleted_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        """List ledger paths that no longer exist remotely."""
        remote = set(self.list_remote_item_names(context, options))
        return [
            name for name in self._ledger_candidates(context, options)
            if name not in remote
        ]

    # -------------------------------------------------------------------------
    # Local
    # -------------------------------------------------------------------------

    def list_local_item_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        """List the local asset paths accepted by the options."""
        names: list[str] = []
        for name in self.local_store.list_names(context, options):
            item_path, status = parse_asset_path(name)
            if not is_valid_path(item_path):
                continue
            if not accepts_path(item_path, status, options):
                continue
            if options.filter_path and not matches_path_filter(
                item_path, options.filter_path
            ):
                continue
            names.append(name)
            self.seen_local.add(name)
        return names

    def list_modified_local_item_names(
        self,
        context: SyncContext,
        flags: list[ChangeFlag],
        options: SyncOptions,
    ) -> list[str]:
        """List local assets that are new or modified since the last transfer."""
        base = self.local_store.get_dir(context, options)
        names = [
            name
            for name in self.list_local_item_names(context, options)
            if self.ledger.is_local_modified(
                flags, base, self.local_store.get_path(context, name, options)
            )
        ]
        if ChangeFlag.DELETED in flags:
            names.extend(self.list_local_deleted_names(context, options))
        return names

    def list_local_deleted_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        """List ledger paths whose local file no longer exists."""
        return [
            name
            for name in self._ledger_candidates(context, options)
            if self.local_store.get_file_stats(context, name, options) is None
        ]
