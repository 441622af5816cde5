"""Compare two endpoints: local directories, remote content hubs or manifests."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from .. import events
from ..api import ContentHubClient
from ..context import SyncContext
from ..exceptions import LocalIOError, ValidationError
from ..hashes import HashLedger, compare_digests, generate_file_digest
from ..local_store import LocalAssetStore, parse_asset_path
from ..models import DiffResult, Item
from .listing import AssetLister, accepts_path, iter_pages
from .manifests import (
    is_manifest_path,
    manifest_items,
    manifest_resources,
    read_manifest,
)
from .options import SyncOptions

logger = logging.getLogger(__name__)

ITEMS = "items"
RESOURCES = "resources"

# Digest per path, for the items and the resources of one endpoint
Listing = dict[str, dict[str, Optional[str]]]


def is_remote_endpoint(endpoint: str) -> bool:
    return endpoint.lower().startswith(("http://", "https://"))


def _default_client_factory(url: str) -> ContentHubClient:
    return ContentHubClient(api_url=url)


class Comparator:
    """Compares the items and resources of two endpoints by path and digest.

    Local digests are computed from the files; remote and manifest entries
    use their stored digest.
    """

    def __init__(
        self,
        client_factory: Optional[Callable[[str], ContentHubClient]] = None,
        local_store: Optional[LocalAssetStore] = None,
    ):
        self.client_factory = client_factory or _default_client_factory
        self.local_store = local_store or LocalAssetStore()

    def _list_directory(
        self, context: SyncContext, directory: Path, options: SyncOptions
    ) -> Listing:
        if not directory.is_dir():
            raise ValidationError(
                f"Compare endpoint is not a directory, manifest or URL: {directory}",
                str(directory),
            )
        opts = options.copy(working_dir=directory)
        listing: Listing = {ITEMS: {}, RESOURCES: {}}
        try:
            for name in self.local_store.list_names(context, opts):
                item_path, status = parse_asset_path(name)
                if accepts_path(item_path, status, opts):
                    listing[ITEMS][name] = generate_file_digest(
                        self.local_store.get_path(context, name, opts)
                    )
            for name in self.local_store.list_resource_names(context, opts):
                listing[RESOURCES][name] = generate_file_digest(
                    self.local_store.get_resource_path(context, name, opts)
                )
        except OSError as e:
            raise LocalIOError(f"Cannot read {directory}: {e}", str(directory)) from e
        return listing

    def _list_remote(
        self, context: SyncContext, url: str, options: SyncOptions
    ) -> Listing:
        client = self.client_factory(url)
        lister = AssetLister(client, self.local_store, HashLedger())
        listing: Listing = {ITEMS: {}, RESOURCES: {}}
        for item in lister.list_remote_items(context, options.copy(filter_path=None)):
            listing[ITEMS][self.local_store.get_asset_path(item)] = item.digest
        for page in iter_pages(
            lambda opts: client.get_resource_list(context, opts), options
        ):
            for data in page:
                name = data.get("name") or ""
                listing[RESOURCES][f"/{data.get('id')}/{name}"] = data.get("digest")
        return listing

    def _list_manifest(self, path: str, options: SyncOptions) -> Listing:
        manifest = read_manifest(path)
        listing: Listing = {ITEMS: {}, RESOURCES: {}}
        for entry in manifest_items(manifest):
            item = Item.from_api_response(entry)
            if accepts_path(item.path, item.status, options):
                listing[ITEMS][self.local_store.get_asset_path(item)] = item.digest
        for entry in manifest_resources(manifest):
            listing[RESOURCES][entry.get("path") or f"/{entry['id']}"] = entry.get(
                "digest"
            )
        return listing

    def list_endpoint(
        self, context: SyncContext, endpoint: str, options: SyncOptions
    ) -> Listing:
        """List the items and resources of an endpoint with their digests."""
        if is_remote_endpoint(endpoint):
            return self._list_remote(context, endpoint, options)
        if is_manifest_path(endpoint):
            return self._list_manifest(endpoint, options)
        return self._list_directory(context, Path(endpoint), options)

    def compare(
        self,
        context: SyncContext,
        source: str,
        target: str,
        options: Optional[SyncOptions] = None,
    ) -> DiffResult:
        """Compare two endpoints.

        Publishes 'added' for paths only in the target, 'removed' for paths
        only in the source and 'diff' for paths whose digests differ.

        Args:
            context: Sync context
            source: Directory, remote API URL or manifest file
            target: Directory, remote API URL or manifest file
            options: Category and draft/ready filters

        Returns:
            Number of differences and number of unique paths
        """
        options = options or SyncOptions()
        source_listing = self.list_endpoint(context, source, options)
        target_listing = self.list_endpoint(context, target, options)

        result = DiffResult()
        for namespace in (ITEMS, RESOURCES):
            source_entries = source_listing[namespace]
            target_entries = target_listing[namespace]
            paths = sorted(set(source_entries) | set(target_entries))
            result.total_count += len(paths)
            for path in paths:
                if path not in source_entries:
                    result.diff_count += 1
                    context.publish(events.ADDED, path)
                elif path not in target_entries:
                    result.diff_count += 1
                    context.publish(events.REMOVED, path)
                elif not compare_digests(source_entries[path], target_entries[path]):
                    result.diff_count += 1
                    context.publish(
                        events.DIFF, path, source_entries[path], target_entries[path]
                    )

        logger.info(
            f"Compared {source} with {target}: "
            f"{result.diff_count} of {result.total_count} paths differ"
        )
        return result
