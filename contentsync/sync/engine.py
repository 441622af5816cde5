"""Sync engine orchestrating pull, push and delete operations."""

from __future__ import annotations

import logging
import uuid
from functools import partial
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional, Union

from .. import events
from ..api import ContentHubClient, SearchClient
from ..context import SyncContext
from ..exceptions import (
    IntegrityError,
    LocalIOError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from ..hashes import (
    ChangeFlag,
    DigestingWriter,
    HashLedger,
    compare_digests,
    generate_file_digest,
    generate_stream_digest,
)
from ..local_store import PART_SUFFIX, LocalAssetStore, parse_asset_path
from ..models import (
    AssetStatus,
    AssetTypes,
    ChangeRecord,
    DiffResult,
    Item,
    Resource,
    is_content_path,
)
from ..utils import is_valid_path, normalize_path, now_iso, run_bounded
from .comparator import Comparator
from .listing import AssetLister, iter_pages
from .manifests import is_manifest_path, manifest_items, read_manifest
from .options import SyncOptions
from .retry import can_delete_item, filter_retry_delete, filter_retry_push, retry_call
from .timestamps import PullTimestamps

logger = logging.getLogger(__name__)

ManifestSource = Union[str, Path, list[Any]]


def _batches(entries: list[Any], size: int) -> list[list[Any]]:
    size = max(1, size)
    return [entries[i : i + size] for i in range(0, len(entries), size)]


def validate_path(path: Optional[str]) -> str:
    """Reject a path before any I/O happens.

    Raises:
        ValidationError: For empty paths, characters the OS does not allow
            and paths beginning with an absolute URL
    """
    if not path or not is_valid_path(path):
        raise ValidationError(f"Invalid path: {path!r}", path)
    return path


class SyncEngine:
    """Synchronizes a local working directory with the content hub.

    One engine serves many contexts. Every operation receives the context
    (carrying the notification channel) and the options explicitly.

    Examples:
        >>> engine = SyncEngine(ContentHubClient())
        >>> context = SyncContext(events=EventBus())
        >>> records = engine.pull_all_items(context, SyncOptions(working_dir=Path(".")))
    """

    def __init__(
        self,
        client: ContentHubClient,
        local_store: Optional[LocalAssetStore] = None,
        ledger: Optional[HashLedger] = None,
        search_client: Optional[SearchClient] = None,
    ):
        """Initialize the sync engine.

        Args:
            client: Content hub client
            local_store: Local asset store (default layout if not provided)
            ledger: Hash ledger (default file name if not provided)
            search_client: Search client used for path-filtered listings
        """
        self.client = client
        self.local_store = local_store or LocalAssetStore()
        self.ledger = ledger or HashLedger()
        self.search_client = search_client
        self.lister = AssetLister(
            client, self.local_store, self.ledger, search_client
        )

    # =========================================================================
    # Listing
    # =========================================================================

    def list_remote_items(
        self, context: SyncContext, options: SyncOptions
    ) -> list[Item]:
        return self.lister.list_remote_items(context, options)

    def list_remote_item_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        return self.lister.list_remote_item_names(context, options)

    def list_modified_remote_items(
        self,
        context: SyncContext,
        flags: list[ChangeFlag],
        options: SyncOptions,
    ) -> list[Item]:
        return self.lister.list_modified_remote_items(context, flags, options)

    def list_modified_remote_item_names(
        self,
        context: SyncContext,
        flags: list[ChangeFlag],
        options: SyncOptions,
    ) -> list[str]:
        return self.lister.list_modified_remote_item_names(context, flags, options)

    def list_remote_deleted_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        return self.lister.list_remote_deleted_names(context, options)

    def list_local_item_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        return self.lister.list_local_item_names(context, options)

    def list_modified_local_item_names(
        self,
        context: SyncContext,
        flags: list[ChangeFlag],
        options: SyncOptions,
    ) -> list[str]:
        return self.lister.list_modified_local_item_names(context, flags, options)

    def list_local_deleted_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        return self.lister.list_local_deleted_names(context, options)

    def list_remote_resources(
        self, context: SyncContext, options: SyncOptions
    ) -> list[Resource]:
        """List all remote resources, page by page."""
        resources: list[Resource] = []
        for page in iter_pages(
            lambda opts: self.client.get_resource_list(context, opts), options
        ):
            resources.extend(Resource.from_api_response(data) for data in page)
        return resources

    def exists_locally(self, path: str) -> bool:
        """Check whether a path was seen locally during this engine's lifetime."""
        return normalize_path(path) in self.lister.seen_local

    def exists_remotely(self, path: str) -> bool:
        """Check whether a path was seen remotely during this engine's lifetime."""
        return normalize_path(path) in self.lister.seen_remote

    # =========================================================================
    # Last-pull timestamps
    # =========================================================================

    def get_pull_timestamps(
        self, context: SyncContext, options: SyncOptions
    ) -> PullTimestamps:
        base = self.local_store.get_dir(context, options)
        return PullTimestamps.from_stored(self.ledger.get_last_pull_timestamp(base))

    def get_last_pull_timestamp(
        self, context: SyncContext, options: SyncOptions
    ) -> Optional[str]:
        """Return the earliest last-pull timestamp relevant to the options.

        Returns None if any relevant cell was never recorded.
        """
        return self.lister.get_last_pull_timestamp(context, options)

    def set_last_pull_timestamps(
        self,
        context: SyncContext,
        options: SyncOptions,
        timestamp: Optional[str] = None,
    ) -> PullTimestamps:
        """Advance the cells of the categories and states processed with the options."""
        timestamps = self.get_pull_timestamps(context, options)
        timestamps.advance(
            options.categories(), options.states(), timestamp or now_iso()
        )
        base = self.local_store.get_dir(context, options)
        self.ledger.set_last_pull_timestamp(base, timestamps.to_stored())
        return timestamps

    # =========================================================================
    # Helpers
    # =========================================================================

    def _close_sink(self, sink: BinaryIO, name: str) -> None:
        try:
            sink.close()
        except Exception as e:
            logger.debug(f"Failed to close sink for {name}: {e}")

    def _find_remote_item(
        self, context: SyncContext, path: str, options: SyncOptions
    ) -> Item:
        """Scan the item pages for a path.

        A path carrying the draft marker selects the draft item; otherwise
        the ready item is selected unless only drafts are requested.

        Raises:
            NotFoundError: If no page holds a matching item
        """
        item_path, status = parse_asset_path(normalize_path(path))
        if status == AssetStatus.READY and options.states() == [AssetStatus.DRAFT]:
            status = AssetStatus.DRAFT

        for page in iter_pages(
            lambda opts: self.client.get_items(context, opts), options
        ):
            for data in page:
                item = Item.from_api_response(data)
                if normalize_path(item.path) != item_path:
                    continue
                if is_content_path(item.path) and item.status != status:
                    continue
                return item
        raise NotFoundError(f"Remote asset not found: {path}")

    def _run_batches(
        self,
        entries: list[Any],
        task: Callable[[Any], Any],
        options: SyncOptions,
    ) -> list[tuple[Any, bool, Any]]:
        outcomes: list[tuple[Any, bool, Any]] = []
        for batch in _batches(entries, options.limit):
            results = run_bounded(
                [partial(task, entry) for entry in batch], options.concurrent_limit
            )
            for entry, (ok, value) in zip(batch, results):
                outcomes.append((entry, ok, value))
        return outcomes

    # =========================================================================
    # Pull
    # =========================================================================

    def _pull(
        self, context: SyncContext, item: Item, options: SyncOptions
    ) -> Optional[dict[str, Any]]:
        if item.is_system:
            logger.debug(f"Skipping system item {item.path}")
            return None
        validate_path(item.path)

        asset_path = self.local_store.get_asset_path(item)
        file_path = self.local_store.get_path(context, asset_path, options)
        part_path = f"{asset_path}.{uuid.uuid4().hex}{PART_SUFFIX}"
        sink = self.local_store.get_item_write_stream(context, part_path, options)
        writer = DigestingWriter(sink)
        try:
            metadata = self.client.pull_item(
                context, item.to_dict(), writer, on_transfer_start=writer.begin
            )
            writer.close()
            local_digest = writer.digest() or generate_file_digest(
                self.local_store.get_path(context, part_path, options)
            )
            server_digest = metadata.get("digest") or item.digest
            if server_digest and not compare_digests(local_digest, server_digest):
                message = (
                    f"Digest {local_digest} of {asset_path} "
                    f"does not match server digest {server_digest}"
                )
                logger.error(message)
                raise IntegrityError(message, item.path, local_digest, server_digest)
        except Exception:
            self._close_sink(writer, part_path)
            self._discard_part(context, part_path, options, asset=True)
            raise

        self.local_store.rename_asset(context, part_path, asset_path, options)
        base = self.local_store.get_dir(context, options)
        self.ledger.update_hashes(base, file_path, metadata, digest=local_digest)
        self.lister.seen_local.add(asset_path)

        if is_content_path(item.path):
            try:
                self.local_store.save_item(context, metadata, options)
            except LocalIOError as e:
                logger.warning(f"Pulled {asset_path} but could not save metadata: {e}")

        logger.debug(f"Pulled {asset_path}")
        return metadata

    def pull_item(
        self, context: SyncContext, item_id: str, options: SyncOptions
    ) -> Optional[dict[str, Any]]:
        """Pull a single item by ID.

        Returns:
            Metadata of the pulled item, or None for a system item
        """
        data = self.client.get_item(context, item_id)
        return self._pull(context, Item.from_api_response(data), options)

    def pull_item_by_path(
        self, context: SyncContext, path: str, options: SyncOptions
    ) -> Optional[dict[str, Any]]:
        """Pull a single item by path.

        Raises:
            ValidationError: If the path is invalid (before any request)
            NotFoundError: If no remote item has the path
            IntegrityError: If the content does not match the server digest
        """
        validate_path(path)
        item = self._find_remote_item(context, path, options)
        return self._pull(context, item, options)

    def _pull_items(
        self, context: SyncContext, items: list[Item], options: SyncOptions
    ) -> list[ChangeRecord]:
        eligible = [item for item in items if not item.is_system]
        records: list[ChangeRecord] = []
        for item, ok, value in self._run_batches(
            eligible, lambda item: self._pull(context, item, options), options
        ):
            if ok:
                records.append(ChangeRecord(item.path, metadata=value))
                context.publish(events.PULLED, item.path, value)
            else:
                logger.debug(f"Failed to pull {item.path}: {value}")
                records.append(ChangeRecord(item.path, error=value))
                context.publish(events.PULLED_ERROR, item.path, value)
        return records

    def _finish_bulk_pull(
        self,
        context: SyncContext,
        options: SyncOptions,
        records: list[ChangeRecord],
        started: str,
    ) -> None:
        errors = sum(1 for record in records if not record.ok)
        if options.filter_path:
            logger.debug("Path filter applied, last-pull timestamps unchanged")
        elif errors:
            logger.info(f"{errors} items failed, last-pull timestamps unchanged")
        else:
            self.set_last_pull_timestamps(context, options, started)
        logger.info(f"Pulled {len(records) - errors} items, {errors} failed")

    def pull_all_items(
        self, context: SyncContext, options: SyncOptions
    ) -> list[ChangeRecord]:
        """Pull every remote item accepted by the options.

        Failures do not stop the operation; the returned records hold
        successful metadata and errors in listing order.

        Args:
            context: Sync context
            options: Sync options

        Returns:
            One record per attempted item
        """
        started = now_iso()
        items = self.lister.list_remote_items(context, options)
        records = self._pull_items(context, items, options)
        self._finish_bulk_pull(context, options, records, started)
        if options.resources_enabled:
            self.pull_resources(context, options)
        return records

    def pull_modified_items(
        self, context: SyncContext, options: SyncOptions
    ) -> list[ChangeRecord]:
        """Pull the remote items that are new or modified since the last pull."""
        started = now_iso()
        items = self.lister.list_modified_remote_items(
            context, [ChangeFlag.NEW, ChangeFlag.MODIFIED], options
        )
        records = self._pull_items(context, items, options)
        self._finish_bulk_pull(context, options, records, started)
        if options.resources_enabled:
            self.pull_resources(context, options, modified_only=True)
        return records

    def _manifest_entries(self, manifest: ManifestSource) -> list[dict[str, Any]]:
        if isinstance(manifest, (str, Path)):
            if not is_manifest_path(manifest):
                raise ValidationError(f"Not a manifest file: {manifest}", str(manifest))
            return manifest_items(read_manifest(manifest))
        entries = []
        for entry in manifest:
            entries.append(entry.to_dict() if isinstance(entry, Item) else dict(entry))
        return entries

    def pull_manifest_items(
        self,
        context: SyncContext,
        manifest: ManifestSource,
        options: SyncOptions,
    ) -> list[ChangeRecord]:
        """Pull the items listed in a manifest.

        Entries are resolved against the remote listing by ID, then by path;
        entries that cannot be resolved are skipped. A failure reading the
        manifest or listing the remote items aborts the operation.

        Args:
            context: Sync context
            manifest: Manifest file or list of item metadata
            options: Sync options

        Returns:
            One record per resolved item
        """
        entries = self._manifest_entries(manifest)
        remote = self.lister.list_remote_items(context, options.copy(filter_path=None))
        by_id = {item.id: item for item in remote}
        by_path = {(normalize_path(item.path), item.status): item for item in remote}

        resolved: list[Item] = []
        for entry in entries:
            wanted = Item.from_api_response(entry)
            item = by_id.get(wanted.id) or by_path.get(
                (normalize_path(wanted.path), wanted.status)
            )
            if item is None:
                logger.warning(
                    f"Manifest entry {wanted.path or wanted.id} not found remotely, "
                    "skipping"
                )
                continue
            resolved.append(item)
        return self._pull_items(context, resolved, options)

    def _pull_resource(
        self,
        context: SyncContext,
        resource: Resource,
        options: SyncOptions,
        modified_only: bool,
    ) -> tuple[str, Optional[dict[str, Any]]]:
        name = resource.name or self.client.get_resource_filename(context, resource.id)
        resource_path = validate_path(f"/{resource.id}/{name}")
        base = self.local_store.get_resources_dir(context, options)
        file_path = self.local_store.get_resource_path(context, resource_path, options)

        if modified_only and file_path.exists():
            known = self.ledger.get_digest_for_file(base, file_path)
            if compare_digests(known, resource.digest):
                return resource_path, None

        part_path = f"{resource_path}.{uuid.uuid4().hex}{PART_SUFFIX}"
        sink = self.local_store.get_resource_write_stream(context, part_path, options)
        writer = DigestingWriter(sink)
        try:
            metadata = self.client.pull_resource(
                context, dict(resource.raw, id=resource.id), writer, writer.begin
            )
            writer.close()
            local_digest = writer.digest() or generate_file_digest(
                self.local_store.get_resource_path(context, part_path, options)
            )
            server_digest = metadata.get("digest") or resource.digest
            if server_digest and not compare_digests(local_digest, server_digest):
                message = (
                    f"Digest {local_digest} of resource {resource_path} "
                    f"does not match server digest {server_digest}"
                )
                logger.error(message)
                raise IntegrityError(
                    message, resource_path, local_digest, server_digest
                )
        except Exception:
            self._close_sink(writer, part_path)
            self._discard_part(context, part_path, options)
            raise

        self.local_store.rename_resource(context, part_path, resource_path, options)
        metadata = dict(metadata, id=resource.id, name=name)
        self.ledger.update_resource_hashes(base, file_path, metadata, local_digest)
        return resource_path, metadata

    def _discard_part(
        self,
        context: SyncContext,
        part_path: str,
        options: SyncOptions,
        asset: bool = False,
    ) -> None:
        delete = (
            self.local_store.delete_asset if asset else self.local_store.delete_resource
        )
        try:
            delete(context, part_path, options)
        except LocalIOError as e:
            logger.debug(f"Could not remove partial download {part_path}: {e}")

    def pull_resources(
        self,
        context: SyncContext,
        options: SyncOptions,
        modified_only: bool = False,
    ) -> list[ChangeRecord]:
        """Pull the remote resources.

        Nothing is pulled when the options select web assets only or the
        virtual folder is disabled.

        Args:
            context: Sync context
            options: Sync options; with ``deletions`` set, local resources
                missing remotely are reported as 'resource-local-only'
            modified_only: Skip resources whose ledger digest matches

        Returns:
            One record per transferred or failed resource
        """
        if options.asset_types == AssetTypes.WEB or options.no_virtual_folder:
            return []

        records: list[ChangeRecord] = []
        remote_ids: set[str] = set()
        for page in iter_pages(
            lambda opts: self.client.get_resource_list(context, opts), options
        ):
            resources = [Resource.from_api_response(data) for data in page]
            remote_ids.update(resource.id for resource in resources)
            results = run_bounded(
                [
                    partial(self._pull_resource, context, resource, options, modified_only)
                    for resource in resources
                ],
                options.concurrent_limit,
            )
            for resource, (ok, value) in zip(resources, results):
                if not ok:
                    records.append(ChangeRecord(resource.path, error=value))
                    context.publish(events.RESOURCE_PULLED_ERROR, resource.path, value)
                    continue
                resource_path, metadata = value
                if metadata is None:
                    continue
                records.append(ChangeRecord(resource_path, metadata=metadata))
                context.publish(events.RESOURCE_PULLED, resource_path, metadata)

        if options.deletions:
            for name in self.local_store.list_resource_names(context, options):
                resource_id = name.strip("/").split("/", 1)[0]
                if resource_id not in remote_ids:
                    context.publish(events.RESOURCE_LOCAL_ONLY, name)
        return records

    # =========================================================================
    # Push
    # =========================================================================

    def _lookup_prior_record(
        self, context: SyncContext, item_data: dict[str, Any], status: AssetStatus
    ) -> Optional[dict[str, Any]]:
        """Fetch the remote record an upload replaces.

        A record whose draft state differs from ``status`` belongs to the
        counterpart item and is never returned.
        """
        try:
            if item_data.get("id"):
                prior = self.client.get_item(context, item_data["id"])
            else:
                prior = self.client.get_item_by_path(context, item_data["path"])
        except (NotFoundError, TransportError) as e:
            logger.debug(f"No prior record for {item_data.get('path')}: {e}")
            return None
        if Item.from_api_response(prior).is_draft != (status == AssetStatus.DRAFT):
            logger.debug(
                f"Remote record of {item_data.get('path')} is the "
                f"{'ready' if status == AssetStatus.DRAFT else 'draft'} counterpart, "
                "pushing as a new item"
            )
            return None
        return prior

    def push_item(
        self,
        context: SyncContext,
        asset_path: str,
        options: SyncOptions,
        is_raw: bool = False,
    ) -> Optional[dict[str, Any]]:
        """Push a single local asset.

        The read stream, content length and digest are acquired again for
        every attempt. Only errors accepted by ``filter_retry_push`` are
        retried; the last error is raised unchanged and the ledger is not
        updated.

        Args:
            context: Sync context
            asset_path: Local asset path (relative to the assets directory)
            options: Sync options
            is_raw: Upload the content without creating an item record

        Returns:
            Metadata returned by the content hub, or None for a system item
        """
        asset_path = normalize_path(asset_path)
        item_path, status = parse_asset_path(asset_path)
        validate_path(item_path)

        is_content = is_content_path(item_path)
        stored = self.local_store.get_item(context, asset_path, options) if is_content else None
        if stored and stored.get("isSystem"):
            logger.debug(f"Skipping system item {asset_path}")
            return None

        item_data: dict[str, Any] = dict(stored or {})
        item_data["path"] = item_path
        if status == AssetStatus.DRAFT:
            item_data["status"] = AssetStatus.DRAFT.value

        prior: Optional[dict[str, Any]] = None
        if is_content:
            prior = self._lookup_prior_record(context, item_data, status)
        resource_id = prior.get("resource") if prior else None
        if prior and prior.get("id"):
            item_data.setdefault("id", prior["id"])

        def attempt(number: int) -> tuple[dict[str, Any], str]:
            length = self.local_store.get_content_length(context, asset_path, options)
            stream = self.local_store.get_item_read_stream(context, asset_path, options)
            try:
                digest = generate_stream_digest(stream)
                stream.seek(0)
                replace_existing = bool(resource_id) and not compare_digests(
                    digest, prior.get("digest") if prior else None
                )
                result = self.client.push_item(
                    context,
                    is_raw,
                    is_content,
                    replace_existing,
                    resource_id,
                    digest,
                    item_path,
                    stream,
                    length,
                    options,
                    metadata=item_data,
                )
                return result, digest
            finally:
                stream.close()

        result, digest = retry_call(
            attempt, filter_retry_push, options, f"push of {asset_path}"
        )

        base = self.local_store.get_dir(context, options)
        file_path = self.local_store.get_path(context, asset_path, options)
        self.ledger.update_hashes(base, file_path, result, digest=digest)
        self.lister.seen_remote.add(asset_path)

        if is_content and not is_raw:
            try:
                self.local_store.save_item(context, result, options)
            except LocalIOError as e:
                logger.warning(f"Pushed {asset_path} but could not save metadata: {e}")

        logger.debug(f"Pushed {asset_path}")
        return result

    def _push_names(
        self, context: SyncContext, names: list[str], options: SyncOptions
    ) -> list[dict[str, Any]]:
        pushed: list[dict[str, Any]] = []
        for name, ok, value in self._run_batches(
            names, lambda name: self.push_item(context, name, options), options
        ):
            if not ok:
                logger.debug(f"Failed to push {name}: {value}")
                context.publish(events.PUSHED_ERROR, name, value)
            elif value is not None:
                pushed.append(value)
                context.publish(events.PUSHED, name, value)
        logger.info(f"Pushed {len(pushed)} of {len(names)} items")
        return pushed

    def push_all_items(
        self, context: SyncContext, options: SyncOptions
    ) -> list[dict[str, Any]]:
        """Push every local asset accepted by the options.

        Returns:
            Metadata of the successfully pushed items only; failures are
            published as 'pushed-error'
        """
        names = self.lister.list_local_item_names(context, options)
        pushed = self._push_names(context, names, options)
        if options.resources_enabled:
            self.push_all_resources(context, options)
        return pushed

    def push_modified_items(
        self, context: SyncContext, options: SyncOptions
    ) -> list[dict[str, Any]]:
        """Push the local assets that are new or modified since the last transfer."""
        names = self.lister.list_modified_local_item_names(
            context, [ChangeFlag.NEW, ChangeFlag.MODIFIED], options
        )
        pushed = self._push_names(context, names, options)
        if options.resources_enabled:
            self.push_modified_resources(context, options)
        return pushed

    def push_resource(
        self, context: SyncContext, resource_path: str, options: SyncOptions
    ) -> dict[str, Any]:
        """Push a single local resource stored as '/<id>/<name>'."""
        resource_path = validate_path(normalize_path(resource_path))
        parts = resource_path.strip("/").split("/")
        if len(parts) != 2:
            raise ValidationError(
                f"Resource path must be /<id>/<name>: {resource_path}", resource_path
            )
        resource_id, name = parts

        def attempt(number: int) -> tuple[dict[str, Any], str]:
            length = self.local_store.get_resource_content_length(
                context, resource_path, options
            )
            stream = self.local_store.get_resource_read_stream(
                context, resource_path, options
            )
            try:
                digest = generate_stream_digest(stream)
                stream.seek(0)
                result = self.client.push_resource(
                    context, resource_id, name, stream, length, digest
                )
                return result, digest
            finally:
                stream.close()

        result, digest = retry_call(
            attempt, filter_retry_push, options, f"push of resource {resource_path}"
        )
        metadata = dict(result or {}, id=(result or {}).get("id") or resource_id)
        base = self.local_store.get_resources_dir(context, options)
        file_path = self.local_store.get_resource_path(context, resource_path, options)
        self.ledger.update_resource_hashes(base, file_path, metadata, digest)
        return metadata

    def _push_resources(
        self, context: SyncContext, options: SyncOptions, modified_only: bool
    ) -> list[dict[str, Any]]:
        if options.asset_types == AssetTypes.WEB:
            return []
        base = self.local_store.get_resources_dir(context, options)
        names: list[str] = []
        for name in self.local_store.list_resource_names(context, options):
            try:
                self.local_store.get_resource_content_length(context, name, options)
            except LocalIOError as e:
                logger.warning(f"Skipping resource {name}: {e}")
                continue
            if modified_only and not self.ledger.is_local_modified(
                [ChangeFlag.NEW, ChangeFlag.MODIFIED],
                base,
                self.local_store.get_resource_path(context, name, options),
            ):
                continue
            names.append(name)

        pushed: list[dict[str, Any]] = []
        for name, ok, value in self._run_batches(
            names, lambda name: self.push_resource(context, name, options), options
        ):
            if ok:
                pushed.append(value)
                context.publish(events.RESOURCE_PUSHED, name, value)
            else:
                logger.debug(f"Failed to push resource {name}: {value}")
                context.publish(events.RESOURCE_PUSHED_ERROR, name, value)
        return pushed

    def push_all_resources(
        self, context: SyncContext, options: SyncOptions
    ) -> list[dict[str, Any]]:
        """Push every local resource (successes only)."""
        return self._push_resources(context, options, modified_only=False)

    def push_modified_resources(
        self, context: SyncContext, options: SyncOptions
    ) -> list[dict[str, Any]]:
        return self._push_resources(context, options, modified_only=True)

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_remote_item(
        self, context: SyncContext, path: str, options: SyncOptions
    ) -> str:
        """Delete a remote item by path.

        Raises:
            ValidationError: If the path is invalid or the item may not be
                deleted with the given options
            NotFoundError: If no remote item has the path
        """
        validate_path(path)
        item = self._find_remote_item(context, path, options)
        if not can_delete_item(item, options):
            raise ValidationError(
                f"Item {item.path} cannot be deleted with the given options", path
            )
        message = retry_call(
            lambda number: self.client.delete_item(context, item.to_dict()),
            filter_retry_delete,
            options,
            f"delete of {item.path}",
        )
        base = self.local_store.get_dir(context, options)
        self.ledger.remove_hashes_by_path(base, self.local_store.get_asset_path(item))
        logger.info(message)
        return message

    def delete_local_items(
        self, context: SyncContext, names: list[str], options: SyncOptions
    ) -> list[ChangeRecord]:
        """Delete local assets with their metadata and ledger entries.

        Invalid paths are not touched and reported as errors.
        """
        base = self.local_store.get_dir(context, options)
        records: list[ChangeRecord] = []
        for name in names:
            try:
                asset_path = normalize_path(validate_path(name))
                item_path, _ = parse_asset_path(asset_path)
                validate_path(item_path)
                deleted = self.local_store.delete_asset(context, asset_path, options)
                self.local_store.delete_metadata(context, asset_path, options)
                self.ledger.remove_hashes_by_path(base, asset_path)
                records.append(
                    ChangeRecord(name, metadata={"path": asset_path, "deleted": deleted})
                )
            except (ValidationError, LocalIOError) as e:
                records.append(ChangeRecord(name, error=e))
        return records

    # =========================================================================
    # Compare
    # =========================================================================

    def compare(
        self,
        context: SyncContext,
        source: str,
        target: str,
        options: Optional[SyncOptions] = None,
    ) -> DiffResult:
        """Compare two endpoints (directory, remote URL or manifest file)."""
        comparator = Comparator(
            client_factory=self._client_for_url, local_store=self.local_store
        )
        return comparator.compare(context, source, target, options)

    def _client_for_url(self, url: str) -> ContentHubClient:
        if url.rstrip("/") == self.client.api_url:
            return self.client
        return ContentHubClient(api_key=self.client.api_key, api_url=url)
