"""Local asset store: the working directory layout for items and resources.

Layout of the working directory::

    assets/                     virtual folder (omitted with no_virtual_folder)
        css/main.css            web asset
        dxdam/a/b.jpg           content asset
        dxdam/a/b.jpg_amd.json  content asset metadata
        dxdam/a/b_wchdraft.jpg  draft of the content asset
    resources/
        <resource id>/<name>    resource content
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO, Optional, Union

from .context import SyncContext
from .exceptions import LocalIOError
from .hashes import is_hashes_file
from .models import AssetStatus, Item, is_content_path
from .utils import normalize_path

if TYPE_CHECKING:
    from .sync.options import SyncOptions

logger = logging.getLogger(__name__)

ASSETS_FOLDER = "assets"
RESOURCES_FOLDER = "resources"
METADATA_SUFFIX = "_amd.json"
DRAFT_MARKER = "_wchdraft"
PART_SUFFIX = ".part"

_IGNORED_SUFFIXES = (METADATA_SUFFIX, PART_SUFFIX, ".tmp")

ItemLike = Union[Item, dict[str, Any]]


def _as_item(item: ItemLike) -> Item:
    if isinstance(item, Item):
        return item
    return Item.from_api_response(item)


def add_draft_marker(path: str) -> str:
    """Insert the draft marker before the extension of the file name.

    Examples:
        >>> add_draft_marker("/dxdam/a/b.jpg")
        '/dxdam/a/b_wchdraft.jpg'
        >>> add_draft_marker("/dxdam/a/README")
        '/dxdam/a/README_wchdraft'
    """
    head, sep, name = path.rpartition("/")
    stem, dot, ext = name.rpartition(".")
    if dot and stem:
        name = f"{stem}{DRAFT_MARKER}.{ext}"
    else:
        name = name + DRAFT_MARKER
    return head + sep + name


def parse_asset_path(asset_path: str) -> tuple[str, AssetStatus]:
    """Split a local asset path into the item path and its lifecycle state.

    Examples:
        >>> parse_asset_path("/dxdam/a/b_wchdraft.jpg")
        ('/dxdam/a/b.jpg', <AssetStatus.DRAFT: 'draft'>)
        >>> parse_asset_path("/css/main.css")
        ('/css/main.css', <AssetStatus.READY: 'ready'>)
    """
    head, sep, name = asset_path.rpartition("/")
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        stem, ext = name, ""
    if not stem.endswith(DRAFT_MARKER) or stem == DRAFT_MARKER:
        return asset_path, AssetStatus.READY
    stem = stem[: -len(DRAFT_MARKER)]
    name = f"{stem}.{ext}" if ext else stem
    return head + sep + name, AssetStatus.DRAFT


class LocalAssetStore:
    """Read and write items, metadata and resources in the working directory.

    Every path argument named ``asset_path`` is the local form of an item
    path: relative to the assets directory, with a leading '/', and with
    the draft marker for draft items.
    """

    def get_working_dir(self, options: SyncOptions) -> Path:
        return Path(options.working_dir) if options.working_dir else Path.cwd()

    def get_dir(self, context: SyncContext, options: SyncOptions) -> Path:
        """Return the directory holding the assets."""
        working_dir = self.get_working_dir(options)
        if options.no_virtual_folder:
            return working_dir
        return working_dir / ASSETS_FOLDER

    def get_resources_dir(self, context: SyncContext, options: SyncOptions) -> Path:
        """Return the directory holding the resources."""
        return self.get_working_dir(options) / RESOURCES_FOLDER

    def get_extension(self) -> str:
        """Suffix appended to an asset file name for its metadata file."""
        return METADATA_SUFFIX

    def is_content_resource(self, item: ItemLike) -> bool:
        """Check whether an item is a content asset backed by a resource."""
        item = _as_item(item)
        return is_content_path(item.path) and bool(item.resource_id)

    def get_asset_path(self, item: ItemLike) -> str:
        """Return the local asset path for an item."""
        item = _as_item(item)
        path = normalize_path(item.path)
        if item.is_draft:
            return add_draft_marker(path)
        return path

    def _resolve(self, base: Path, relative: str) -> Path:
        return base.joinpath(*[part for part in relative.split("/") if part])

    def get_path(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> Path:
        """Return the absolute file path of an asset."""
        return self._resolve(self.get_dir(context, options), asset_path)

    def get_metadata_path(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> Path:
        path = self.get_path(context, asset_path, options)
        return path.with_name(path.name + METADATA_SUFFIX)

    def get_resource_path(
        self, context: SyncContext, resource_path: str, options: SyncOptions
    ) -> Path:
        return self._resolve(self.get_resources_dir(context, options), resource_path)

    # -------------------------------------------------------------------------
    # Streams
    # -------------------------------------------------------------------------

    def _open(self, path: Path, mode: str) -> BinaryIO:
        try:
            if "w" in mode:
                path.parent.mkdir(parents=True, exist_ok=True)
            return open(path, mode)  # type: ignore[return-value]
        except OSError as e:
            raise LocalIOError(f"Cannot open {path}: {e}", str(path)) from e

    def get_item_write_stream(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> BinaryIO:
        return self._open(self.get_path(context, asset_path, options), "wb")

    def get_item_read_stream(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> BinaryIO:
        return self._open(self.get_path(context, asset_path, options), "rb")

    def get_resource_write_stream(
        self, context: SyncContext, resource_path: str, options: SyncOptions
    ) -> BinaryIO:
        return self._open(self.get_resource_path(context, resource_path, options), "wb")

    def get_resource_read_stream(
        self, context: SyncContext, resource_path: str, options: SyncOptions
    ) -> BinaryIO:
        return self._open(self.get_resource_path(context, resource_path, options), "rb")

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def save_item(
        self, context: SyncContext, item: dict[str, Any], options: SyncOptions
    ) -> dict[str, Any]:
        """Persist the metadata of an item beside its content.

        Args:
            context: Sync context
            item: Item metadata
            options: Options providing the working directory

        Returns:
            The saved metadata
        """
        asset_path = self.get_asset_path(item)
        path = self.get_metadata_path(context, asset_path, options)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(item, f, indent=2, sort_keys=True)
        except OSError as e:
            raise LocalIOError(f"Cannot save metadata {path}: {e}", str(path)) from e
        return item

    def get_item(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> Optional[dict[str, Any]]:
        """Read the stored metadata of an asset, or None if there is none."""
        path = self.get_metadata_path(context, asset_path, options)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LocalIOError(f"Cannot read metadata {path}: {e}", str(path)) from e
        return data if isinstance(data, dict) else None

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise LocalIOError(f"Cannot delete {path}: {e}", str(path)) from e
        logger.debug(f"Deleted {path}")
        return True

    def delete_asset(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> bool:
        return self._unlink(self.get_path(context, asset_path, options))

    def delete_metadata(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> bool:
        return self._unlink(self.get_metadata_path(context, asset_path, options))

    def delete_resource(
        self, context: SyncContext, resource_path: str, options: SyncOptions
    ) -> bool:
        return self._unlink(self.get_resource_path(context, resource_path, options))

    def rename_resource(
        self,
        context: SyncContext,
        from_path: str,
        to_path: str,
        options: SyncOptions,
    ) -> Path:
        """Atomically move a resource file onto its final name."""
        return self._replace(
            self.get_resource_path(context, from_path, options),
            self.get_resource_path(context, to_path, options),
        )

    def rename_asset(
        self,
        context: SyncContext,
        from_path: str,
        to_path: str,
        options: SyncOptions,
    ) -> Path:
        """Atomically move an asset file onto its final name."""
        return self._replace(
            self.get_path(context, from_path, options),
            self.get_path(context, to_path, options),
        )

    def _replace(self, source: Path, target: Path) -> Path:
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, target)
        except OSError as e:
            raise LocalIOError(
                f"Cannot rename {source} to {target}: {e}", str(target)
            ) from e
        return target

    # -------------------------------------------------------------------------
    # Listing and stats
    # -------------------------------------------------------------------------

    def _walk(self, base: Path, skip_dirs: tuple[str, ...] = ()) -> list[str]:
        names: list[str] = []
        if not base.is_dir():
            return names
        for root, dirs, files in os.walk(base):
            root_path = Path(root)
            if root_path == base:
                dirs[:] = [d for d in dirs if d not in skip_dirs]
            dirs.sort()
            for filename in sorted(files):
                if is_hashes_file(filename) or filename.endswith(_IGNORED_SUFFIXES):
                    continue
                relative = (root_path / filename).relative_to(base)
                names.append(normalize_path(relative.as_posix()))
        return names

    def list_names(self, context: SyncContext, options: SyncOptions) -> list[str]:
        """List the asset paths of all local assets.

        Metadata files, the hash ledger and partial downloads are excluded.
        """
        skip: tuple[str, ...] = ()
        if options.no_virtual_folder:
            skip = (RESOURCES_FOLDER,)
        return self._walk(self.get_dir(context, options), skip)

    def list_resource_names(
        self, context: SyncContext, options: SyncOptions
    ) -> list[str]:
        """List the paths of all local resources as '/<id>/<name>'."""
        return self._walk(self.get_resources_dir(context, options))

    def get_file_stats(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> Optional[os.stat_result]:
        """Return the stats of an asset file, or None if it does not exist."""
        try:
            return self.get_path(context, asset_path, options).stat()
        except OSError:
            return None

    def get_resource_file_stats(
        self, context: SyncContext, resource_path: str, options: SyncOptions
    ) -> Optional[os.stat_result]:
        try:
            return self.get_resource_path(context, resource_path, options).stat()
        except OSError:
            return None

    def get_content_length(
        self, context: SyncContext, asset_path: str, options: SyncOptions
    ) -> int:
        """Return the size of an asset file.

        Raises:
            LocalIOError: If the file cannot be read
        """
        path = self.get_path(context, asset_path, options)
        try:
            return path.stat().st_size
        except OSError as e:
            raise LocalIOError(f"Cannot stat {path}: {e}", str(path)) from e

    def get_resource_content_length(
        self, context: SyncContext, resource_path: str, options: SyncOptions
    ) -> int:
        path = self.get_resource_path(context, resource_path, options)
        try:
            return path.stat().st_size
        except OSError as e:
            raise LocalIOError(f"Cannot stat {path}: {e}", str(path)) from e
