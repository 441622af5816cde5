"""Hash ledger for tracking digests and timestamps of synced files.

The ledger remembers, per base directory, which items were transferred,
their content digest, remote revision and local modification time. It
allows change detection without network calls and deletion detection by
comparing the remembered paths with what exists locally or remotely.
"""

import base64
import binascii
import hashlib
import json
import logging
import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from .utils import DEFAULT_CHUNK_SIZE, normalize_path

logger = logging.getLogger(__name__)

HASHES_FILENAME = ".contentsync_hashes"
HASHES_VERSION = "2"

_TIMESTAMP_KEY = "lastPullTimestamp"

PathLike = Union[str, Path]


class ChangeFlag(str, Enum):
    """Kinds of changes selected by the modified listings."""

    NEW = "new"
    """Exists on one side only, never transferred"""

    MODIFIED = "mod"
    """Transferred before, changed since"""

    DELETED = "del"
    """Transferred before, missing now"""


# =============================================================================
# Digest helpers
# =============================================================================


def new_digest() -> Any:
    """Return a hash object for streaming digest accumulation."""
    return hashlib.md5()


def encode_digest(hash_obj: Any) -> str:
    """Encode a finished hash object as base64."""
    return base64.b64encode(hash_obj.digest()).decode("ascii")


def generate_digest(data: bytes) -> str:
    """Generate the digest for a whole buffer.

    Examples:
        >>> generate_digest(b"hello")
        'XUFAKrxLKna5cZ2REBfFkg=='
    """
    hash_obj = new_digest()
    hash_obj.update(data)
    return encode_digest(hash_obj)


def generate_stream_digest(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Generate the digest for the remaining content of a binary stream."""
    hash_obj = new_digest()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        hash_obj.update(chunk)
    return encode_digest(hash_obj)


def generate_file_digest(file_path: PathLike) -> str:
    """Generate the digest for the content of a file."""
    with open(file_path, "rb") as f:
        return generate_stream_digest(f)


def compare_digests(digest1: Optional[str], digest2: Optional[str]) -> bool:
    """Compare two base64 digests, ignoring padding differences.

    Examples:
        >>> compare_digests("XUFAKrxLKna5cZ2REBfFkg==", "XUFAKrxLKna5cZ2REBfFkg")
        True
        >>> compare_digests("XUFAKrxLKna5cZ2REBfFkg==", None)
        False
    """
    if not digest1 or not digest2:
        return False
    if digest1 == digest2:
        return True
    try:
        return _decode(digest1) == _decode(digest2)
    except (binascii.Error, ValueError):
        return False


def _decode(digest: str) -> bytes:
    digest = digest.strip()
    return base64.b64decode(digest + "=" * (-len(digest) % 4))


def is_hashes_file(filename: Optional[str]) -> bool:
    """Check whether a file name is the ledger file."""
    if not filename:
        return False
    return os.path.basename(filename.replace("\\", "/")) == HASHES_FILENAME


class DigestingWriter:
    """Write-through wrapper that accumulates a digest of written bytes.

    Accumulation starts when ``begin`` is called, which a client does at
    the moment the transfer starts delivering bytes.
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._hash: Any = None
        self.bytes_written = 0

    def begin(self) -> None:
        """Start (or restart) digest accumulation."""
        self._hash = new_digest()
        self.bytes_written = 0

    @property
    def started(self) -> bool:
        return self._hash is not None

    def write(self, data: bytes) -> int:
        if self._hash is not None:
            self._hash.update(data)
            self.bytes_written += len(data)
        return self._stream.write(data)

    def flush(self) -> None:
        self._stream.flush()

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def close(self) -> None:
        if not self._stream.closed:
            self._stream.close()

    def digest(self) -> Optional[str]:
        """Digest of the bytes written since ``begin``, or None."""
        if self._hash is None:
            return None
        return encode_digest(self._hash)


# =============================================================================
# Ledger
# =============================================================================


class HashLedger:
    """Persisted digest and timestamp records per base directory.

    Entries are keyed by item (or resource) ID, so a draft and its ready
    counterpart keep separate records. All methods are thread-safe.
    """

    def __init__(self, filename: str = HASHES_FILENAME):
        """Initialize the ledger.

        Args:
            filename: Name of the ledger file inside each base directory
        """
        self.filename = filename
        self._lock = threading.RLock()
        self._cache: dict[str, dict[str, Any]] = {}

    def _key(self, base_path: PathLike) -> str:
        return str(Path(base_path).resolve())

    def get_ledger_file(self, base_path: PathLike) -> Path:
        """Return the ledger file for a base directory."""
        return Path(base_path) / self.filename

    def relative_path(self, base_path: PathLike, file_path: PathLike) -> str:
        """Return the path of a file relative to the base, with a leading '/'."""
        base = Path(base_path)
        path = Path(file_path)
        try:
            relative = path.relative_to(base)
        except ValueError:
            relative = Path(os.path.relpath(path, base))
        return normalize_path(relative.as_posix())

    def load(self, base_path: PathLike) -> dict[str, Any]:
        """Load the ledger data for a base directory.

        Args:
            base_path: Directory holding the ledger file

        Returns:
            Ledger data with 'version', 'entries' and 'lastPullTimestamp'
        """
        key = self._key(base_path)
        with self._lock:
            if key in self._cache:
                return self._cache[key]

            data: dict[str, Any] = {
                "version": HASHES_VERSION,
                "entries": {},
                _TIMESTAMP_KEY: None,
            }
            ledger_file = self.get_ledger_file(base_path)
            if ledger_file.exists():
                try:
                    with open(ledger_file, encoding="utf-8") as f:
                        stored = json.load(f)
                    if isinstance(stored, dict):
                        data["entries"] = dict(stored.get("entries") or {})
                        data[_TIMESTAMP_KEY] = stored.get(_TIMESTAMP_KEY)
                    logger.debug(
                        f"Loaded {len(data['entries'])} ledger entries "
                        f"from {ledger_file}"
                    )
                except (OSError, json.JSONDecodeError) as e:
                    logger.warning(f"Failed to load hash ledger {ledger_file}: {e}")

            self._cache[key] = data
            return data

    def _save(self, base_path: PathLike) -> None:
        ledger_file = self.get_ledger_file(base_path)
        data = self.load(base_path)
        tmp_file = ledger_file.with_name(ledger_file.name + ".tmp")
        try:
            ledger_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_file, ledger_file)
        except OSError as e:
            logger.warning(f"Failed to save hash ledger {ledger_file}: {e}")

    def clear_cache(self) -> None:
        """Forget cached ledger data so the next access reads from disk."""
        with self._lock:
            self._cache.clear()

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    def update_hashes(
        self,
        base_path: PathLike,
        file_path: PathLike,
        item: dict[str, Any],
        digest: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Record a verified transfer of an item.

        Args:
            base_path: Directory holding the ledger file
            file_path: Local file that was transferred
            item: Item metadata returned by the content hub
            digest: Digest of the local file, computed if not given

        Returns:
            The new ledger entry, or None if the item or file is unusable
        """
        item_id = item.get("id")
        path = Path(file_path)
        try:
            stat = path.stat()
            digest = digest or generate_file_digest(path)
        except OSError as e:
            logger.debug(f"Not updating ledger for {file_path}: {e}")
            return None
        if not item_id:
            return None

        relative = self.relative_path(base_path, path)
        entry: dict[str, Any] = {
            "path": relative,
            "digest": digest,
            "rev": item.get("rev"),
            "lastModified": item.get("lastModified"),
            "localLastModified": stat.st_mtime,
        }
        if item.get("resource"):
            entry["resource"] = item["resource"]
            entry["resourceDigest"] = digest

        with self._lock:
            entries = self.load(base_path)["entries"]
            # Drop stale entries for the same local path
            for key in [k for k, v in entries.items() if v.get("path") == relative]:
                del entries[key]
            entries[str(item_id)] = entry
            self._save(base_path)
        return entry

    def update_resource_hashes(
        self,
        base_path: PathLike,
        file_path: PathLike,
        resource: dict[str, Any],
        digest: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Record a verified transfer of a resource."""
        resource_id = resource.get("id")
        path = Path(file_path)
        try:
            stat = path.stat()
            digest = digest or generate_file_digest(path)
        except OSError as e:
            logger.debug(f"Not updating ledger for resource {file_path}: {e}")
            return None
        if not resource_id:
            return None

        entry = {
            "path": self.relative_path(base_path, path),
            "digest": digest,
            "localLastModified": stat.st_mtime,
            "contentType": resource.get("contentType"),
        }
        with self._lock:
            self.load(base_path)["entries"][str(resource_id)] = entry
            self._save(base_path)
        return entry

    def remove_hashes(self, base_path: PathLike, ids: list[str]) -> None:
        """Remove the entries with the given IDs."""
        with self._lock:
            entries = self.load(base_path)["entries"]
            for item_id in ids:
                entries.pop(str(item_id), None)
            self._save(base_path)

    def remove_hashes_by_path(self, base_path: PathLike, path: str) -> int:
        """Remove all entries for a relative path.

        Returns:
            Number of entries removed
        """
        relative = normalize_path(path)
        with self._lock:
            entries = self.load(base_path)["entries"]
            keys = [k for k, v in entries.items() if v.get("path") == relative]
            for key in keys:
                del entries[key]
            if keys:
                self._save(base_path)
        return len(keys)

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------

    def get_last_pull_timestamp(self, base_path: PathLike) -> Any:
        """Return the stored last-pull timestamp value (any stored format)."""
        return self.load(base_path).get(_TIMESTAMP_KEY)

    def set_last_pull_timestamp(self, base_path: PathLike, value: Any) -> None:
        """Store the last-pull timestamp value."""
        with self._lock:
            self.load(base_path)[_TIMESTAMP_KEY] = value
            self._save(base_path)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_hashes_for_file(
        self, base_path: PathLike, file_path: PathLike
    ) -> Optional[dict[str, Any]]:
        """Return the ledger entry for a local file, if any."""
        relative = self.relative_path(base_path, file_path)
        with self._lock:
            for entry in self.load(base_path)["entries"].values():
                if entry.get("path") == relative:
                    return dict(entry)
        return None

    def get_digest_for_file(
        self, base_path: PathLike, file_path: PathLike
    ) -> Optional[str]:
        entry = self.get_hashes_for_file(base_path, file_path)
        return entry.get("digest") if entry else None

    def get_resource_digest_for_file(
        self, base_path: PathLike, file_path: PathLike
    ) -> Optional[str]:
        entry = self.get_hashes_for_file(base_path, file_path)
        return entry.get("resourceDigest") if entry else None

    def get_resource_id_for_file(
        self, base_path: PathLike, file_path: PathLike
    ) -> Optional[str]:
        entry = self.get_hashes_for_file(base_path, file_path)
        return entry.get("resource") if entry else None

    def get_path_for_resource(
        self, base_path: PathLike, resource_id: str
    ) -> Optional[str]:
        """Return the relative path recorded for a resource ID."""
        with self._lock:
            entry = self.load(base_path)["entries"].get(str(resource_id))
        return entry.get("path") if entry else None

    def list_files(self, base_path: PathLike) -> list[dict[str, str]]:
        """List the IDs and relative paths of all recorded files."""
        with self._lock:
            entries = self.load(base_path)["entries"]
            return [
                {"id": key, "path": entry.get("path", "")}
                for key, entry in entries.items()
            ]

    def is_local_modified(
        self,
        flags: list[ChangeFlag],
        base_path: PathLike,
        file_path: PathLike,
    ) -> bool:
        """Check whether a local file is new or modified since its last transfer.

        Timestamps are compared first; the digest is only computed when the
        modification time differs. A file with a changed timestamp but an
        unchanged digest gets its recorded timestamp refreshed.

        Args:
            flags: NEW and/or MODIFIED
            base_path: Directory holding the ledger file
            file_path: Local file to check

        Returns:
            True if the file matches one of the flags
        """
        entry = self.get_hashes_for_file(base_path, file_path)
        try:
            stat: Optional[os.stat_result] = Path(file_path).stat()
        except OSError:
            stat = None

        if ChangeFlag.MODIFIED in flags and entry and stat:
            recorded_mtime = entry.get("localLastModified")
            if recorded_mtime is not None and stat.st_mtime != recorded_mtime:
                digest = generate_file_digest(file_path)
                if entry.get("digest") and not compare_digests(
                    digest, entry["digest"]
                ):
                    return True
                self._refresh_mtime(base_path, entry["path"], digest, stat.st_mtime)

        if ChangeFlag.NEW in flags and stat:
            if not entry or not entry.get("digest"):
                return True

        return False

    def _refresh_mtime(
        self, base_path: PathLike, relative: str, digest: str, mtime: float
    ) -> None:
        with self._lock:
            entries = self.load(base_path)["entries"]
            for entry in entries.values():
                if entry.get("path") == relative and compare_digests(
                    entry.get("digest"), digest
                ):
                    entry["localLastModified"] = mtime
            self._save(base_path)

    def is_remote_modified(
        self,
        flags: list[ChangeFlag],
        item: dict[str, Any],
        base_path: PathLike,
        file_path: PathLike,
    ) -> bool:
        """Check whether a remote item is new or modified since its last transfer.

        Args:
            flags: NEW and/or MODIFIED
            item: Remote item metadata
            base_path: Directory holding the ledger file
            file_path: Local file the item maps to

        Returns:
            True if the item matches one of the flags
        """
        entry = self.get_hashes_for_file(base_path, file_path)

        if ChangeFlag.MODIFIED in flags and entry:
            if item.get("rev") is not None and entry.get("rev") is not None:
                if item.get("rev") != entry.get("rev"):
                    return True
            elif item.get("digest") and not compare_digests(
                item.get("digest"), entry.get("digest")
            ):
                return True

        if ChangeFlag.NEW in flags and not entry:
            return True

        return False
