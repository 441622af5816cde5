"""Content Sync - synchronize a local folder with a content hub."""

from .api import ContentHubClient, SearchClient
from .context import SyncContext
from .events import EventBus
from .exceptions import (
    ContentSyncConfigError,
    ContentSyncError,
    IntegrityError,
    LocalIOError,
    ManifestError,
    NotFoundError,
    PermanentTransportError,
    TransientTransportError,
    TransportError,
    ValidationError,
)
from .hashes import ChangeFlag, HashLedger
from .local_store import LocalAssetStore
from .models import AssetStatus, AssetTypes, ChangeRecord, DiffResult, Item, Resource
from .sync import Comparator, SyncEngine, SyncOptions

__all__ = [
    "ContentHubClient",
    "SearchClient",
    "SyncContext",
    "EventBus",
    "SyncEngine",
    "SyncOptions",
    "Comparator",
    "HashLedger",
    "ChangeFlag",
    "LocalAssetStore",
    "AssetStatus",
    "AssetTypes",
    "ChangeRecord",
    "DiffResult",
    "Item",
    "Resource",
    "ContentSyncError",
    "ContentSyncConfigError",
    "IntegrityError",
    "LocalIOError",
    "ManifestError",
    "NotFoundError",
    "PermanentTransportError",
    "TransientTransportError",
    "TransportError",
    "ValidationError",
]
