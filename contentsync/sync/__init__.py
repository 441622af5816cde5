"""Sync engine for content sync - listing, pull, push, delete and compare."""

from .comparator import Comparator
from .engine import SyncEngine
from .listing import AssetLister
from .manifests import build_manifest, read_manifest, write_manifest
from .options import SyncOptions
from .retry import can_delete_item, filter_retry_delete, filter_retry_push
from .timestamps import PullTimestamps

__all__ = [
    "SyncEngine",
    "SyncOptions",
    "AssetLister",
    "Comparator",
    "PullTimestamps",
    "build_manifest",
    "read_manifest",
    "write_manifest",
    "can_delete_item",
    "filter_retry_delete",
    "filter_retry_push",
]
