"""Shared fixtures: an in-memory content hub and engine wiring."""

import threading
from collections import defaultdict
from typing import Any, Optional

import pytest

from contentsync.context import SyncContext
from contentsync.events import EVENTS, EventBus
from contentsync.exceptions import NotFoundError
from contentsync.hashes import HashLedger, generate_digest
from contentsync.local_store import LocalAssetStore
from contentsync.sync.engine import SyncEngine
from contentsync.sync.options import SyncOptions


def make_item(
    path: str,
    content: bytes,
    status: str = "ready",
    is_system: bool = False,
    rev: str = "1",
    item_id: Optional[str] = None,
) -> dict[str, Any]:
    """Build item metadata as the content hub returns it."""
    item_id = item_id or f"id{path}"
    if status == "draft" and not item_id.endswith(":draft"):
        item_id += ":draft"
    return {
        "id": item_id,
        "path": path,
        "status": status,
        "isSystem": is_system,
        "digest": generate_digest(content),
        "resource": f"res-{item_id}",
        "rev": rev,
    }


class FakeCatalogClient:
    """In-memory content hub with cursor paging and call counting.

    Any non-empty page carries a cursor, so a listing ends with one empty
    page.
    """

    api_url = "https://hub.test/api"
    api_key = "test-key"

    def __init__(self) -> None:
        self.items: list[dict[str, Any]] = []
        self.contents: dict[str, bytes] = {}
        self.resources: list[dict[str, Any]] = []
        self.calls: dict[str, int] = defaultdict(int)
        self.pull_failures: dict[str, Exception] = {}
        self.digest_overrides: dict[str, str] = {}
        self.push_errors: list[Exception] = []
        self.delete_errors: list[Exception] = []
        self.pushed: list[dict[str, Any]] = []
        self.deleted: list[str] = []
        self.transfer_started: list[str] = []
        self._lock = threading.Lock()

    def add_item(self, path: str, content: bytes, **kwargs: Any) -> dict[str, Any]:
        item = make_item(path, content, **kwargs)
        self.items.append(item)
        self.contents[item["resource"]] = content
        return item

    def add_resource(self, resource_id: str, name: str, content: bytes) -> dict[str, Any]:
        resource = {
            "id": resource_id,
            "name": name,
            "digest": generate_digest(content),
        }
        self.resources.append(resource)
        self.contents[resource_id] = content
        return resource

    def _count(self, name: str) -> None:
        with self._lock:
            self.calls[name] += 1

    def _page(self, entries: list[dict[str, Any]], options: SyncOptions) -> list[dict]:
        start = int(options.cursor or 0)
        page = entries[start : start + options.limit]
        options.cursor = str(start + len(page)) if page else None
        return [dict(entry) for entry in page]

    def get_items(self, context, options):
        self._count("get_items")
        return self._page(self.items, options)

    def get_modified_items(self, context, options, last_modified=None):
        self._count("get_modified_items")
        return self._page(self.items, options)

    def get_item(self, context, item_id):
        self._count("get_item")
        for item in self.items:
            if item["id"] == item_id:
                return dict(item)
        raise NotFoundError(f"Not found: {item_id}")

    def get_item_by_path(self, context, path):
        self._count("get_item_by_path")
        for item in self.items:
            if item["path"] == path and item["status"] == "ready":
                return dict(item)
        raise NotFoundError(f"Not found: {path}")

    def pull_item(self, context, item, sink, on_transfer_start=None):
        self._count("pull_item")
        if item["path"] in self.pull_failures:
            raise self.pull_failures[item["path"]]
        if on_transfer_start is not None:
            on_transfer_start()
        with self._lock:
            self.transfer_started.append(item["path"])
        sink.write(self.contents[item["resource"]])
        result = dict(item)
        if item["path"] in self.digest_overrides:
            result["digest"] = self.digest_overrides[item["path"]]
        return result

    def push_item(
        self,
        context,
        is_raw,
        is_content_resource,
        replace_existing,
        resource_id,
        resource_digest,
        path,
        stream,
        length,
        options,
        metadata=None,
    ):
        self._count("push_item")
        with self._lock:
            if self.push_errors:
                raise self.push_errors.pop(0)
        content = stream.read()
        assert len(content) == length
        result = dict(metadata or {})
        new_id = f"id{path}"
        if result.get("status") == "draft":
            new_id += ":draft"
        result.setdefault("id", new_id)
        result.update(
            {
                "path": path,
                "resource": resource_id or f"res-{result['id']}",
                "digest": resource_digest,
                "rev": "2",
            }
        )
        with self._lock:
            self.pushed.append(
                {
                    "id": result["id"],
                    "path": path,
                    "content": content,
                    "replace_existing": replace_existing,
                    "is_content_resource": is_content_resource,
                }
            )
            self.contents[result["resource"]] = content
        return result

    def delete_item(self, context, item):
        self._count("delete_item")
        if self.delete_errors:
            raise self.delete_errors.pop(0)
        self.deleted.append(item["path"])
        self.items = [entry for entry in self.items if entry["id"] != item["id"]]
        return f"Deleted {item['path']}"

    def get_resource_list(self, context, options):
        self._count("get_resource_list")
        return self._page(self.resources, options)

    def get_resource_filename(self, context, resource_id):
        for resource in self.resources:
            if resource["id"] == resource_id:
                return resource["name"]
        raise NotFoundError(resource_id)

    def pull_resource(self, context, resource, sink, on_transfer_start=None):
        self._count("pull_resource")
        if on_transfer_start is not None:
            on_transfer_start()
        sink.write(self.contents[resource["id"]])
        return dict(resource)

    def push_resource(self, context, resource_id, name, stream, length, digest=None, content_type=None):
        self._count("push_resource")
        content = stream.read()
        self.contents[resource_id] = content
        return {"id": resource_id, "name": name, "digest": digest}


class EventRecorder:
    """Collects every published notification."""

    def __init__(self, bus: EventBus):
        self.events: list[tuple[str, tuple]] = []
        for name in EVENTS:
            bus.subscribe(name, self._recorder(name))

    def _recorder(self, name):
        def record(*args):
            self.events.append((name, args))

        return record

    def of(self, name: str) -> list[tuple]:
        return [args for event, args in self.events if event == name]


@pytest.fixture
def fake_client():
    """Create an empty in-memory content hub."""
    return FakeCatalogClient()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(event_bus)


@pytest.fixture
def context(event_bus, recorder):
    """Create a context whose notifications are recorded."""
    return SyncContext(events=event_bus, name="test")


@pytest.fixture
def options(tmp_path):
    """Create sync options for a temporary working directory without retry delays."""
    return SyncOptions(
        working_dir=tmp_path,
        retry_min_timeout=0,
        retry_max_timeout=0,
        concurrent_limit=1,
    )


@pytest.fixture
def engine(fake_client):
    """Create a sync engine on the in-memory content hub."""
    return SyncEngine(fake_client, LocalAssetStore(), HashLedger())
