"""Unit tests for the content hub API clients."""

import io
import json
from unittest.mock import patch

import httpx
import pytest

from contentsync.api import ContentHubClient, SearchClient
from contentsync.context import SyncContext
from contentsync.exceptions import (
    ContentSyncConfigError,
    NotFoundError,
    PermanentTransportError,
    TransientTransportError,
)
from contentsync.hashes import generate_digest
from contentsync.sync.options import SyncOptions

API_URL = "https://hub.test/api"


def make_client(handler, **kwargs):
    """Create a client whose requests are answered by ``handler``."""
    return ContentHubClient(
        api_key="test_key",
        api_url=API_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture
def context():
    return SyncContext()


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("contentsync.api.time.sleep") as sleep:
        yield sleep


class TestContentHubClient:
    """Tests for client initialization."""

    def test_init_with_api_key(self):
        client = ContentHubClient(api_key="test_key", api_url=API_URL + "/")
        assert client.api_key == "test_key"
        assert client.api_url == API_URL

    def test_init_without_api_key_raises_error(self):
        """Test that initializing without API key raises error."""
        with patch("contentsync.api.config") as mock_config:
            mock_config.api_key = None
            mock_config.api_url = API_URL
            with pytest.raises(ContentSyncConfigError, match="API key not configured"):
                ContentHubClient(api_key=None)

    def test_authorization_header(self, context):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"id": "1"})

        with make_client(handler) as client:
            client.get_item(context, "1")

        assert seen["auth"] == "Bearer test_key"


class TestRequest:
    """Tests for error mapping and retries in _request."""

    def test_not_found(self, context):
        client = make_client(lambda request: httpx.Response(404))

        with pytest.raises(NotFoundError):
            client.get_item(context, "missing")

    def test_transient_get_is_retried(self, context, no_sleep):
        """Test a GET answered with 503 is retried."""
        responses = [httpx.Response(503), httpx.Response(200, json={"id": "1"})]
        client = make_client(lambda request: responses.pop(0))

        assert client.get_item(context, "1") == {"id": "1"}
        assert no_sleep.call_count == 1

    def test_transient_get_gives_up(self, context):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502)

        client = make_client(handler, max_retries=2)

        with pytest.raises(TransientTransportError) as exc_info:
            client.get_item(context, "1")

        assert exc_info.value.status_code == 502
        assert len(calls) == 3

    def test_permanent_error_keeps_body(self, context):
        """Test vendor codes in the body are available on the error."""
        body = {"message": "forbidden", "errors": [{"code": 3193}]}
        client = make_client(lambda request: httpx.Response(403, json=body))

        with pytest.raises(PermanentTransportError, match="forbidden") as exc_info:
            client.get_item(context, "1")

        assert exc_info.value.status_code == 403
        assert exc_info.value.vendor_codes == [3193]

    def test_delete_is_not_retried(self, context):
        calls = []

        def handler(request):
            calls.append(request.method)
            return httpx.Response(503)

        client = make_client(handler)

        with pytest.raises(TransientTransportError):
            client.delete_item(context, {"id": "1", "path": "/css/a.css"})
        assert calls == ["DELETE"]

    def test_network_error(self, context):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, max_retries=0)

        with pytest.raises(TransientTransportError, match="Network error") as exc_info:
            client.get_item(context, "1")
        assert exc_info.value.status_code is None

    def test_invalid_json(self, context):
        client = make_client(lambda request: httpx.Response(200, content=b"not json"))

        with pytest.raises(PermanentTransportError, match="Invalid JSON"):
            client.get_item(context, "1")


class TestPaging:
    """Tests for paged listings."""

    def test_get_items_sets_cursor(self, context):
        seen = []

        def handler(request):
            seen.append(dict(request.url.params))
            return httpx.Response(200, json={"items": [{"id": "1"}], "cursor": "c2"})

        client = make_client(handler)
        options = SyncOptions(limit=10, cursor="c1")

        items = client.get_items(context, options)

        assert items == [{"id": "1"}]
        assert options.cursor == "c2"
        assert seen == [{"limit": "10", "cursor": "c1"}]

    def test_last_page_clears_cursor(self, context):
        client = make_client(lambda request: httpx.Response(200, json={"items": []}))
        options = SyncOptions(cursor="c1")

        assert client.get_items(context, options) == []
        assert options.cursor is None

    def test_modified_items_send_timestamp(self, context):
        seen = []

        def handler(request):
            seen.append((request.url.path, request.url.params.get("lastModified")))
            return httpx.Response(200, json={"items": []})

        client = make_client(handler)
        client.get_modified_items(context, SyncOptions(), "2024-01-01T00:00:00Z")

        assert seen == [
            ("/api/authoring/v1/assets/views/by-modified", "2024-01-01T00:00:00Z")
        ]


class TestTransfers:
    """Tests for streamed downloads and uploads."""

    def test_pull_item_streams_after_start(self, context):
        """Test content is streamed into the sink after the start callback."""
        events = []

        def handler(request):
            assert request.url.path == "/api/authoring/v1/resources/r1"
            return httpx.Response(
                200, content=b"hello", headers={"Content-MD5": generate_digest(b"hello")}
            )

        class Sink(io.BytesIO):
            def write(self, data):
                events.append("write")
                return super().write(data)

        sink = Sink()
        client = make_client(handler)

        result = client.pull_item(
            context,
            {"id": "1", "resource": "r1", "digest": "stale"},
            sink,
            on_transfer_start=lambda: events.append("start"),
        )

        assert sink.getvalue() == b"hello"
        assert events[0] == "start"
        assert result["digest"] == generate_digest(b"hello")

    def test_pull_item_error_before_start(self, context):
        """Test a failed download never signals the transfer start."""
        started = []
        client = make_client(lambda request: httpx.Response(500))

        with pytest.raises(TransientTransportError):
            client.pull_item(
                context,
                {"id": "1", "resource": "r1"},
                io.BytesIO(),
                on_transfer_start=lambda: started.append(True),
            )
        assert started == []

    def test_pull_item_without_resource(self, context):
        client = make_client(lambda request: httpx.Response(200))

        with pytest.raises(PermanentTransportError):
            client.pull_item(context, {"id": "1"}, io.BytesIO())

    def test_push_new_item(self, context):
        """Test a new item uploads a resource and creates the record."""
        requests = []

        def handler(request):
            requests.append((request.method, request.url.path, request.read()))
            if request.url.path.endswith("/resources"):
                return httpx.Response(201, json={"id": "r9"})
            return httpx.Response(201, json=json.loads(request.content))

        client = make_client(handler)
        result = client.push_item(
            context,
            is_raw=False,
            is_content_resource=True,
            replace_existing=False,
            resource_id=None,
            resource_digest="abc",
            path="/dxdam/a/b.jpg",
            stream=io.BytesIO(b"JPG"),
            length=3,
            options=SyncOptions(),
        )

        assert [(method, path) for method, path, _ in requests] == [
            ("POST", "/api/authoring/v1/resources"),
            ("POST", "/api/authoring/v1/assets"),
        ]
        assert requests[0][2] == b"JPG"
        assert result == {"path": "/dxdam/a/b.jpg", "resource": "r9", "digest": "abc"}

    def test_push_unchanged_content_resource_skips_upload(self, context):
        requests = []

        def handler(request):
            requests.append((request.method, request.url.path))
            return httpx.Response(200, json={"id": "1", "rev": "2"})

        client = make_client(handler)
        client.push_item(
            context,
            is_raw=False,
            is_content_resource=True,
            replace_existing=False,
            resource_id="r1",
            resource_digest="abc",
            path="/dxdam/a/b.jpg",
            stream=io.BytesIO(b"JPG"),
            length=3,
            options=SyncOptions(),
            metadata={"id": "1"},
        )

        assert requests == [("PUT", "/api/authoring/v1/assets/1")]

    def test_push_replaces_resource(self, context):
        requests = []

        def handler(request):
            requests.append((request.method, request.url.path))
            return httpx.Response(200, json={"id": "r1"})

        client = make_client(handler)
        client.push_item(
            context,
            is_raw=True,
            is_content_resource=True,
            replace_existing=True,
            resource_id="r1",
            resource_digest="abc",
            path="/dxdam/a/b.jpg",
            stream=io.BytesIO(b"JPG"),
            length=3,
            options=SyncOptions(),
        )

        assert requests == [("PUT", "/api/authoring/v1/resources/r1")]

    def test_push_is_not_retried(self, context):
        """Test uploads are sent once so the caller can reopen the stream."""
        calls = []

        def handler(request):
            calls.append(request.method)
            return httpx.Response(503)

        client = make_client(handler)

        with pytest.raises(TransientTransportError):
            client.push_resource(context, "r1", "logo.png", io.BytesIO(b"PNG"), 3)
        assert calls == ["PUT"]

    def test_get_resource_filename(self, context):
        client = make_client(
            lambda request: httpx.Response(200, json={"id": "r1", "name": "logo.png"})
        )

        assert client.get_resource_filename(context, "r1") == "logo.png"


class TestSearchClient:
    """Tests for SearchClient."""

    def test_search_items_parses_documents(self, context):
        """Test embedded JSON documents are decoded and invalid ones skipped."""
        documents = [
            {"document": json.dumps({"id": "1", "path": "/css/a.css"})},
            {"document": {"id": "2", "path": "/css/b.css"}},
            {"document": "{broken"},
        ]
        seen = []

        def handler(request):
            seen.append(request.url.params.get_list("fq"))
            return httpx.Response(200, json={"documents": documents})

        search = SearchClient(make_client(handler))

        items = search.search_items(
            context, {"q": "*:*", "fq": ["classification:asset", "path:\\/css*"]}
        )

        assert [item["id"] for item in items] == ["1", "2"]
        assert seen == [["classification:asset", "path:\\/css*"]]
