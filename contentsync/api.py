"""API clients for the content hub authoring and search services."""

from __future__ import annotations

import json
import logging
import os
import random
import time
from typing import TYPE_CHECKING, Any, BinaryIO, Callable

import httpx

from .config import config
from .exceptions import (
    ContentSyncConfigError,
    NotFoundError,
    PermanentTransportError,
    TransientTransportError,
    TransportError,
)
from .utils import DEFAULT_CHUNK_SIZE

if TYPE_CHECKING:
    from .context import SyncContext
    from .sync.options import SyncOptions

logger = logging.getLogger(__name__)

AUTHORING = "authoring/v1"

# Status codes that are expected to succeed on a later attempt
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

TransferStart = Callable[[], None]


def _chunks(stream: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Any:
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        yield chunk


class ContentHubClient:
    """Client for the content hub authoring API."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Optional API key (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum number of retries for idempotent requests
            retry_delay: Initial delay between retries in seconds
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or config.api_key
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.transport = transport

        if not self.api_key:
            raise ContentSyncConfigError(
                "API key not configured. "
                "Please set the CONTENTSYNC_API_KEY environment variable."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self.transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> ContentHubClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _url(self, endpoint: str) -> str:
        return f"{self.api_url}/{endpoint.lstrip('/')}"

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Jitter of +/- 25% avoids synchronized retries
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_for_response(self, response: httpx.Response) -> Exception:
        """Map an error response to an exception.

        Args:
            response: Response with an error status

        Returns:
            NotFoundError for 404, TransientTransportError for 429 and the
            retryable 5xx codes, PermanentTransportError otherwise
        """
        status_code = response.status_code
        body: Any = None
        error_msg = f"API request failed with status {status_code}"
        try:
            if response.content:
                body = response.json()
                if isinstance(body, dict):
                    msg = body.get("message") or body.get("error")
                    if isinstance(msg, str):
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Not JSON, keep the status based message
            body = None

        if status_code == 404:
            return NotFoundError(f"Not found: {response.request.url.path}")
        if status_code in TRANSIENT_STATUS_CODES:
            return TransientTransportError(error_msg, status_code, body)
        return PermanentTransportError(error_msg, status_code, body)

    def _parse(self, response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise PermanentTransportError(
                "Invalid JSON response from server",
                response.status_code,
            ) from e

    def _request(
        self, method: str, endpoint: str, retry: bool | None = None, **kwargs: Any
    ) -> Any:
        """Make an API request.

        GET requests are retried on transient failures. Other requests are
        sent once; their callers own the retry policy.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            retry: Override whether transient failures are retried
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Raises:
            TransportError: If the request fails
            NotFoundError: If the endpoint returns 404
        """
        url = self._url(endpoint)
        client = self._get_client()
        if retry is None:
            retry = method.upper() == "GET"
        attempts = self.max_retries + 1 if retry else 1

        for attempt in range(attempts):
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return self._parse(response)
            except httpx.HTTPStatusError as e:
                error: Exception = self._error_for_response(e.response)
                cause: Exception = e
            except httpx.RequestError as e:
                error = TransientTransportError(f"Network error: {e}")
                cause = e

            if isinstance(error, TransientTransportError) and attempt + 1 < attempts:
                delay = self._calculate_retry_delay(attempt)
                logger.debug(
                    f"{method} {endpoint} failed ({error}), retrying in {delay:.2f}s"
                )
                time.sleep(delay)
                continue
            raise error from cause

        raise TransportError("Request failed after all retry attempts")

    def _stream_into(
        self,
        endpoint: str,
        sink: BinaryIO,
        on_transfer_start: TransferStart | None = None,
    ) -> httpx.Headers:
        """Stream a GET response body into a sink.

        ``on_transfer_start`` runs once the response status was accepted and
        before the first byte is written.
        """
        client = self._get_client()
        try:
            with client.stream("GET", self._url(endpoint)) as response:
                if not response.is_success:
                    response.read()
                    raise self._error_for_response(response)
                if on_transfer_start is not None:
                    on_transfer_start()
                for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
                    if chunk:
                        sink.write(chunk)
                return response.headers
        except httpx.RequestError as e:
            raise TransientTransportError(f"Network error during download: {e}") from e

    # =========================
    # Items
    # =========================

    def _get_page(
        self, endpoint: str, options: SyncOptions, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        params = dict(params)
        params["limit"] = options.limit
        if options.cursor:
            params["cursor"] = options.cursor
        data = self._request("GET", endpoint, params=params)
        if not isinstance(data, dict):
            data = {}
        items = data.get("items") or []
        options.cursor = data.get("cursor") or None
        logger.debug(
            f"Fetched {len(items)} entries from {endpoint}, "
            f"next cursor: {options.cursor}"
        )
        return items

    def get_items(
        self, context: SyncContext, options: SyncOptions
    ) -> list[dict[str, Any]]:
        """Fetch one page of items.

        The continuation cursor of the next page is stored in
        ``options.cursor`` (None when no page remains).

        Args:
            context: Sync context
            options: Options providing limit and cursor

        Returns:
            Item metadata of the page
        """
        return self._get_page(f"{AUTHORING}/assets", options, {})

    def get_modified_items(
        self,
        context: SyncContext,
        options: SyncOptions,
        last_modified: str | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch one page of items modified since a timestamp."""
        params = {"lastModified": last_modified} if last_modified else {}
        return self._get_page(f"{AUTHORING}/assets/views/by-modified", options, params)

    def get_item(self, context: SyncContext, item_id: str) -> dict[str, Any]:
        """Get the metadata of a single item.

        Raises:
            NotFoundError: If the item does not exist
        """
        return self._request("GET", f"{AUTHORING}/assets/{item_id}")

    def get_item_by_path(self, context: SyncContext, path: str) -> dict[str, Any]:
        return self._request("GET", f"{AUTHORING}/assets/by-path", params={"path": path})

    def pull_item(
        self,
        context: SyncContext,
        item: dict[str, Any],
        sink: BinaryIO,
        on_transfer_start: TransferStart | None = None,
    ) -> dict[str, Any]:
        """Stream the content of an item into a sink.

        Args:
            context: Sync context
            item: Item metadata (must reference a resource)
            sink: Binary stream receiving the content
            on_transfer_start: Called once before the first byte is written

        Returns:
            The item metadata, with the digest asserted by the server
        """
        resource_id = item.get("resource")
        if not resource_id:
            raise PermanentTransportError(
                f"Item {item.get('id')} has no resource to download"
            )
        headers = self._stream_into(
            f"{AUTHORING}/resources/{resource_id}", sink, on_transfer_start
        )
        result = dict(item)
        if headers.get("Content-MD5"):
            result["digest"] = headers["Content-MD5"]
        return result

    def push_item(
        self,
        context: SyncContext,
        is_raw: bool,
        is_content_resource: bool,
        replace_existing: bool,
        resource_id: str | None,
        resource_digest: str | None,
        path: str,
        stream: BinaryIO,
        length: int,
        options: SyncOptions,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Upload the content of an item and create or update its record.

        The stream is consumed once; the request is not retried here.

        Args:
            context: Sync context
            is_raw: Upload the content only, without an item record
            is_content_resource: The item is a content asset backed by a resource
            replace_existing: Replace the content of ``resource_id``
            resource_id: Resource of the prior remote record, if any
            resource_digest: Digest of the content being uploaded
            path: Item path
            stream: Binary stream with the content
            length: Content length in bytes
            options: Sync options
            metadata: Item metadata to send with the record

        Returns:
            Metadata of the created or updated item (or resource when raw)
        """
        name = os.path.basename(path)
        headers = {
            "Content-Length": str(length),
            "Content-Type": "application/octet-stream",
        }
        if resource_digest:
            headers["Content-MD5"] = resource_digest

        if resource_id and is_content_resource and not replace_existing:
            # Unchanged content: only the record is updated
            resource: dict[str, Any] = {"id": resource_id, "digest": resource_digest}
        elif resource_id and replace_existing:
            resource = self._request(
                "PUT",
                f"{AUTHORING}/resources/{resource_id}",
                params={"name": name, "md5": resource_digest},
                content=_chunks(stream),
                headers=headers,
            )
        else:
            resource = self._request(
                "POST",
                f"{AUTHORING}/resources",
                params={"name": name},
                content=_chunks(stream),
                headers=headers,
            )

        if is_raw:
            return resource

        body = dict(metadata or {})
        body["path"] = path
        body["resource"] = resource.get("id") or resource_id
        if resource_digest:
            body["digest"] = resource_digest
        if body.get("id"):
            return self._request(
                "PUT", f"{AUTHORING}/assets/{body['id']}", json=body, retry=False
            )
        return self._request("POST", f"{AUTHORING}/assets", json=body, retry=False)

    def delete_item(self, context: SyncContext, item: dict[str, Any]) -> str:
        """Delete an item.

        Returns:
            Confirmation message
        """
        self._request("DELETE", f"{AUTHORING}/assets/{item['id']}")
        return f"Deleted {item.get('path') or item['id']}"

    # =========================
    # Resources
    # =========================

    def get_resource_list(
        self, context: SyncContext, options: SyncOptions
    ) -> list[dict[str, Any]]:
        """Fetch one page of resources (cursor handling as in get_items)."""
        return self._get_page(f"{AUTHORING}/resources/views/by-created", options, {})

    def get_resource_filename(self, context: SyncContext, resource_id: str) -> str:
        """Get the file name of a resource."""
        data = self._request("GET", f"{AUTHORING}/resources/{resource_id}")
        name = data.get("name") if isinstance(data, dict) else None
        return name or resource_id

    def pull_resource(
        self,
        context: SyncContext,
        resource: dict[str, Any],
        sink: BinaryIO,
        on_transfer_start: TransferStart | None = None,
    ) -> dict[str, Any]:
        headers = self._stream_into(
            f"{AUTHORING}/resources/{resource['id']}", sink, on_transfer_start
        )
        result = dict(resource)
        if headers.get("Content-MD5"):
            result["digest"] = headers["Content-MD5"]
        return result

    def push_resource(
        self,
        context: SyncContext,
        resource_id: str,
        name: str,
        stream: BinaryIO,
        length: int,
        digest: str | None = None,
        content_type: str | None = None,
    ) -> dict[str, Any]:
        """Upload the content of a resource under its ID."""
        headers = {
            "Content-Length": str(length),
            "Content-Type": content_type or "application/octet-stream",
        }
        if digest:
            headers["Content-MD5"] = digest
        params: dict[str, Any] = {"name": name}
        if digest:
            params["md5"] = digest
        return self._request(
            "PUT",
            f"{AUTHORING}/resources/{resource_id}",
            params=params,
            content=_chunks(stream),
            headers=headers,
        )


class SearchClient:
    """Client for the content hub search service."""

    def __init__(self, client: ContentHubClient):
        self.client = client

    def search(
        self, context: SyncContext, query_options: dict[str, Any]
    ) -> dict[str, Any]:
        """Run a search query.

        Args:
            context: Sync context
            query_options: Query parameters (q, fq, fl, rows, start)

        Returns:
            Response with a 'documents' list
        """
        data = self.client._request(
            "GET", f"{AUTHORING}/search", params=query_options
        )
        return data if isinstance(data, dict) else {"documents": []}

    def search_items(
        self, context: SyncContext, query_options: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Run a search and return the embedded item documents."""
        items: list[dict[str, Any]] = []
        for entry in self.search(context, query_options).get("documents") or []:
            document = entry.get("document") if isinstance(entry, dict) else None
            if isinstance(document, str):
                try:
                    document = json.loads(document)
                except ValueError:
                    logger.warning("Skipping search result with invalid document")
                    continue
            if isinstance(document, dict):
                items.append(document)
        return items
