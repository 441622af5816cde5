"""Data models for content hub items and sync results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

DRAFT_ID_SUFFIX = ":draft"

# Paths of content assets start with this folder
CONTENT_RESOURCE_DIRECTORY = "dxdam"


def is_content_path(path: Optional[str]) -> bool:
    """Check whether a path belongs to a content asset.

    Examples:
        >>> is_content_path("/dxdam/images/logo.png")
        True
        >>> is_content_path("/css/main.css")
        False
    """
    if not path:
        return False
    return path.replace("\\", "/").lstrip("/").startswith(
        CONTENT_RESOURCE_DIRECTORY + "/"
    )


class AssetStatus(str, Enum):
    """Lifecycle state of an item."""

    DRAFT = "draft"
    """Work-in-progress counterpart of a published item"""

    READY = "ready"
    """Published item"""


class AssetTypes(str, Enum):
    """Asset categories an operation can be restricted to."""

    WEB = "web"
    """Web assets (plain files such as scripts, styles, images)"""

    CONTENT = "content"
    """Content assets (binaries referenced by structured content)"""

    BOTH = "both"
    """Web and content assets"""


@dataclass
class Item:
    """An asset on the content hub.

    Draft and ready versions of an asset are separate items that share
    the same path.
    """

    id: str
    """Item ID (draft IDs end with ':draft')"""

    path: str
    """Path of the asset, starting with '/'"""

    status: AssetStatus = AssetStatus.READY
    """Lifecycle state"""

    is_system: bool = False
    """Platform-owned item that is never transferred"""

    digest: Optional[str] = None
    """Base64 MD5 digest of the binary content"""

    resource_id: Optional[str] = None
    """ID of the resource holding the binary content"""

    rev: Optional[str] = None
    """Revision marker used for remote change detection"""

    last_modified: Optional[str] = None
    """ISO timestamp of the last remote modification"""

    raw: dict[str, Any] = field(default_factory=dict)
    """Metadata exactly as returned by the API"""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Item":
        """Create an Item from API metadata.

        Args:
            data: Item metadata as returned by the content hub

        Returns:
            Item instance
        """
        item_id = str(data.get("id", ""))
        status_value = data.get("status")
        if status_value == AssetStatus.DRAFT.value or item_id.endswith(
            DRAFT_ID_SUFFIX
        ):
            status = AssetStatus.DRAFT
        else:
            status = AssetStatus.READY

        return cls(
            id=item_id,
            path=data.get("path") or "",
            status=status,
            is_system=bool(data.get("isSystem", False)),
            digest=data.get("digest"),
            resource_id=data.get("resource"),
            rev=data.get("rev"),
            last_modified=data.get("lastModified"),
            raw=dict(data),
        )

    @property
    def is_draft(self) -> bool:
        """True for the draft version of an asset."""
        return self.status == AssetStatus.DRAFT

    def to_dict(self) -> dict[str, Any]:
        """Return the item as API metadata."""
        data = dict(self.raw)
        data.update(
            {
                "id": self.id,
                "path": self.path,
                "status": self.status.value,
            }
        )
        if self.is_system:
            data["isSystem"] = True
        if self.digest is not None:
            data["digest"] = self.digest
        if self.resource_id is not None:
            data["resource"] = self.resource_id
        if self.rev is not None:
            data["rev"] = self.rev
        return data


@dataclass
class Resource:
    """A binary payload referenced by content items."""

    id: str
    """Resource ID"""

    name: str
    """File name of the resource"""

    digest: Optional[str] = None
    """Base64 MD5 digest of the content"""

    content_type: Optional[str] = None
    """MIME type reported by the content hub"""

    raw: dict[str, Any] = field(default_factory=dict)
    """Metadata exactly as returned by the API"""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Resource":
        """Create a Resource from API metadata."""
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            digest=data.get("digest"),
            content_type=data.get("contentType"),
            raw=dict(data),
        )

    @property
    def path(self) -> str:
        """Local path of the resource relative to the resources folder."""
        return f"/{self.id}/{self.name}" if self.name else f"/{self.id}"


@dataclass
class ChangeRecord:
    """Outcome of one transfer attempt.

    Exactly one of ``metadata`` and ``error`` is set.
    """

    path: str
    """Path of the item the transfer was attempted for"""

    metadata: Optional[dict[str, Any]] = None
    """Resulting metadata on success"""

    error: Optional[Exception] = None
    """Error on failure"""

    @property
    def ok(self) -> bool:
        """True if the transfer succeeded."""
        return self.error is None


@dataclass
class DiffResult:
    """Summary of a compare operation."""

    diff_count: int = 0
    """Number of added, removed and differing entries"""

    total_count: int = 0
    """Number of unique paths across both sides"""

    def to_dict(self) -> dict[str, int]:
        return {"diffCount": self.diff_count, "totalCount": self.total_count}
