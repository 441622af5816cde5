"""Reading and writing manifest files.

A manifest lists items and resources by ID::

    {
        "assets": {"<id>": {"id": "<id>", "path": "/css/main.css", "digest": "..."}},
        "resources": {"<id>": {"id": "<id>", "path": "/<id>/logo.png", "digest": "..."}}
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from ..exceptions import ManifestError
from ..models import Item, Resource

logger = logging.getLogger(__name__)

ASSETS_SECTION = "assets"
RESOURCES_SECTION = "resources"


def is_manifest_path(value: Union[str, Path]) -> bool:
    """Check whether a compare endpoint or argument names a manifest file."""
    return str(value).lower().endswith(".json")


def read_manifest(path: Union[str, Path]) -> dict[str, dict[str, Any]]:
    """Read a manifest file.

    Args:
        path: Manifest file

    Returns:
        Dict with 'assets' and 'resources' sections

    Raises:
        ManifestError: If the file is missing or malformed
    """
    manifest_path = Path(path)
    try:
        with open(manifest_path, encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}", str(path)) from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid manifest {path}: {e}", str(path)) from e

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {path} must hold an object", str(path))

    manifest: dict[str, dict[str, Any]] = {}
    for section in (ASSETS_SECTION, RESOURCES_SECTION):
        entries = data.get(section) or {}
        if not isinstance(entries, dict):
            raise ManifestError(
                f"Section '{section}' of manifest {path} must be an object",
                str(path),
            )
        manifest[section] = entries
    logger.debug(
        f"Read manifest {path} with {len(manifest[ASSETS_SECTION])} assets and "
        f"{len(manifest[RESOURCES_SECTION])} resources"
    )
    return manifest


def manifest_items(manifest: dict[str, dict[str, Any]]) -> list[dict[str, Any]]:
    """Return the asset entries of a manifest, each with its ID."""
    items = []
    for item_id, entry in manifest.get(ASSETS_SECTION, {}).items():
        if isinstance(entry, dict):
            items.append(dict(entry, id=entry.get("id") or item_id))
    return items


def manifest_resources(manifest: dict[str, dict[str, Any]]) -> list[dict[str, Any]]:
    resources = []
    for resource_id, entry in manifest.get(RESOURCES_SECTION, {}).items():
        if isinstance(entry, dict):
            resources.append(dict(entry, id=entry.get("id") or resource_id))
    return resources


def build_manifest(
    items: Iterable[Item],
    resources: Optional[Iterable[Resource]] = None,
) -> dict[str, dict[str, Any]]:
    """Build manifest data from items and resources."""
    manifest: dict[str, dict[str, Any]] = {ASSETS_SECTION: {}, RESOURCES_SECTION: {}}
    for item in items:
        manifest[ASSETS_SECTION][item.id] = {
            "id": item.id,
            "path": item.path,
            "digest": item.digest,
        }
    for resource in resources or []:
        manifest[RESOURCES_SECTION][resource.id] = {
            "id": resource.id,
            "path": resource.path,
            "digest": resource.digest,
        }
    return manifest


def write_manifest(
    path: Union[str, Path], manifest: dict[str, dict[str, Any]]
) -> Path:
    """Write manifest data to a file.

    Raises:
        ManifestError: If the file cannot be written
    """
    manifest_path = Path(path)
    try:
        manifest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, sort_keys=True)
    except OSError as e:
        raise ManifestError(f"Cannot write manifest {path}: {e}", str(path)) from e
    logger.info(f"Wrote manifest {manifest_path}")
    return manifest_path
