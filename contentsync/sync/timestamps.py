"""Last-pull timestamps per asset category and lifecycle state."""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..models import AssetStatus, AssetTypes
from ..utils import get_oldest_timestamp

_KEYS = {
    AssetTypes.WEB: "webAssets",
    AssetTypes.CONTENT: "contentAssets",
}


def _empty_cells() -> dict[str, Optional[str]]:
    return {AssetStatus.DRAFT.value: None, AssetStatus.READY.value: None}


@dataclass
class PullTimestamps:
    """Timestamps of the last unfiltered bulk pull.

    One cell per (category, lifecycle state) pair. Stored as::

        {"webAssets": {"draft": ts, "ready": ts},
         "contentAssets": {"draft": ts, "ready": ts}}

    Older ledgers stored a single timestamp, or one timestamp per
    category; both formats are still read.
    """

    web_assets: dict[str, Optional[str]] = field(default_factory=_empty_cells)
    content_assets: dict[str, Optional[str]] = field(default_factory=_empty_cells)

    @classmethod
    def from_stored(cls, value: Any) -> "PullTimestamps":
        """Create the matrix from the value stored in the hash ledger.

        Args:
            value: None, a legacy scalar timestamp, or a (partial) dict

        Returns:
            PullTimestamps instance
        """
        timestamps = cls()
        if not value:
            return timestamps

        if isinstance(value, str):
            # A legacy scalar timestamp applies to every cell
            for cells in (timestamps.web_assets, timestamps.content_assets):
                cells[AssetStatus.DRAFT.value] = value
                cells[AssetStatus.READY.value] = value
            return timestamps

        if isinstance(value, dict):
            for category in (AssetTypes.WEB, AssetTypes.CONTENT):
                stored = value.get(_KEYS[category])
                if stored is None:
                    continue
                cells = timestamps._cells(category)
                if isinstance(stored, str):
                    cells[AssetStatus.DRAFT.value] = stored
                    cells[AssetStatus.READY.value] = stored
                elif isinstance(stored, dict):
                    for state in (AssetStatus.DRAFT, AssetStatus.READY):
                        if stored.get(state.value):
                            cells[state.value] = stored[state.value]
        return timestamps

    def to_stored(self) -> dict[str, dict[str, Optional[str]]]:
        """Return the value to store in the hash ledger."""
        return {
            _KEYS[AssetTypes.WEB]: dict(self.web_assets),
            _KEYS[AssetTypes.CONTENT]: dict(self.content_assets),
        }

    def _cells(self, category: AssetTypes) -> dict[str, Optional[str]]:
        if category == AssetTypes.WEB:
            return self.web_assets
        if category == AssetTypes.CONTENT:
            return self.content_assets
        raise ValueError(f"No timestamp cells for category {category}")

    def get(self, category: AssetTypes, state: AssetStatus) -> Optional[str]:
        """Return a single cell."""
        return self._cells(category)[state.value]

    def advance(
        self,
        categories: list[AssetTypes],
        states: list[AssetStatus],
        timestamp: str,
    ) -> None:
        """Set the cells of the processed categories and states.

        Web assets have no draft/ready split and are processed whatever
        the state filter, so both web cells always advance together.
        """
        for category in categories:
            cells = self._cells(category)
            if category == AssetTypes.WEB:
                cells.update(dict.fromkeys(cells, timestamp))
                continue
            for state in states:
                cells[state.value] = timestamp

    def earliest(
        self,
        categories: list[AssetTypes],
        states: list[AssetStatus],
    ) -> Optional[str]:
        """Return the earliest of the relevant cells.

        Returns None if any relevant cell was never recorded.
        """
        return get_oldest_timestamp(
            [self.get(category, state) for category in categories for state in states]
        )
