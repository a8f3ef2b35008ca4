"""
RankedList — the single ordered sequence of ranked songs.

Invariants (checked by find_violations()):
  - Band contiguity: Love prefix, then Fine, then Dislike.
  - Within-band order only ever comes from comparisons. Nothing in this
    module sorts by a key other than band order.
  - Every item's score equals RankingMath.score_at(band, position, size).

Only RankingEngine mutates a RankedList.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Iterator
from uuid import UUID, uuid4

from encore.services.ranking_math import Band, RankingMath, bands_in_order


def normalize_key(value: str) -> str:
    """Case- and whitespace-insensitive form used for duplicate detection."""
    return " ".join(value.split()).lower()


@dataclass
class RankedItem:
    """
    One ranked song.

    title / artist are kept as fields for duplicate detection; everything
    else the catalog returns (album, artwork_url, catalog_id, …) lives in
    *attributes* and is never interpreted by the ranking core.
    """

    title: str
    artist: str
    id: UUID = field(default_factory=uuid4)
    band: Band | None = None
    score: float = 0.0
    attributes: dict[str, Any] = field(default_factory=dict)

    def matches(self, title: str, artist: str) -> bool:
        return (
            normalize_key(self.title) == normalize_key(title)
            and normalize_key(self.artist) == normalize_key(artist)
        )

    def copy(self) -> "RankedItem":
        return replace(self, attributes=dict(self.attributes))


class RankedList:
    """Ordered, zero-indexed sequence of RankedItem."""

    def __init__(self, items: list[RankedItem] | None = None) -> None:
        self._items: list[RankedItem] = list(items or [])

    # ── Read helpers ──────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[RankedItem]:
        return iter(self._items)

    def __getitem__(self, index: int) -> RankedItem:
        return self._items[index]

    def items(self) -> list[RankedItem]:
        """Shallow copy of the current order."""
        return list(self._items)

    def index_of(self, item_id: UUID) -> int | None:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return None

    def find_by_title_artist(self, title: str, artist: str) -> RankedItem | None:
        for item in self._items:
            if item.matches(title, artist):
                return item
        return None

    def members(self, band: Band) -> list[RankedItem]:
        return [item for item in self._items if item.band == band]

    def band_range(self, band: Band) -> tuple[int, int]:
        """
        Return (first, last_exclusive) of the indices occupied by *band*.

        For an empty band the range is empty and sits where the band would
        start: right after every item of a higher band.
        """
        first = None
        last_exclusive = None
        for index, item in enumerate(self._items):
            if item.band == band:
                if first is None:
                    first = index
                last_exclusive = index + 1
        if first is None:
            start = self.band_start(band)
            return start, start
        return first, last_exclusive

    def band_start(self, band: Band) -> int:
        """Index where *band* begins: count of higher-band items."""
        return sum(
            1
            for item in self._items
            if item.band is not None and item.band.order() < band.order()
        )

    # ── Mutations ─────────────────────────────────────────────────────────────

    def insert(self, item: RankedItem, at: int) -> None:
        """
        Insert *item* at index *at*, shifting later items down.

        The caller is responsible for choosing an index that keeps bands contiguous.
        """
        self._items.insert(at, item)

    def remove(self, item_id: UUID) -> RankedItem | None:
        """Remove by identity. Returns None if the id is absent."""
        index = self.index_of(item_id)
        if index is None:
            return None
        return self._items.pop(index)

    def reestablish_band_contiguity(self) -> bool:
        """
        Stable partition by band order: Love items first, then Fine, then
        Dislike, preserving the relative order inside each band.

        Returns True if the order changed.
        """
        partitioned: list[RankedItem] = []
        for band in bands_in_order():
            partitioned.extend(item for item in self._items if item.band == band)
        # Items without a band cannot be placed; keep them at the end.
        partitioned.extend(item for item in self._items if item.band is None)

        changed = [item.id for item in partitioned] != [item.id for item in self._items]
        self._items = partitioned
        return changed

    # ── Invariant checks ──────────────────────────────────────────────────────

    def find_violations(self) -> list[str]:
        """Return a description of every broken invariant (empty when sound)."""
        violations: list[str] = []

        seen_ids: set[UUID] = set()
        previous_order = -1
        for index, item in enumerate(self._items):
            if item.id in seen_ids:
                violations.append(f"duplicate id {item.id} at index {index}")
            seen_ids.add(item.id)

            if item.band is None:
                violations.append(f"item {item.id} at index {index} has no band")
                continue
            if item.band.order() < previous_order:
                violations.append(
                    f"band contiguity broken at index {index}: "
                    f"{item.band.value} follows a lower band"
                )
            previous_order = max(previous_order, item.band.order())

        for band in bands_in_order():
            members = self.members(band)
            for position, item in enumerate(members):
                expected = RankingMath.score_at(band, position, len(members))
                if item.score != expected:
                    violations.append(
                        f"score of {item.id} is {item.score}, expected {expected} "
                        f"({band.value} {position + 1}/{len(members)})"
                    )

        return violations
