"""Zone catalog for the picker: search metadata, favorites and ordering."""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional

from .tzdb import TimeZoneDatabase

logger = logging.getLogger(__name__)


def _normalise(text: str) -> str:
    return " ".join(text.replace("_", " ").replace("/", " ").lower().split())


@dataclass(frozen=True)
class CatalogEntry:
    """Searchable view of one IANA identifier."""

    zone_id: str
    region: str
    city: str
    search_text: str

    @classmethod
    def from_zone_id(cls, zone_id: str) -> CatalogEntry:
        # "America/Argentina/Buenos_Aires" -> region "America", city "Buenos Aires"
        parts = zone_id.split("/")
        region = parts[0] if len(parts) > 1 else ""
        city = parts[-1].replace("_", " ")
        return cls(
            zone_id=zone_id,
            region=region,
            city=city,
            search_text=_normalise(zone_id),
        )

    def matches(self, query: str) -> bool:
        return query in self.search_text


class FavoriteSet:
    """Insertion-ordered set of favorite zone ids.

    ``toggle`` is the only mutator; everything else is read-only.
    """

    def __init__(self, zone_ids: Iterable[str] = ()):
        self._members: dict[str, None] = dict.fromkeys(zone_ids)

    def toggle(self, zone_id: str) -> bool:
        """Flip membership for *zone_id*; returns the new membership."""
        if zone_id in self._members:
            del self._members[zone_id]
            return False
        self._members[zone_id] = None
        return True

    def ordered(self) -> list[str]:
        return list(self._members)

    def __contains__(self, zone_id: object) -> bool:
        return zone_id in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._members))

    def __len__(self) -> int:
        return len(self._members)

    def __repr__(self) -> str:
        return f"FavoriteSet({self.ordered()!r})"


class TimeZoneCatalog:
    """All known zone ids with picker search."""

    def __init__(self, zone_ids: Iterable[str]):
        entries = (CatalogEntry.from_zone_id(z) for z in sorted(set(zone_ids)))
        self._entries: dict[str, CatalogEntry] = {e.zone_id: e for e in entries}

    @classmethod
    def from_database(cls, database: TimeZoneDatabase) -> TimeZoneCatalog:
        return cls(database.zone_ids)

    def __contains__(self, zone_id: object) -> bool:
        return zone_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries.values())

    def get(self, zone_id: str) -> Optional[CatalogEntry]:
        return self._entries.get(zone_id)

    def search(
        self,
        query: str,
        favorites: Optional[FavoriteSet] = None,
        limit: Optional[int] = None,
    ) -> list[CatalogEntry]:
        """
        Case-insensitive substring search over id, region and city.

        Args:
            query: Text typed into the picker; "_" and " " are interchangeable
            favorites: Favorites are listed first when given
            limit: Maximum number of results

        Returns:
            Matching entries, favorites first, then by id
        """
        needle = _normalise(query or "")
        results = [e for e in self._entries.values() if not needle or e.matches(needle)]
        if favorites is not None:
            results.sort(key=lambda e: e.zone_id not in favorites)
        if limit is not None:
            results = results[:limit]
        return results


def order_zones(
    zone_ids: Iterable[str],
    dominant: str,
    favorites: FavoriteSet,
    offset_for: Callable[[str], int],
) -> list[str]:
    """Display order for a multi-zone view.

    The dominant zone comes first, then selected favorites in favorite order,
    then the rest by current UTC offset and id.
    """
    selected = list(dict.fromkeys(zone_ids))
    result = [dominant]
    for zone_id in favorites:
        if zone_id in selected and zone_id not in result:
            result.append(zone_id)
    remaining = [z for z in selected if z not in result]
    remaining.sort(key=lambda z: (offset_for(z), z))
    return result + remaining


@dataclass(frozen=True)
class SearchRequest:
    query: str
    serial: int


class SearchField:
    """One picker search box; only the newest request may deliver results."""

    def __init__(self):
        self._serial = 0
        self._current: Optional[SearchRequest] = None
        self.results: list[CatalogEntry] = []

    @property
    def current(self) -> Optional[SearchRequest]:
        return self._current

    def begin(self, query: str) -> SearchRequest:
        """Start a search, superseding whatever was outstanding."""
        self._serial += 1
        self._current = SearchRequest(query=query, serial=self._serial)
        return self._current

    def is_current(self, request: SearchRequest) -> bool:
        return request is self._current

    def accept(self, request: SearchRequest, results: list[CatalogEntry]) -> bool:
        """Store *results* if *request* is still current. Returns whether it was."""
        if not self.is_current(request):
            logger.debug("Dropping results for superseded search %r", request.query)
            return False
        self.results = results
        return True

    async def search_async(
        self,
        catalog: TimeZoneCatalog,
        query: str,
        favorites: Optional[FavoriteSet] = None,
    ) -> Optional[list[CatalogEntry]]:
        """Search in the default executor; None if a newer search started meanwhile."""
        request = self.begin(query)
        loop = asyncio.get_running_loop()
        results = await loop.run_in_executor(None, functools.partial(catalog.search, query, favorites))
        if not self.accept(request, results):
            return None
        return results
