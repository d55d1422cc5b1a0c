"""Locally persisted "watch later" list."""

from __future__ import annotations

import logging
import time
from enum import Enum
from functools import lru_cache
from typing import Callable

import icu
from pydantic import TypeAdapter, ValidationError

from .errors import CorruptPersistedStateError
from .models import CatalogItem, WatchlistEntry
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_WATCHLIST_KEY = "movie-watchlist"
DEFAULT_COLLATION_LOCALE = "zh-CN"

_ENTRIES_ADAPTER = TypeAdapter(list[WatchlistEntry])


class WatchlistSort(str, Enum):
    TITLE = "title"
    ADDED_AT = "addedAt"
    RATING = "rating"


def now_ms() -> int:
    """Return wall-clock time in milliseconds since the Unix epoch."""

    return time.time_ns() // 1_000_000


@lru_cache
def default_collator(locale: str = DEFAULT_COLLATION_LOCALE) -> icu.Collator:
    """Return a collator tailored to ``locale`` (a BCP 47 tag such as ``zh-CN``).

    Han titles sort by pinyin under ``zh``; Latin titles keep accent-aware
    ordering in every locale.
    """

    return icu.Collator.createInstance(icu.Locale(locale.replace("-", "_")))


class WatchlistStore:
    """Saved movies kept in memory and mirrored into one storage slot.

    Mutations write the storage slot first and then swap the in-memory list,
    so a caller sees the same state in both as soon as the call returns.
    ``add`` does not look for an existing entry; use ``toggle`` when the
    caller does not already know the membership.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = DEFAULT_WATCHLIST_KEY,
        clock: Callable[[], int] = now_ms,
        collator: icu.Collator | None = None,
    ):
        self._storage = storage
        self._key = key
        self._clock = clock
        self._collator = collator or default_collator()
        self._entries: list[WatchlistEntry] = self._load()

    def __len__(self) -> int:
        return len(self._entries)

    def load_all(self) -> list[WatchlistEntry]:
        """Return the entries in their stored order."""

        return list(self._entries)

    def contains(self, movie_id: int) -> bool:
        return any(entry.id == movie_id for entry in self._entries)

    def add(self, item: CatalogItem) -> WatchlistEntry:
        entry = WatchlistEntry.from_item(item, self._clock())
        self._persist([*self._entries, entry])
        logger.info("Added movie %s to the watchlist", item.id)
        return entry

    def remove(self, movie_id: int) -> int:
        """Remove every entry for ``movie_id`` and return how many were dropped."""

        remaining = [entry for entry in self._entries if entry.id != movie_id]
        removed = len(self._entries) - len(remaining)
        if removed:
            self._persist(remaining)
            logger.info("Removed movie %s from the watchlist", movie_id)
        return removed

    def toggle(self, item: CatalogItem) -> bool:
        """Remove ``item`` when saved, add it otherwise; return the new membership."""

        if self.contains(item.id):
            self.remove(item.id)
            return False
        self.add(item)
        return True

    def sort(self, key: WatchlistSort | str) -> list[WatchlistEntry]:
        """Reorder and persist the entries, returning the new order."""

        sort_key = WatchlistSort(key)
        if sort_key is WatchlistSort.TITLE:
            ordered = sorted(
                self._entries, key=lambda entry: self._collator.getSortKey(entry.title)
            )
        elif sort_key is WatchlistSort.ADDED_AT:
            ordered = sorted(self._entries, key=lambda entry: entry.added_at, reverse=True)
        else:
            ordered = sorted(
                self._entries, key=lambda entry: entry.vote_average, reverse=True
            )
        self._persist(ordered)
        return list(ordered)

    def _load(self) -> list[WatchlistEntry]:
        payload = self._storage.get(self._key)
        if payload is None:
            return []
        try:
            return self._decode(payload)
        except CorruptPersistedStateError as exc:
            logger.warning("Discarding corrupt watchlist payload: %s", exc)
            self._storage.delete(self._key)
            return []

    @staticmethod
    def _decode(payload: str) -> list[WatchlistEntry]:
        try:
            return _ENTRIES_ADAPTER.validate_json(payload)
        except ValidationError as exc:
            raise CorruptPersistedStateError(
                f"{exc.error_count()} validation error(s) in stored watchlist"
            ) from exc

    def _persist(self, entries: list[WatchlistEntry]) -> None:
        payload = _ENTRIES_ADAPTER.dump_json(entries, by_alias=True).decode("utf-8")
        self._storage.set(self._key, payload)
        self._entries = entries
