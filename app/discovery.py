"""Browsing session tying search input, pagination and scrolling together."""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel

from .config import Settings
from .debounce import QueryDebouncer
from .pagination import CatalogSource, ListingSnapshot, PaginationAccumulator
from .sentinel import (
    ProximityNotifier,
    PushProximityNotifier,
    ScrollSentinel,
    ViewportMarker,
)

logger = logging.getLogger(__name__)


class SessionSnapshot(BaseModel):
    """State of the browse screen as seen by the presentation layer."""

    input: str
    is_typing: bool
    listing: ListingSnapshot


class DiscoverySession:
    """One browse screen: debounced search feeding an incrementally loaded list."""

    def __init__(
        self,
        settings: Settings,
        source: CatalogSource,
        *,
        notifier: ProximityNotifier | None = None,
    ):
        self.accumulator = PaginationAccumulator(source)
        self.debouncer = QueryDebouncer(
            self._on_query_committed, delay=settings.search_debounce_seconds
        )
        self.marker = ViewportMarker()
        self.sentinel = ScrollSentinel(
            self.accumulator,
            notifier or PushProximityNotifier(),
            margin_px=settings.scroll_threshold_px,
        )

    def start(self) -> asyncio.Task[None] | None:
        """Attach the sentinel and load the popular listing."""

        self.sentinel.attach(self.marker)
        return self._watch(self.accumulator.change_query(""))

    def input(self, value: str) -> None:
        self.debouncer.push(value)

    def clear(self) -> None:
        self.debouncer.clear()

    def load_more(self) -> asyncio.Task[None] | None:
        return self._watch(self.accumulator.load_more())

    def retry(self) -> asyncio.Task[None] | None:
        return self._watch(self.accumulator.retry())

    def reload(self) -> asyncio.Task[None] | None:
        return self._watch(self.accumulator.reload())

    def report_viewport(self, distance_px: float) -> None:
        self.marker.report(distance_px)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            input=self.debouncer.value,
            is_typing=self.debouncer.is_pending,
            listing=self.accumulator.snapshot(),
        )

    async def wait_idle(self) -> None:
        await self.accumulator.wait_idle()

    async def aclose(self) -> None:
        self.debouncer.close()
        self.sentinel.detach()
        await self.accumulator.aclose()

    def _on_query_committed(self, query: str) -> None:
        logger.info("Search query committed: %r", query)
        self._watch(self.accumulator.change_query(query))

    def _watch(self, task: asyncio.Task[None] | None) -> asyncio.Task[None] | None:
        return self.sentinel.watch(task)
