"""Incremental loading of paginated catalog listings."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Literal, Protocol

from pydantic import BaseModel

from .models import CatalogItem, Page

logger = logging.getLogger(__name__)

ListingMode = Literal["search", "popular"]


def effective_query(query: str) -> str:
    """Return the query that drives fetching; blank input means browse mode."""

    return query if query.strip() else ""


class LoadState(str, Enum):
    IDLE = "idle"
    FETCHING_FIRST_PAGE = "fetching_first_page"
    READY = "ready"
    FETCHING_NEXT_PAGE = "fetching_next_page"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class PageRequest:
    """A fetch issued for one page of one query epoch."""

    epoch: int
    query: str
    page: int

    @property
    def mode(self) -> ListingMode:
        return "search" if self.query else "popular"


class ListingSnapshot(BaseModel):
    """Read-only view of the listing handed to the presentation layer."""

    query: str
    mode: ListingMode
    epoch: int
    state: LoadState
    page: int
    total_pages: int
    total_results: int
    items: list[CatalogItem]
    is_loading: bool
    has_more: bool
    is_exhausted: bool
    error: str | None = None


class ListingState:
    """Transition function for the accumulated listing.

    Every query change opens a new epoch. Results are only applied when the
    request that produced them belongs to the current epoch; anything else is
    stale and dropped. Methods that start a fetch return the
    :class:`PageRequest` to execute, or ``None`` when the transition is not
    allowed from the current state.
    """

    def __init__(self) -> None:
        self.epoch = 0
        self.query = ""
        self.page = 1
        self.total_pages = 0
        self.total_results = 0
        self.items: list[CatalogItem] = []
        self.state = LoadState.IDLE
        self.error: Exception | None = None
        self._loaded = False
        self._failed: PageRequest | None = None

    @property
    def mode(self) -> ListingMode:
        return "search" if self.query else "popular"

    @property
    def is_loading(self) -> bool:
        return self.state in (LoadState.FETCHING_FIRST_PAGE, LoadState.FETCHING_NEXT_PAGE)

    @property
    def has_more(self) -> bool:
        return self._loaded and self.page < self.total_pages

    @property
    def is_exhausted(self) -> bool:
        return self.state is LoadState.EXHAUSTED

    def change_query(self, query: str) -> PageRequest | None:
        query = effective_query(query)
        if self.epoch and query == self.query:
            return None
        self.epoch += 1
        self.query = query
        self.page = 1
        self.total_pages = 0
        self.total_results = 0
        self.items = []
        self.error = None
        self._loaded = False
        self._failed = None
        return self._issue(PageRequest(self.epoch, query, 1))

    def request_more(self) -> PageRequest | None:
        if self.state is not LoadState.READY:
            return None
        return self._issue(PageRequest(self.epoch, self.query, self.page + 1))

    def retry(self) -> PageRequest | None:
        """Re-issue the last failed request of the current epoch."""

        failed = self._failed
        if failed is None or failed.epoch != self.epoch or self.is_loading:
            return None
        return self._issue(failed)

    def reload(self) -> PageRequest | None:
        """Fetch page 1 of the current epoch again; it replaces the list."""

        if self.epoch == 0 or self.is_loading:
            return None
        return self._issue(PageRequest(self.epoch, self.query, 1))

    def apply_page(self, request: PageRequest, page: Page[CatalogItem]) -> bool:
        """Merge a successful response. Returns ``False`` for stale results."""

        if request.epoch != self.epoch:
            logger.debug(
                "Discarding stale page %s for epoch %s (current epoch %s)",
                request.page,
                request.epoch,
                self.epoch,
            )
            return False

        if request.page == 1:
            self.items = list(page.results)
        else:
            self.items = [*self.items, *page.results]
        self.page = request.page
        self.total_pages = page.total_pages
        self.total_results = page.total_results
        self.error = None
        self._loaded = True
        self._failed = None
        self.state = self._settled_state()
        return True

    def apply_failure(self, request: PageRequest, error: Exception) -> bool:
        """Record a failed fetch while keeping already loaded items."""

        if request.epoch != self.epoch:
            logger.debug(
                "Ignoring failure for stale epoch %s: %s", request.epoch, error
            )
            return False
        self.error = error
        self._failed = request
        self.state = self._settled_state()
        return True

    def snapshot(self) -> ListingSnapshot:
        return ListingSnapshot(
            query=self.query,
            mode=self.mode,
            epoch=self.epoch,
            state=self.state,
            page=self.page,
            total_pages=self.total_pages,
            total_results=self.total_results,
            items=list(self.items),
            is_loading=self.is_loading,
            has_more=self.has_more,
            is_exhausted=self.is_exhausted,
            error=str(self.error) if self.error is not None else None,
        )

    def _issue(self, request: PageRequest) -> PageRequest:
        self.error = None
        if request.page == 1:
            self.state = LoadState.FETCHING_FIRST_PAGE
        else:
            self.state = LoadState.FETCHING_NEXT_PAGE
        return request

    def _settled_state(self) -> LoadState:
        if not self._loaded:
            return LoadState.IDLE
        if self.page < self.total_pages:
            return LoadState.READY
        return LoadState.EXHAUSTED


class CatalogSource(Protocol):
    """The subset of the catalog client the accumulator reads from."""

    async def search(self, query: str, page: int = 1) -> Page[CatalogItem]: ...

    async def list_popular(self, page: int = 1) -> Page[CatalogItem]: ...


class PaginationAccumulator:
    """Drive :class:`ListingState` by running its fetches as asyncio tasks."""

    def __init__(self, source: CatalogSource):
        self._source = source
        self._state = ListingState()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> ListingState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    @property
    def error(self) -> Exception | None:
        return self._state.error

    def snapshot(self) -> ListingSnapshot:
        return self._state.snapshot()

    def change_query(self, query: str) -> asyncio.Task[None] | None:
        return self._dispatch(self._state.change_query(query))

    def load_more(self) -> asyncio.Task[None] | None:
        return self._dispatch(self._state.request_more())

    def retry(self) -> asyncio.Task[None] | None:
        return self._dispatch(self._state.retry())

    def reload(self) -> asyncio.Task[None] | None:
        return self._dispatch(self._state.reload())

    async def wait_idle(self) -> None:
        """Wait until every outstanding fetch has been applied or dropped."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel outstanding fetches."""

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

    def _dispatch(self, request: PageRequest | None) -> asyncio.Task[None] | None:
        if request is None:
            return None
        task = asyncio.create_task(self._run(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, request: PageRequest) -> None:
        try:
            page = await self._fetch(request)
        except Exception as exc:
            if self._state.apply_failure(request, exc):
                logger.warning(
                    "Loading %s page %s failed: %s", request.mode, request.page, exc
                )
            return
        self._state.apply_page(request, page)

    async def _fetch(self, request: PageRequest) -> Page[CatalogItem]:
        if request.mode == "search":
            return await self._source.search(request.query, request.page)
        return await self._source.list_popular(request.page)
