"""Entry point for the FastAPI-powered movie discovery service."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import __version__
from .config import settings
from .database import Database
from .discovery import DiscoverySession, SessionSnapshot
from .errors import CatalogError, InvalidIdentifierError
from .models import CatalogItem, Page, Review, WatchlistEntry
from .services.tmdb import ImageSize, TMDBClient, ensure_movie_id
from .storage import SQLSlotStorage
from .watchlist import WatchlistSort, WatchlistStore, default_collator

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT")

app: FastAPI


class SearchInput(BaseModel):
    value: str = ""


class ViewportReport(BaseModel):
    distance_px: float


class WatchlistSortRequest(BaseModel):
    key: WatchlistSort = WatchlistSort.ADDED_AT


class WatchlistMembership(BaseModel):
    id: int
    in_watchlist: bool


class WatchlistRemoval(BaseModel):
    removed: int
    entries: list[WatchlistEntry] = Field(default_factory=list)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    async with AsyncExitStack() as exit_stack:
        database = Database(settings.database_url)
        exit_stack.callback(database.dispose)
        database.create_all()
        fastapi_app.state.database = database
        fastapi_app.state.watchlist = WatchlistStore(
            SQLSlotStorage(database),
            key=settings.watchlist_key,
            collator=default_collator(settings.tmdb_language),
        )
        fastapi_app.state.catalog = None
        fastapi_app.state.session = None

        if settings.tmdb_api_token:
            tmdb_http_client = await exit_stack.enter_async_context(
                httpx.AsyncClient(
                    base_url=str(settings.tmdb_api_url),
                    timeout=httpx.Timeout(20.0, connect=10.0),
                )
            )
            catalog = TMDBClient(settings, tmdb_http_client)
            session = DiscoverySession(settings, catalog)
            exit_stack.push_async_callback(session.aclose)
            fastapi_app.state.catalog = catalog
            fastapi_app.state.session = session
            session.start()
        else:
            logger.warning(
                "TMDB_API_TOKEN is not set; catalog routes are disabled, "
                "the watchlist stays available"
            )

        yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Movie search, infinite browsing and a local watch-later list",
        version=__version__,
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_session(app: FastAPI) -> DiscoverySession:
    session = getattr(app.state, "session", None)
    if not isinstance(session, DiscoverySession):
        raise HTTPException(status_code=503, detail="Movie catalog is not configured")
    return session


def get_catalog(app: FastAPI) -> TMDBClient:
    catalog = getattr(app.state, "catalog", None)
    if not isinstance(catalog, TMDBClient):
        raise HTTPException(status_code=503, detail="Movie catalog is not configured")
    return catalog


def get_watchlist(app: FastAPI) -> WatchlistStore:
    watchlist = getattr(app.state, "watchlist", None)
    if not isinstance(watchlist, WatchlistStore):
        raise RuntimeError("Watchlist store not initialised")
    return watchlist


async def _call_catalog(call: Callable[[], Awaitable[ResultT]]) -> ResultT:
    try:
        return await call()
    except InvalidIdentifierError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CatalogError as exc:
        logger.warning("Catalog request failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc


def _require_movie_id(movie_id: int) -> int:
    try:
        return ensure_movie_id(movie_id)
    except InvalidIdentifierError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    async def _settle(
        task: asyncio.Task[None] | None, *, wait: bool
    ) -> SessionSnapshot:
        session = get_session(fastapi_app)
        if wait and task is not None:
            await task
        return session.snapshot()

    @fastapi_app.get("/health")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/listing")
    async def listing(wait: bool = False) -> SessionSnapshot:
        session = get_session(fastapi_app)
        if wait:
            await session.wait_idle()
        return session.snapshot()

    @fastapi_app.post("/api/listing/input")
    async def listing_input(payload: SearchInput) -> SessionSnapshot:
        session = get_session(fastapi_app)
        session.input(payload.value)
        return session.snapshot()

    @fastapi_app.post("/api/listing/clear")
    async def listing_clear(wait: bool = False) -> SessionSnapshot:
        session = get_session(fastapi_app)
        session.clear()
        if wait:
            await session.wait_idle()
        return session.snapshot()

    @fastapi_app.post("/api/listing/more")
    async def listing_more(wait: bool = False) -> SessionSnapshot:
        return await _settle(get_session(fastapi_app).load_more(), wait=wait)

    @fastapi_app.post("/api/listing/retry")
    async def listing_retry(wait: bool = False) -> SessionSnapshot:
        return await _settle(get_session(fastapi_app).retry(), wait=wait)

    @fastapi_app.post("/api/listing/reload")
    async def listing_reload(wait: bool = False) -> SessionSnapshot:
        return await _settle(get_session(fastapi_app).reload(), wait=wait)

    @fastapi_app.post("/api/listing/viewport")
    async def listing_viewport(
        payload: ViewportReport, wait: bool = False
    ) -> SessionSnapshot:
        session = get_session(fastapi_app)
        session.report_viewport(payload.distance_px)
        if wait:
            await session.wait_idle()
        return session.snapshot()

    @fastapi_app.get("/api/movies/{movie_id}")
    async def movie_detail(movie_id: int) -> dict[str, Any]:
        movie_id = _require_movie_id(movie_id)
        catalog = get_catalog(fastapi_app)
        detail = await _call_catalog(lambda: catalog.get_detail(movie_id))
        payload = detail.model_dump(mode="json")
        payload["poster_url"] = catalog.resolve_image_url(detail.poster_path, "w500")
        payload["backdrop_url"] = catalog.resolve_image_url(
            detail.backdrop_path, "original"
        )
        payload["in_watchlist"] = get_watchlist(fastapi_app).contains(movie_id)
        return payload

    @fastapi_app.get("/api/movies/{movie_id}/credits")
    async def movie_credits(movie_id: int) -> dict[str, Any]:
        movie_id = _require_movie_id(movie_id)
        catalog = get_catalog(fastapi_app)
        credits = await _call_catalog(lambda: catalog.get_credits(movie_id))
        director = credits.director()
        payload = credits.model_dump(mode="json")
        payload["director"] = director.model_dump(mode="json") if director else None
        return payload

    @fastapi_app.get("/api/movies/{movie_id}/videos")
    async def movie_videos(movie_id: int) -> dict[str, Any]:
        movie_id = _require_movie_id(movie_id)
        catalog = get_catalog(fastapi_app)
        videos = await _call_catalog(lambda: catalog.get_videos(movie_id))
        trailer = videos.trailer()
        payload = videos.model_dump(mode="json")
        payload["trailer"] = trailer.model_dump(mode="json") if trailer else None
        return payload

    @fastapi_app.get("/api/movies/{movie_id}/reviews")
    async def movie_reviews(movie_id: int, page: int = 1) -> Page[Review]:
        movie_id = _require_movie_id(movie_id)
        if page < 1:
            raise HTTPException(status_code=400, detail="page must be at least 1")
        catalog = get_catalog(fastapi_app)
        return await _call_catalog(lambda: catalog.get_reviews(movie_id, page))

    @fastapi_app.post("/api/movies/{movie_id}/watchlist")
    async def movie_watchlist_toggle(movie_id: int) -> WatchlistMembership:
        movie_id = _require_movie_id(movie_id)
        catalog = get_catalog(fastapi_app)
        detail = await _call_catalog(lambda: catalog.get_detail(movie_id))
        in_watchlist = get_watchlist(fastapi_app).toggle(detail.to_catalog_item())
        return WatchlistMembership(id=movie_id, in_watchlist=in_watchlist)

    @fastapi_app.get("/api/images")
    async def image_url(path: str | None = None, size: ImageSize = "w500") -> dict[str, str]:
        return {"url": get_catalog(fastapi_app).resolve_image_url(path, size)}

    @fastapi_app.get("/api/watchlist")
    async def watchlist_entries() -> list[WatchlistEntry]:
        return get_watchlist(fastapi_app).load_all()

    @fastapi_app.post("/api/watchlist", status_code=201)
    async def watchlist_add(item: CatalogItem) -> WatchlistEntry:
        return get_watchlist(fastapi_app).add(item)

    @fastapi_app.post("/api/watchlist/toggle")
    async def watchlist_toggle(item: CatalogItem) -> WatchlistMembership:
        in_watchlist = get_watchlist(fastapi_app).toggle(item)
        return WatchlistMembership(id=item.id, in_watchlist=in_watchlist)

    @fastapi_app.post("/api/watchlist/sort")
    async def watchlist_sort(payload: WatchlistSortRequest) -> list[WatchlistEntry]:
        return get_watchlist(fastapi_app).sort(payload.key)

    @fastapi_app.get("/api/watchlist/{movie_id}")
    async def watchlist_contains(movie_id: int) -> WatchlistMembership:
        return WatchlistMembership(
            id=movie_id, in_watchlist=get_watchlist(fastapi_app).contains(movie_id)
        )

    @fastapi_app.delete("/api/watchlist/{movie_id}")
    async def watchlist_remove(movie_id: int) -> WatchlistRemoval:
        watchlist = get_watchlist(fastapi_app)
        removed = watchlist.remove(movie_id)
        if not removed:
            raise HTTPException(status_code=404, detail="Movie is not in the watchlist")
        return WatchlistRemoval(removed=removed, entries=watchlist.load_all())


app = create_app()


def run() -> None:
    """Start the uvicorn server using the configured settings."""

    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - manual execution
    run()
