"""Client for The Movie Database (TMDB) catalog API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Literal, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..errors import (
    RETRYABLE_ERRORS,
    InvalidIdentifierError,
    MalformedResponseError,
    TransientNetworkError,
)
from ..models import CatalogItem, Credits, MovieDetail, Page, Review, VideoList

logger = logging.getLogger(__name__)

ImageSize = Literal["w500", "w780", "original"]
ModelT = TypeVar("ModelT", bound=BaseModel)


def ensure_movie_id(movie_id: object) -> int:
    """Return ``movie_id`` when it is a positive integer, raise otherwise."""

    if isinstance(movie_id, bool) or not isinstance(movie_id, int) or movie_id <= 0:
        raise InvalidIdentifierError(f"Invalid movie id: {movie_id!r}")
    return movie_id


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if not settings.tmdb_api_token:
            raise ValueError("TMDB API token is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client
        self._sleep = sleep
        self._max_attempts = settings.tmdb_retry_attempts

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.tmdb_api_token}",
            "Content-Type": "application/json",
            "User-Agent": f"{self._settings.app_name} (cinescout)",
        }

    async def search(self, query: str, page: int = 1) -> Page[CatalogItem]:
        """Search movies by title."""

        return await self._get(
            "/search/movie", Page[CatalogItem], params={"query": query, "page": page}
        )

    async def list_popular(self, page: int = 1) -> Page[CatalogItem]:
        """Return the popular movies listing used when no query is active."""

        return await self._get("/movie/popular", Page[CatalogItem], params={"page": page})

    async def get_detail(self, movie_id: int) -> MovieDetail:
        movie_id = ensure_movie_id(movie_id)
        return await self._get(f"/movie/{movie_id}", MovieDetail)

    async def get_credits(self, movie_id: int) -> Credits:
        movie_id = ensure_movie_id(movie_id)
        return await self._get(f"/movie/{movie_id}/credits", Credits)

    async def get_videos(self, movie_id: int) -> VideoList:
        movie_id = ensure_movie_id(movie_id)
        return await self._get(f"/movie/{movie_id}/videos", VideoList)

    async def get_reviews(self, movie_id: int, page: int = 1) -> Page[Review]:
        movie_id = ensure_movie_id(movie_id)
        return await self._get(
            f"/movie/{movie_id}/reviews", Page[Review], params={"page": page}
        )

    def resolve_image_url(self, path: str | None, size: ImageSize = "w500") -> str:
        """Build an image URL, falling back to the local placeholder."""

        if not path:
            return self._settings.placeholder_image
        if path.startswith("http"):
            return path
        base_url = str(self._settings.tmdb_image_url).rstrip("/")
        return f"{base_url}/{size}{path}"

    async def _get(
        self,
        endpoint: str,
        model: type[ModelT],
        *,
        params: dict[str, Any] | None = None,
    ) -> ModelT:
        """Fetch ``endpoint`` and validate it as ``model``, retrying failures."""

        request_params = dict(params or {})
        request_params["language"] = self._settings.tmdb_language

        attempt = 0
        while True:
            try:
                return await self._fetch_once(endpoint, model, request_params)
            except RETRYABLE_ERRORS as exc:
                attempt += 1
                if attempt >= self._max_attempts:
                    logger.warning(
                        "TMDB request to %s failed after %s attempts: %s",
                        endpoint,
                        attempt,
                        exc,
                    )
                    raise
                backoff = self._settings.tmdb_retry_backoff_seconds * 2 ** (attempt - 1)
                logger.info(
                    "Transient error talking to TMDB (%s). Retrying %s in %.1fs",
                    exc.__class__.__name__,
                    endpoint,
                    backoff,
                )
                await self._sleep(backoff)

    async def _fetch_once(
        self, endpoint: str, model: type[ModelT], params: dict[str, Any]
    ) -> ModelT:
        try:
            response = await self._client.get(
                endpoint, params=params, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise TransientNetworkError(
                f"Request to {endpoint} failed: {exc.__class__.__name__}"
            ) from exc

        if not response.is_success:
            raise TransientNetworkError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError(f"Non-JSON response from {endpoint}") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError("Invalid response format")

        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Unexpected response structure from {endpoint}"
            ) from exc
