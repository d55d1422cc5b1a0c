from __future__ import annotations

from typing import Any, Iterator

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings
from app.database import Database
from app.discovery import DiscoverySession
import app.main as main_module
from app.main import register_routes
from app.services.tmdb import TMDBClient
from app.storage import SQLSlotStorage
from app.watchlist import WatchlistStore


def build_settings(**overrides: Any) -> Settings:
    base = {"TMDB_API_TOKEN": "test-token", "SEARCH_DEBOUNCE_MS": 10_000}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


class CatalogRecorder:
    """Mock TMDB transport that records every request it answers."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/3/movie/603":
            return httpx.Response(
                200,
                json={
                    "id": 603,
                    "title": "The Matrix",
                    "poster_path": "/matrix.jpg",
                    "backdrop_path": None,
                    "vote_average": 8.2,
                },
            )
        if request.url.path == "/3/movie/603/videos":
            return httpx.Response(
                200,
                json={"id": 603, "results": [{"id": "v", "key": "abc", "site": "YouTube", "type": "Trailer"}]},
            )
        return httpx.Response(503)


@pytest.fixture
def recorder() -> CatalogRecorder:
    return CatalogRecorder()


@pytest.fixture
def routed_app(tmp_path, fake_catalog, page_factory, recorder) -> Iterator[FastAPI]:
    settings = build_settings(TMDB_RETRY_BACKOFF=0)
    for number in (1, 2):
        fake_catalog.pages[("", number)] = page_factory("", number, 2)

    database = Database(f"sqlite:///{tmp_path / 'routes.db'}")
    database.create_all()
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(recorder), base_url="https://api.example.com/3"
    )

    app = FastAPI()
    register_routes(app)
    app.state.catalog = TMDBClient(settings, http_client)
    app.state.watchlist = WatchlistStore(SQLSlotStorage(database))
    app.state.session = DiscoverySession(settings, fake_catalog)
    try:
        yield app
    finally:
        database.dispose()


def test_health(routed_app) -> None:
    with TestClient(routed_app) as client:
        response = client.get("/health")

    assert response.json() == {"status": "ok"}


def test_listing_browses_popular_and_loads_more(routed_app, fake_catalog) -> None:
    with TestClient(routed_app) as client:
        first = client.post("/api/listing/clear", params={"wait": "true"})
        more = client.post("/api/listing/more", params={"wait": "true"})
        exhausted = client.post("/api/listing/more", params={"wait": "true"})

    assert first.status_code == 200
    assert first.json()["listing"]["mode"] == "popular"
    assert len(first.json()["listing"]["items"]) == 2
    listing = more.json()["listing"]
    assert listing["page"] == 2
    assert len(listing["items"]) == 4
    assert listing["is_exhausted"] is True
    assert exhausted.json()["listing"]["page"] == 2
    assert fake_catalog.calls == [("", 1), ("", 2)]


def test_listing_input_reports_typing_state(routed_app) -> None:
    with TestClient(routed_app) as client:
        typed = client.post("/api/listing/input", json={"value": "matr"})
        cleared = client.post("/api/listing/clear", params={"wait": "true"})

    assert typed.json()["input"] == "matr"
    assert typed.json()["is_typing"] is True
    assert cleared.json()["input"] == ""
    assert cleared.json()["is_typing"] is False


def test_viewport_report_triggers_next_page(routed_app, fake_catalog) -> None:
    with TestClient(routed_app) as client:
        client.post("/api/listing/clear", params={"wait": "true"})
        routed_app.state.session.sentinel.attach(routed_app.state.session.marker)
        response = client.post(
            "/api/listing/viewport", json={"distance_px": 120}, params={"wait": "true"}
        )

    assert response.json()["listing"]["page"] == 2
    assert fake_catalog.calls == [("", 1), ("", 2)]


def test_movie_detail_resolves_images(routed_app, recorder) -> None:
    with TestClient(routed_app) as client:
        response = client.get("/api/movies/603")

    payload = response.json()
    assert response.status_code == 200
    assert payload["poster_url"] == "https://image.tmdb.org/t/p/w500/matrix.jpg"
    assert payload["backdrop_url"] == "/placeholder.svg"
    assert payload["in_watchlist"] is False
    assert len(recorder.requests) == 1


def test_movie_videos_include_trailer(routed_app) -> None:
    with TestClient(routed_app) as client:
        response = client.get("/api/movies/603/videos")

    assert response.json()["trailer"]["key"] == "abc"


def test_invalid_movie_id_is_rejected_without_remote_call(routed_app, recorder) -> None:
    with TestClient(routed_app) as client:
        detail = client.get("/api/movies/0")
        credits = client.get("/api/movies/-5/credits")
        reviews = client.get("/api/movies/0/reviews")

    assert detail.status_code == 400
    assert credits.status_code == 400
    assert reviews.status_code == 400
    assert recorder.requests == []


def test_upstream_failure_maps_to_bad_gateway(routed_app, recorder) -> None:
    with TestClient(routed_app) as client:
        response = client.get("/api/movies/77/credits")

    assert response.status_code == 502
    assert len(recorder.requests) == 3


def test_image_url_endpoint(routed_app) -> None:
    with TestClient(routed_app) as client:
        placeholder = client.get("/api/images")
        original = client.get("/api/images", params={"path": "/x.jpg", "size": "original"})

    assert placeholder.json() == {"url": "/placeholder.svg"}
    assert original.json() == {"url": "https://image.tmdb.org/t/p/original/x.jpg"}


def test_watchlist_crud_and_sort(routed_app) -> None:
    with TestClient(routed_app) as client:
        client.post("/api/watchlist", json={"id": 1, "title": "Alien", "vote_average": 7.2})
        client.post("/api/watchlist", json={"id": 2, "title": "Heat", "vote_average": 9.0})
        toggled = client.post("/api/watchlist/toggle", json={"id": 3, "title": "Dune", "vote_average": 5.1})
        sorted_entries = client.post("/api/watchlist/sort", json={"key": "rating"})
        membership = client.get("/api/watchlist/2")
        removed = client.delete("/api/watchlist/2")
        missing = client.delete("/api/watchlist/2")
        remaining = client.get("/api/watchlist")

    assert toggled.json() == {"id": 3, "in_watchlist": True}
    assert [entry["vote_average"] for entry in sorted_entries.json()] == [9.0, 7.2, 5.1]
    assert "addedAt" in sorted_entries.json()[0]
    assert membership.json() == {"id": 2, "in_watchlist": True}
    assert removed.json()["removed"] == 1
    assert missing.status_code == 404
    assert [entry["id"] for entry in remaining.json()] == [1, 3]


def test_watchlist_rejects_unknown_sort_key(routed_app) -> None:
    with TestClient(routed_app) as client:
        response = client.post("/api/watchlist/sort", json={"key": "popularity"})

    assert response.status_code == 422


def test_detail_page_toggles_watchlist_membership(routed_app, recorder) -> None:
    with TestClient(routed_app) as client:
        added = client.post("/api/movies/603/watchlist")
        entries = client.get("/api/watchlist").json()
        removed = client.post("/api/movies/603/watchlist")

    assert added.json() == {"id": 603, "in_watchlist": True}
    assert [(entry["id"], entry["poster_path"]) for entry in entries] == [(603, "/matrix.jpg")]
    assert removed.json() == {"id": 603, "in_watchlist": False}
    assert len(recorder.requests) == 2


def test_app_starts_without_catalog_token(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(
        main_module,
        "settings",
        build_settings(
            TMDB_API_TOKEN="", DATABASE_URL=f"sqlite:///{tmp_path / 'startup.db'}"
        ),
    )

    with TestClient(main_module.create_app()) as client:
        added = client.post("/api/watchlist", json={"id": 1, "title": "Alien"})
        saved = client.get("/api/watchlist/1")
        listing = client.get("/api/listing")
        detail = client.get("/api/movies/603")

    assert added.status_code == 201
    assert saved.json() == {"id": 1, "in_watchlist": True}
    assert listing.status_code == 503
    assert detail.status_code == 503
