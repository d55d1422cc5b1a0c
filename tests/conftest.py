"""Pytest configuration and test helpers."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Callable

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.models import CatalogItem, Page  # noqa: E402


PageFactory = Callable[..., Page[CatalogItem]]


def build_page(
    prefix: str, page: int, total_pages: int, *, count: int = 2, total_results: int | None = None
) -> Page[CatalogItem]:
    """Return a page whose item ids encode the prefix, page and position."""

    base = sum(map(ord, prefix)) % 1_000 * 1_000
    items = [
        CatalogItem(
            id=base + page * 100 + index + 1,
            title=f"{prefix} {page}.{index + 1}",
            vote_average=5.0,
        )
        for index in range(count)
    ]
    return Page[CatalogItem](
        results=items,
        page=page,
        total_pages=total_pages,
        total_results=total_results if total_results is not None else total_pages * count,
    )


class FakeCatalog:
    """In-memory catalog source with optional gates and scripted failures."""

    def __init__(self) -> None:
        self.pages: dict[tuple[str, int], Page[CatalogItem]] = {}
        self.gates: dict[tuple[str, int], asyncio.Event] = {}
        self.failures: dict[tuple[str, int], Exception] = {}
        self.calls: list[tuple[str, int]] = []

    async def search(self, query: str, page: int = 1) -> Page[CatalogItem]:
        return await self._serve(query, page)

    async def list_popular(self, page: int = 1) -> Page[CatalogItem]:
        return await self._serve("", page)

    async def _serve(self, query: str, page: int) -> Page[CatalogItem]:
        key = (query, page)
        self.calls.append(key)
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()
        failure = self.failures.pop(key, None)
        if failure is not None:
            raise failure
        return self.pages[key]


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def page_factory() -> PageFactory:
    return build_page
