"""Pydantic models describing catalog payloads."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ItemT = TypeVar("ItemT")


def _blank_to_none(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CatalogItem(BaseModel):
    """Summary projection of a movie as returned by list and search endpoints."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: int
    title: str = ""
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float = Field(default=0.0, ge=0.0, le=10.0)
    release_date: str | None = None
    overview: str | None = None

    @field_validator("release_date", mode="before")
    @classmethod
    def _normalise_release_date(cls, value: object) -> object:
        return _blank_to_none(value)


class WatchlistEntry(CatalogItem):
    """A saved movie together with the moment it was added."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    added_at: int = Field(alias="addedAt", ge=0)

    @classmethod
    def from_item(cls, item: CatalogItem, added_at: int) -> "WatchlistEntry":
        payload = item.model_dump()
        payload.pop("added_at", None)
        payload.pop("addedAt", None)
        payload["addedAt"] = added_at
        return cls.model_validate(payload)


class Page(BaseModel, Generic[ItemT]):
    """One page of results from a paginated endpoint."""

    results: list[ItemT]
    page: int = Field(default=1, ge=1)
    total_pages: int = Field(default=0, ge=0)
    total_results: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "Page[ItemT]":
        if self.results and self.page > self.total_pages:
            raise ValueError("page must not exceed total_pages for a non-empty page")
        return self

    @property
    def has_more(self) -> bool:
        """Return whether another page follows this one."""

        return self.page < self.total_pages


class Genre(BaseModel):
    id: int
    name: str


class MovieDetail(BaseModel):
    """Full movie record backing the detail screen."""

    id: int
    title: str = ""
    tagline: str | None = None
    runtime: int | None = None
    genres: list[Genre] = Field(default_factory=list)
    vote_average: float = 0.0
    vote_count: int = 0
    overview: str | None = None
    release_date: str | None = None
    backdrop_path: str | None = None
    poster_path: str | None = None

    @field_validator("tagline", "release_date", mode="before")
    @classmethod
    def _normalise_text(cls, value: object) -> object:
        return _blank_to_none(value)

    def to_catalog_item(self) -> CatalogItem:
        """Project the detail record onto the summary shape used by the watchlist."""

        return CatalogItem(
            id=self.id,
            title=self.title,
            poster_path=self.poster_path,
            backdrop_path=self.backdrop_path,
            vote_average=self.vote_average,
            release_date=self.release_date,
            overview=self.overview,
        )


class CastMember(BaseModel):
    id: int
    name: str
    character: str | None = None
    profile_path: str | None = None
    order: int | None = None


class CrewMember(BaseModel):
    id: int
    name: str
    job: str | None = None
    department: str | None = None
    profile_path: str | None = None


class Credits(BaseModel):
    """Cast and crew listing for a movie."""

    id: int | None = None
    cast: list[CastMember] = Field(default_factory=list)
    crew: list[CrewMember] = Field(default_factory=list)

    def director(self) -> CrewMember | None:
        for member in self.crew:
            if member.job == "Director":
                return member
        return None


class Video(BaseModel):
    id: str
    key: str
    name: str = ""
    site: str = ""
    type: str = ""


class VideoList(BaseModel):
    id: int | None = None
    results: list[Video] = Field(default_factory=list)

    def trailer(self) -> Video | None:
        """Return the first YouTube trailer, if any."""

        for video in self.results:
            if video.type == "Trailer" and video.site == "YouTube":
                return video
        return None


class Review(BaseModel):
    id: str
    author: str = ""
    content: str = ""
    created_at: str | None = None
    url: str | None = None
