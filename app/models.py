"""Pydantic models describing Episodate provider payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_text(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _coerce_count(value: object) -> object:
    if value is None:
        return 0
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            return int(float(stripped))
        except ValueError:
            return 0
    return value


def _coerce_list(value: object) -> object:
    if value is None:
        return []
    return value


class ProviderModel(BaseModel):
    """Base model tolerant of the loosely typed provider schema."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class ExternalShowSummary(ProviderModel):
    """A show as listed on one page of the provider's popularity ranking."""

    id: int
    name: str = ""
    permalink: str = ""
    start_date: str = ""
    end_date: str | None = None
    country: str = ""
    network: str = ""
    status: str = ""
    image_thumbnail_path: str = ""

    @field_validator(
        "name",
        "permalink",
        "start_date",
        "country",
        "network",
        "status",
        "image_thumbnail_path",
        mode="before",
    )
    @classmethod
    def _text_fields(cls, value: object) -> object:
        return _coerce_text(value)

    @field_validator("end_date", mode="before")
    @classmethod
    def _optional_end_date(cls, value: object) -> object:
        if value is None:
            return None
        return _coerce_text(value)


class ExternalEpisode(ProviderModel):
    """One episode entry from a show detail payload."""

    season: int = 0
    episode: int = 0
    name: str = ""
    air_date: str = ""

    @field_validator("season", "episode", mode="before")
    @classmethod
    def _numbers(cls, value: object) -> object:
        return _coerce_count(value)

    @field_validator("name", "air_date", mode="before")
    @classmethod
    def _text_fields(cls, value: object) -> object:
        return _coerce_text(value)


class ExternalShowDetail(ExternalShowSummary):
    """Full provider record for a single show."""

    description: str = ""
    image_path: str = ""
    rating: str = ""
    rating_count: str = ""
    runtime: int = 0
    genres: list[str] = Field(default_factory=list)
    pictures: list[str] = Field(default_factory=list)
    episodes: list[ExternalEpisode] = Field(default_factory=list)

    @field_validator("description", "image_path", "rating", "rating_count", mode="before")
    @classmethod
    def _detail_text_fields(cls, value: object) -> object:
        return _coerce_text(value)

    @field_validator("runtime", mode="before")
    @classmethod
    def _runtime(cls, value: object) -> object:
        return _coerce_count(value)

    @field_validator("genres", "pictures", "episodes", mode="before")
    @classmethod
    def _lists(cls, value: object) -> object:
        return _coerce_list(value)


class ShowPage(ProviderModel):
    """One page of the provider's most-popular listing."""

    total: int = 0
    page: int = 1
    pages: int = 0
    tv_shows: list[ExternalShowSummary] = Field(default_factory=list)

    @field_validator("total", "page", "pages", mode="before")
    @classmethod
    def _numbers(cls, value: object) -> object:
        return _coerce_count(value)

    @field_validator("tv_shows", mode="before")
    @classmethod
    def _shows(cls, value: object) -> object:
        return _coerce_list(value)
