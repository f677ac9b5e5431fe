"""SQLAlchemy ORM models backing the persistent state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, validates

from .database import Base


def normalize_title(title: str | None) -> str:
    """Return the case-insensitive lookup key for a show title."""

    return (title or "").lower()


class TvShow(Base):
    """A show in the local catalog, created or refreshed by the sync engine."""

    __tablename__ = "tv_shows"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255))
    title_key: Mapped[str] = mapped_column(String(255), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    start_date: Mapped[datetime] = mapped_column(DateTime)
    status: Mapped[str] = mapped_column(String(64), default="")
    network: Mapped[str] = mapped_column(String(255), default="")
    image_url: Mapped[str] = mapped_column(String(512), default="")
    rating: Mapped[float] = mapped_column(Float, default=0.0)
    genres: Mapped[list[str]] = mapped_column(JSON, default=list)
    show_type: Mapped[str] = mapped_column(String(32), default="Series")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    @validates("title")
    def _sync_title_key(self, _: str, value: str) -> str:
        self.title_key = normalize_title(value)
        return value

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"TvShow(id={self.id!r}, title={self.title!r})"
