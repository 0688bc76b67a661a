from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from feedsession.db.base import Base, TimestampedMixin


class StorageEntry(TimestampedMixin, Base):
    """One durable key-value cell of client storage (preferences, sessions)."""

    __tablename__ = "storage_entries"

    # TimestampedMixin provides: id, created_at, updated_at
    key: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    data: Mapped[Any] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<StorageEntry(key={self.key!r})>"
