"""Import run: one row per tender ingestion call (counts, timing, errors)."""
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class ImportRun(Base):
    """One row per ingestion execution: source, counts, timing, errors."""

    __tablename__ = "import_runs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    source: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(
        nullable=False,
        index=True,
        default=func.now(),
        server_default=func.now(),
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    created_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    updated_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    error_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    errors_json: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    search_criteria_json: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created": self.created_count,
            "updated": self.updated_count,
            "errors": self.error_count,
            "errors_json": self.errors_json,
            "search_criteria": self.search_criteria_json,
        }
