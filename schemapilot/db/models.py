from __future__ import annotations
from datetime import datetime, timezone
from sqlalchemy import Boolean, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from schemapilot.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RunRecord(Base):
    __tablename__ = "runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    request: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    dry_run: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    steps_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    budget: Mapped[int] = mapped_column(Integer, nullable=False)

    final_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"entity": name, "stages": {stage: bool}}], in discovery order
    progress: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
