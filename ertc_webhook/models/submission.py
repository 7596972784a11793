"""Submission ORM model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Shared declarative base for all models."""

    pass


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    submission_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    original_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    contract_version: Mapped[str] = mapped_column(String(16), nullable=False)

    # Revenue qualification, stored as computed at intake
    qualifying_quarters: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    quarter_analysis: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    report_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    forwarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    forwarding_message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Always load explicitly with selectinload(); blobs stay deferred.
    files = relationship(
        "StoredFile",
        back_populates="submission",
        lazy="select",
        cascade="all, delete-orphan",
        order_by="StoredFile.position",
    )

    __table_args__ = (
        Index("ix_submissions_user_id", "user_id"),
        Index("ix_submissions_user_email", "user_email"),
        Index("ix_submissions_received_at", "received_at"),
    )

    def __repr__(self) -> str:
        return f"<Submission {self.submission_id} – {self.user_email or 'anonymous'}>"
