"""ProjectSettings model: scheduling parameters mirrored per project."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID

from stagecall.db.base import Base


class ProjectSettings(Base):
    __tablename__ = "project_settings"

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), primary_key=True)

    archive_month = Column(Integer, nullable=True)  # 1-12
    archive_day = Column(Integer, nullable=True)  # 1-31, legal for archive_month
    post_show_transition_hour = Column(Integer, nullable=True)  # 0-23 local
    auto_transitions_enabled = Column(Boolean, nullable=True)

    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )
