"""Project model: a production moving through the phase lifecycle."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID

from stagecall.db.base import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=True, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    # prep, staffing, pre_show, active, post_show, complete, archived
    phase = Column(String(20), nullable=False, default="prep", index=True)
    phase_updated_at = Column(DateTime(timezone=True), nullable=True)
    auto_transitions_enabled = Column(Boolean, nullable=False, default=True)

    timezone = Column(String(64), nullable=True)  # IANA id
    rehearsal_start_date = Column(Date, nullable=True)
    show_end_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )
