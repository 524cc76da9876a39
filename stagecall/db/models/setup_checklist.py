"""ProjectSetupChecklist model: operator sign-off flags."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID

from stagecall.db.base import Base


class ProjectSetupChecklist(Base):
    __tablename__ = "project_setup_checklist"

    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), primary_key=True)

    roles_finalized = Column(Boolean, nullable=False, default=False)
    locations_finalized = Column(Boolean, nullable=False, default=False)
    team_assignments_finalized = Column(Boolean, nullable=False, default=False)
    talent_roster_finalized = Column(Boolean, nullable=False, default=False)

    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )
