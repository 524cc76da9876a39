"""Team and talent assignment models (read-only to the phase engine)."""

import uuid

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from stagecall.db.base import Base


class TeamAssignment(Base):
    __tablename__ = "team_assignments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)  # supervisor, coordinator, talent_escort, ...
    full_name = Column(String(255), nullable=True)


class TalentAssignment(Base):
    __tablename__ = "talent_project_assignments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    talent_id = Column(String(255), nullable=False)
    escort_id = Column(String(255), nullable=True)
