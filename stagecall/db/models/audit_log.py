"""ProjectAuditLog model: append-only record of transitions and config changes."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB, UUID

from stagecall.db.base import Base


class ProjectAuditLog(Base):
    __tablename__ = "project_audit_log"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)

    # phase_transition, automatic_transition_attempt, phase_configuration_updated
    action_type = Column(String(50), nullable=False, index=True)
    details = Column(JSONB, nullable=False, default=dict)
    triggered_by = Column(String(255), nullable=False, default="system")  # user id or "system"

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC), index=True)
    # NO updated_at -- entries are immutable
