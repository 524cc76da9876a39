"""Timecard model: payroll submissions per team member."""

import uuid

from sqlalchemy import Column, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID

from stagecall.db.base import Base


class Timecard(Base):
    __tablename__ = "timecards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="draft")  # draft, submitted, approved, rejected, paid
    full_name = Column(String(255), nullable=True)
