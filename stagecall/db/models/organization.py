"""Organization model: owns projects and supplies the fallback timezone."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID

from stagecall.db.base import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=True)  # IANA id

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
