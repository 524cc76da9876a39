"""Plain record types exchanged between the record store and the engine.

The store converts ORM rows (or in-memory fixtures) into these snapshots so
services never hold live sessions or ORM objects.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from stagecall.domain.phases import Phase


class TimecardStatus(StrEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


# A timecard in one of these statuses no longer blocks project completion
TERMINAL_TIMECARD_STATUSES: frozenset[str] = frozenset({TimecardStatus.APPROVED, TimecardStatus.PAID})


@dataclass
class SetupChecklist:
    roles_finalized: bool = False
    locations_finalized: bool = False
    team_assignments_finalized: bool = False
    talent_roster_finalized: bool = False


@dataclass
class ProjectSettingsRecord:
    """Mirrored per-project settings record holding the scheduling parameters."""

    archive_month: int | None = None
    archive_day: int | None = None
    post_show_transition_hour: int | None = None
    auto_transitions_enabled: bool | None = None
    updated_by: str | None = None
    updated_at: datetime | None = None


@dataclass
class ProjectRecord:
    id: str
    name: str
    phase: Phase
    description: str = ""
    phase_updated_at: datetime | None = None
    auto_transitions_enabled: bool = True
    timezone: str | None = None
    organization_timezone: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    rehearsal_start_date: date | None = None
    show_end_date: date | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    checklist: SetupChecklist | None = None
    settings: ProjectSettingsRecord | None = None


@dataclass
class TeamAssignmentRecord:
    user_id: str
    role: str
    full_name: str | None = None


@dataclass
class TalentAssignmentRecord:
    talent_id: str
    escort_id: str | None = None


@dataclass
class TimecardRecord:
    id: str
    user_id: str
    status: str
    full_name: str | None = None


@dataclass
class AuditLogEntry:
    """Append-only audit record. triggered_by is a user id or "system"."""

    action_type: str
    project_id: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    triggered_by: str = "system"
