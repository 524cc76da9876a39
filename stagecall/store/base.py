"""PhaseStore Protocol: the record-store boundary of the phase engine.

Services depend only on this protocol. SqlPhaseStore backs it with
SQLAlchemy; InMemoryPhaseStore is the deterministic double used in tests
and local runs.

Every read returns plain record snapshots (stagecall.domain.records).
Implementations raise StorageError for backend failures and never leak
driver exceptions.
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from stagecall.domain.phases import Phase
from stagecall.domain.records import (
    AuditLogEntry,
    ProjectRecord,
    ProjectSettingsRecord,
    TalentAssignmentRecord,
    TeamAssignmentRecord,
    TimecardRecord,
)


@runtime_checkable
class AuditSink(Protocol):
    """Append-only destination for audit entries."""

    async def append_audit(self, entry: AuditLogEntry) -> None: ...


@runtime_checkable
class PhaseStore(AuditSink, Protocol):
    async def get_project(self, project_id: str) -> ProjectRecord | None:
        """Project snapshot including checklist and settings, or None if absent."""
        ...

    async def list_auto_transition_projects(self) -> list[ProjectRecord]:
        """Projects with auto transitions enabled that are not archived."""
        ...

    async def get_team_assignments(self, project_id: str) -> list[TeamAssignmentRecord]: ...

    async def get_talent_assignments(self, project_id: str) -> list[TalentAssignmentRecord]: ...

    async def get_timecards(self, project_id: str) -> list[TimecardRecord]: ...

    async def count_locations(self, project_id: str) -> int: ...

    async def count_role_templates(self, project_id: str) -> int: ...

    async def commit_phase_transition(
        self,
        project_id: str,
        expected_phase: Phase,
        new_phase: Phase,
        transitioned_at: datetime,
        audit_entry: AuditLogEntry,
    ) -> bool:
        """Conditionally advance the phase and append the audit entry atomically.

        The update applies only while the stored phase still equals
        expected_phase. Returns False (and writes nothing) otherwise.
        """
        ...

    async def update_configuration(
        self,
        project_id: str,
        project_changes: dict[str, Any],
        settings_changes: dict[str, Any],
        audit_entry: AuditLogEntry,
    ) -> None:
        """Apply project and settings changes plus the audit entry in one transaction.

        The settings record is created if missing. Raises NotFoundError for an
        unknown project.
        """
        ...

    async def create_settings_if_absent(self, project_id: str, settings: ProjectSettingsRecord) -> bool:
        """Insert settings for the project unless a record exists. Returns True if inserted."""
        ...

    async def list_audit_entries(
        self,
        project_id: str | None = None,
        action_types: tuple[str, ...] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        """Audit entries newest first, filtered as given."""
        ...

    async def ping(self) -> None:
        """Raise StorageError if the backend is unreachable."""
        ...
