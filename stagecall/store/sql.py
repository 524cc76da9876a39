"""SqlPhaseStore: PhaseStore over SQLAlchemy async sessions.

Each public method opens its own session from the injected factory. Writes
that must be atomic (phase change + audit entry, configuration + audit
entry) share one transaction.
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stagecall.core.exceptions import NotFoundError, StorageError
from stagecall.db.models import (
    Organization,
    Project,
    ProjectAuditLog,
    ProjectLocation,
    ProjectRoleTemplate,
    ProjectSettings,
    ProjectSetupChecklist,
    TalentAssignment,
    TeamAssignment,
    Timecard,
)
from stagecall.domain.phases import Phase, parse_phase
from stagecall.domain.records import (
    AuditLogEntry,
    ProjectRecord,
    ProjectSettingsRecord,
    SetupChecklist,
    TalentAssignmentRecord,
    TeamAssignmentRecord,
    TimecardRecord,
)

logger = structlog.get_logger(__name__)

_PROJECT_COLUMNS = ("auto_transitions_enabled", "timezone", "rehearsal_start_date", "show_end_date")
_SETTINGS_COLUMNS = ("archive_month", "archive_day", "post_show_transition_hour", "auto_transitions_enabled")


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


@contextmanager
def _storage_errors(operation: str, **context) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("storage_operation_failed", operation=operation, error=str(exc), **context)
        raise StorageError(f"{operation} failed: {exc}") from exc


def _to_record(
    project: Project,
    organization_timezone: str | None,
    checklist: ProjectSetupChecklist | None,
    settings: ProjectSettings | None,
) -> ProjectRecord:
    return ProjectRecord(
        id=str(project.id),
        name=project.name,
        description=project.description or "",
        phase=parse_phase(project.phase),
        phase_updated_at=project.phase_updated_at,
        auto_transitions_enabled=project.auto_transitions_enabled,
        timezone=project.timezone,
        organization_timezone=organization_timezone,
        start_date=project.start_date,
        end_date=project.end_date,
        rehearsal_start_date=project.rehearsal_start_date,
        show_end_date=project.show_end_date,
        created_at=project.created_at,
        checklist=SetupChecklist(
            roles_finalized=checklist.roles_finalized,
            locations_finalized=checklist.locations_finalized,
            team_assignments_finalized=checklist.team_assignments_finalized,
            talent_roster_finalized=checklist.talent_roster_finalized,
        )
        if checklist is not None
        else None,
        settings=ProjectSettingsRecord(
            archive_month=settings.archive_month,
            archive_day=settings.archive_day,
            post_show_transition_hour=settings.post_show_transition_hour,
            auto_transitions_enabled=settings.auto_transitions_enabled,
            updated_by=settings.updated_by,
            updated_at=settings.updated_at,
        )
        if settings is not None
        else None,
    )


def _audit_row(project_id: uuid.UUID, entry: AuditLogEntry) -> ProjectAuditLog:
    return ProjectAuditLog(
        project_id=project_id,
        action_type=entry.action_type,
        details=entry.details,
        triggered_by=entry.triggered_by,
        created_at=entry.timestamp,
    )


def _project_query():
    """Project with its organization timezone, checklist and settings in one round trip."""
    return (
        select(Project, Organization.timezone, ProjectSetupChecklist, ProjectSettings)
        .outerjoin(Organization, Organization.id == Project.organization_id)
        .outerjoin(ProjectSetupChecklist, ProjectSetupChecklist.project_id == Project.id)
        .outerjoin(ProjectSettings, ProjectSettings.project_id == Project.id)
    )


class SqlPhaseStore:
    """PhaseStore implementation on the shared async session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        pid = _as_uuid(project_id)
        if pid is None:
            return None
        with _storage_errors("get_project", project_id=project_id):
            async with self.session_factory() as session:
                row = (await session.execute(_project_query().where(Project.id == pid))).one_or_none()
                return _to_record(*row) if row is not None else None

    async def list_auto_transition_projects(self) -> list[ProjectRecord]:
        with _storage_errors("list_auto_transition_projects"):
            async with self.session_factory() as session:
                result = await session.execute(
                    _project_query()
                    .where(Project.auto_transitions_enabled.is_(True), Project.phase != Phase.ARCHIVED.value)
                    .order_by(Project.created_at)
                )
                return [_to_record(*row) for row in result.all()]

    async def get_team_assignments(self, project_id: str) -> list[TeamAssignmentRecord]:
        pid = _as_uuid(project_id)
        if pid is None:
            return []
        with _storage_errors("get_team_assignments", project_id=project_id):
            async with self.session_factory() as session:
                rows = (await session.execute(select(TeamAssignment).where(TeamAssignment.project_id == pid))).scalars()
                return [TeamAssignmentRecord(user_id=r.user_id, role=r.role, full_name=r.full_name) for r in rows]

    async def get_talent_assignments(self, project_id: str) -> list[TalentAssignmentRecord]:
        pid = _as_uuid(project_id)
        if pid is None:
            return []
        with _storage_errors("get_talent_assignments", project_id=project_id):
            async with self.session_factory() as session:
                rows = (
                    await session.execute(select(TalentAssignment).where(TalentAssignment.project_id == pid))
                ).scalars()
                return [TalentAssignmentRecord(talent_id=r.talent_id, escort_id=r.escort_id) for r in rows]

    async def get_timecards(self, project_id: str) -> list[TimecardRecord]:
        pid = _as_uuid(project_id)
        if pid is None:
            return []
        with _storage_errors("get_timecards", project_id=project_id):
            async with self.session_factory() as session:
                rows = (await session.execute(select(Timecard).where(Timecard.project_id == pid))).scalars()
                return [
                    TimecardRecord(id=str(r.id), user_id=r.user_id, status=r.status, full_name=r.full_name)
                    for r in rows
                ]

    async def _count(self, model, project_id: str, operation: str) -> int:
        pid = _as_uuid(project_id)
        if pid is None:
            return 0
        with _storage_errors(operation, project_id=project_id):
            async with self.session_factory() as session:
                result = await session.execute(select(func.count()).select_from(model).where(model.project_id == pid))
                return result.scalar_one()

    async def count_locations(self, project_id: str) -> int:
        return await self._count(ProjectLocation, project_id, "count_locations")

    async def count_role_templates(self, project_id: str) -> int:
        return await self._count(ProjectRoleTemplate, project_id, "count_role_templates")

    async def append_audit(self, entry: AuditLogEntry) -> None:
        pid = _as_uuid(entry.project_id)
        if pid is None:
            raise StorageError(f"Cannot audit unknown project id {entry.project_id!r}")
        with _storage_errors("append_audit", project_id=entry.project_id, action_type=entry.action_type):
            async with self.session_factory() as session, session.begin():
                session.add(_audit_row(pid, entry))

    async def commit_phase_transition(
        self,
        project_id: str,
        expected_phase: Phase,
        new_phase: Phase,
        transitioned_at: datetime,
        audit_entry: AuditLogEntry,
    ) -> bool:
        pid = _as_uuid(project_id)
        if pid is None:
            return False
        with _storage_errors("commit_phase_transition", project_id=project_id, to_phase=new_phase.value):
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    update(Project)
                    .where(Project.id == pid, Project.phase == expected_phase.value)
                    .values(phase=new_phase.value, phase_updated_at=transitioned_at, updated_at=transitioned_at)
                )
                if result.rowcount != 1:
                    return False
                session.add(_audit_row(pid, audit_entry))
        return True

    async def update_configuration(
        self,
        project_id: str,
        project_changes: dict[str, Any],
        settings_changes: dict[str, Any],
        audit_entry: AuditLogEntry,
    ) -> None:
        pid = _as_uuid(project_id)
        if pid is None:
            raise NotFoundError("Project", project_id)
        with _storage_errors("update_configuration", project_id=project_id):
            async with self.session_factory() as session, session.begin():
                project = await session.get(Project, pid, with_for_update=True)
                if project is None:
                    raise NotFoundError("Project", project_id)
                for name in _PROJECT_COLUMNS:
                    if name in project_changes:
                        setattr(project, name, project_changes[name])

                if settings_changes:
                    settings = await session.get(ProjectSettings, pid)
                    if settings is None:
                        settings = ProjectSettings(project_id=pid)
                        session.add(settings)
                    for name in _SETTINGS_COLUMNS:
                        if name in settings_changes:
                            setattr(settings, name, settings_changes[name])
                    settings.updated_by = audit_entry.triggered_by
                    settings.updated_at = datetime.now(UTC)

                session.add(_audit_row(pid, audit_entry))

    async def create_settings_if_absent(self, project_id: str, settings: ProjectSettingsRecord) -> bool:
        pid = _as_uuid(project_id)
        if pid is None:
            raise NotFoundError("Project", project_id)
        with _storage_errors("create_settings_if_absent", project_id=project_id):
            async with self.session_factory() as session, session.begin():
                if await session.get(Project, pid) is None:
                    raise NotFoundError("Project", project_id)
                if await session.get(ProjectSettings, pid) is not None:
                    return False
                session.add(
                    ProjectSettings(
                        project_id=pid,
                        archive_month=settings.archive_month,
                        archive_day=settings.archive_day,
                        post_show_transition_hour=settings.post_show_transition_hour,
                        auto_transitions_enabled=settings.auto_transitions_enabled,
                        updated_by=settings.updated_by,
                    )
                )
        return True

    async def list_audit_entries(
        self,
        project_id: str | None = None,
        action_types: tuple[str, ...] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        query = select(ProjectAuditLog)
        if project_id is not None:
            pid = _as_uuid(project_id)
            if pid is None:
                return []
            query = query.where(ProjectAuditLog.project_id == pid)
        if action_types:
            query = query.where(ProjectAuditLog.action_type.in_(action_types))
        if since is not None:
            query = query.where(ProjectAuditLog.created_at >= since)
        if until is not None:
            query = query.where(ProjectAuditLog.created_at <= until)
        query = query.order_by(ProjectAuditLog.created_at.desc())
        if limit is not None:
            query = query.limit(limit)

        with _storage_errors("list_audit_entries", project_id=project_id):
            async with self.session_factory() as session:
                rows = (await session.execute(query)).scalars()
                return [
                    AuditLogEntry(
                        action_type=r.action_type,
                        project_id=str(r.project_id),
                        details=dict(r.details or {}),
                        timestamp=r.created_at,
                        triggered_by=r.triggered_by,
                    )
                    for r in rows
                ]

    async def ping(self) -> None:
        with _storage_errors("ping"):
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
