"""InMemoryPhaseStore: deterministic PhaseStore double.

Used by the service and API tests and handy for local runs without
Postgres. Reads return deep copies so callers never mutate stored state.
Failures can be injected per method with fail().
"""

import asyncio
import copy
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from stagecall.core.exceptions import NotFoundError, StorageError
from stagecall.domain.phases import Phase
from stagecall.domain.records import (
    AuditLogEntry,
    ProjectRecord,
    ProjectSettingsRecord,
    SetupChecklist,
    TalentAssignmentRecord,
    TeamAssignmentRecord,
    TimecardRecord,
)

_PROJECT_FIELDS = {"auto_transitions_enabled", "timezone", "rehearsal_start_date", "show_end_date"}
_SETTINGS_FIELDS = {"archive_month", "archive_day", "post_show_transition_hour", "auto_transitions_enabled"}


class InMemoryPhaseStore:
    """PhaseStore backed by dicts."""

    def __init__(self):
        self.projects: dict[str, ProjectRecord] = {}
        self.team: dict[str, list[TeamAssignmentRecord]] = {}
        self.talent: dict[str, list[TalentAssignmentRecord]] = {}
        self.timecards: dict[str, list[TimecardRecord]] = {}
        self.location_counts: dict[str, int] = {}
        self.role_template_counts: dict[str, int] = {}
        self.audit_log: list[AuditLogEntry] = []
        self._failures: dict[str, tuple[Exception, str | None]] = {}
        self._lock = asyncio.Lock()

    # -- fixtures -----------------------------------------------------------

    def add_project(
        self,
        project: ProjectRecord,
        team: list[TeamAssignmentRecord] | None = None,
        talent: list[TalentAssignmentRecord] | None = None,
        timecards: list[TimecardRecord] | None = None,
        locations: int = 0,
        role_templates: int = 0,
    ) -> ProjectRecord:
        self.projects[project.id] = project
        self.team[project.id] = list(team or [])
        self.talent[project.id] = list(talent or [])
        self.timecards[project.id] = list(timecards or [])
        self.location_counts[project.id] = locations
        self.role_template_counts[project.id] = role_templates
        return project

    def fail(self, method: str, exc: Exception | None = None, project_id: str | None = None) -> None:
        """Make method raise exc (StorageError by default), optionally only for one project."""
        self._failures[method] = (exc or StorageError(f"{method} failed"), project_id)

    def clear_failures(self) -> None:
        self._failures.clear()

    def _check(self, method: str, project_id: str | None = None) -> None:
        failure = self._failures.get(method)
        if failure is None:
            return
        exc, only_for = failure
        if only_for is None or only_for == project_id:
            raise exc

    # -- reads --------------------------------------------------------------

    async def get_project(self, project_id: str) -> ProjectRecord | None:
        self._check("get_project", project_id)
        project = self.projects.get(project_id)
        return copy.deepcopy(project) if project is not None else None

    async def list_auto_transition_projects(self) -> list[ProjectRecord]:
        self._check("list_auto_transition_projects")
        return [
            copy.deepcopy(p)
            for p in self.projects.values()
            if p.auto_transitions_enabled and p.phase != Phase.ARCHIVED
        ]

    async def get_team_assignments(self, project_id: str) -> list[TeamAssignmentRecord]:
        self._check("get_team_assignments", project_id)
        return copy.deepcopy(self.team.get(project_id, []))

    async def get_talent_assignments(self, project_id: str) -> list[TalentAssignmentRecord]:
        self._check("get_talent_assignments", project_id)
        return copy.deepcopy(self.talent.get(project_id, []))

    async def get_timecards(self, project_id: str) -> list[TimecardRecord]:
        self._check("get_timecards", project_id)
        return copy.deepcopy(self.timecards.get(project_id, []))

    async def count_locations(self, project_id: str) -> int:
        self._check("count_locations", project_id)
        return self.location_counts.get(project_id, 0)

    async def count_role_templates(self, project_id: str) -> int:
        self._check("count_role_templates", project_id)
        return self.role_template_counts.get(project_id, 0)

    async def list_audit_entries(
        self,
        project_id: str | None = None,
        action_types: tuple[str, ...] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[AuditLogEntry]:
        self._check("list_audit_entries", project_id)
        entries = [
            e
            for e in self.audit_log
            if (project_id is None or e.project_id == project_id)
            and (action_types is None or e.action_type in action_types)
            and (since is None or e.timestamp >= since)
            and (until is None or e.timestamp <= until)
        ]
        # Stable sort keeps insertion order for equal timestamps, newest first
        entries = sorted(reversed(entries), key=lambda e: e.timestamp, reverse=True)
        if limit is not None:
            entries = entries[:limit]
        return copy.deepcopy(entries)

    async def ping(self) -> None:
        self._check("ping")

    # -- writes -------------------------------------------------------------

    async def append_audit(self, entry: AuditLogEntry) -> None:
        self._check("append_audit", entry.project_id)
        self.audit_log.append(copy.deepcopy(entry))

    async def commit_phase_transition(
        self,
        project_id: str,
        expected_phase: Phase,
        new_phase: Phase,
        transitioned_at: datetime,
        audit_entry: AuditLogEntry,
    ) -> bool:
        self._check("commit_phase_transition", project_id)
        async with self._lock:
            project = self.projects.get(project_id)
            if project is None or project.phase != expected_phase:
                return False
            self.projects[project_id] = replace(project, phase=new_phase, phase_updated_at=transitioned_at)
            self.audit_log.append(copy.deepcopy(audit_entry))
            return True

    async def update_configuration(
        self,
        project_id: str,
        project_changes: dict[str, Any],
        settings_changes: dict[str, Any],
        audit_entry: AuditLogEntry,
    ) -> None:
        self._check("update_configuration", project_id)
        async with self._lock:
            project = self.projects.get(project_id)
            if project is None:
                raise NotFoundError("Project", project_id)
            project = replace(project, **{k: v for k, v in project_changes.items() if k in _PROJECT_FIELDS})
            if settings_changes:
                settings = project.settings or ProjectSettingsRecord()
                project.settings = replace(
                    settings,
                    **{k: v for k, v in settings_changes.items() if k in _SETTINGS_FIELDS},
                    updated_by=audit_entry.triggered_by,
                    updated_at=datetime.now(UTC),
                )
            self.projects[project_id] = project
            self.audit_log.append(copy.deepcopy(audit_entry))

    async def create_settings_if_absent(self, project_id: str, settings: ProjectSettingsRecord) -> bool:
        self._check("create_settings_if_absent", project_id)
        project = self.projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        if project.settings is not None:
            return False
        project.settings = copy.deepcopy(settings)
        return True

    def set_checklist(self, project_id: str, **flags: bool) -> None:
        project = self.projects[project_id]
        project.checklist = replace(project.checklist or SetupChecklist(), **flags)
