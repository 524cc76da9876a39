"""PhaseConfigurationService: read, validate and write per-project scheduling parameters."""

from datetime import UTC, date, datetime

import structlog

from stagecall.core.exceptions import NotFoundError
from stagecall.domain.configuration import (
    PhaseConfiguration,
    PhaseConfigurationUpdate,
    PhaseDefaults,
    merge_configuration,
    validate_update,
)
from stagecall.domain.records import AuditLogEntry, ProjectRecord, ProjectSettingsRecord
from stagecall.services.phase_engine import PhaseEngine
from stagecall.store.base import PhaseStore

logger = structlog.get_logger(__name__)

CONFIGURATION_UPDATED_ACTION = "phase_configuration_updated"

_PROJECT_FIELDS = ("auto_transitions_enabled", "timezone", "rehearsal_start_date", "show_end_date")
_SETTINGS_FIELDS = ("auto_transitions_enabled", "archive_month", "archive_day", "post_show_transition_hour")


def _jsonable(changes: dict) -> dict:
    return {k: v.isoformat() if isinstance(v, date) else v for k, v in changes.items()}


class PhaseConfigurationService:
    """Uses DI for store and defaults so tests can run against InMemoryPhaseStore."""

    def __init__(self, store: PhaseStore, defaults: PhaseDefaults, engine: PhaseEngine | None = None):
        self.store = store
        self.defaults = defaults
        self.engine = engine or PhaseEngine(store, defaults)

    def get_defaults(self) -> PhaseDefaults:
        return self.defaults

    async def _project(self, project_id: str) -> ProjectRecord:
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def get_configuration(self, project_id: str) -> PhaseConfiguration:
        """Project fields merged with the settings record; defaults fill anything missing.

        Raises:
            NotFoundError: If the project does not exist
            StorageError: If the read failed
        """
        return merge_configuration(await self._project(project_id), self.defaults)

    async def update_configuration(
        self, project_id: str, updates: PhaseConfigurationUpdate, actor_id: str
    ) -> PhaseConfiguration:
        """Validate every provided field, then write project, settings and audit entry together.

        Raises:
            NotFoundError: If the project does not exist
            ConfigurationValidationError: If any field is invalid (nothing is written)
            StorageError: If the write failed
        """
        current = await self.get_configuration(project_id)
        changes = validate_update(updates, current)

        project_changes = {k: v for k, v in changes.items() if k in _PROJECT_FIELDS}
        settings_changes = {k: v for k, v in changes.items() if k in _SETTINGS_FIELDS}

        if project_changes or settings_changes:
            entry = AuditLogEntry(
                action_type=CONFIGURATION_UPDATED_ACTION,
                project_id=project_id,
                details={
                    "project_updates": _jsonable(project_changes),
                    "settings_updates": _jsonable(settings_changes),
                    "updated_by": actor_id,
                },
                triggered_by=actor_id,
            )
            await self.store.update_configuration(project_id, project_changes, settings_changes, entry)
            logger.info(
                "phase_configuration_updated",
                project_id=project_id,
                actor_id=actor_id,
                fields=sorted(changes),
            )

        return await self.get_configuration(project_id)

    async def apply_defaults_to_project(self, project_id: str, actor_id: str) -> bool:
        """Create the settings record from defaults unless one exists. Returns True if created."""
        created = await self.store.create_settings_if_absent(
            project_id,
            ProjectSettingsRecord(
                archive_month=self.defaults.archive_month,
                archive_day=self.defaults.archive_day,
                post_show_transition_hour=self.defaults.post_show_transition_hour,
                auto_transitions_enabled=self.defaults.auto_transitions_enabled,
                updated_by=actor_id,
                updated_at=datetime.now(UTC),
            ),
        )
        if created:
            logger.info("phase_defaults_applied", project_id=project_id, actor_id=actor_id)
        return created

    async def is_auto_transitions_enabled(self, project_id: str) -> bool:
        config = await self.get_configuration(project_id)
        return config.auto_transitions_enabled

    async def get_next_transition_time(self, project_id: str) -> datetime | None:
        """Next scheduled transition instant, None if auto transitions are off or nothing is scheduled."""
        project = await self._project(project_id)
        if not project.auto_transitions_enabled:
            return None
        return self.engine.get_scheduled_transition_time(project)
