"""CriteriaValidator: completion checklists per phase.

Fetches records through the PhaseStore and delegates classification to the
pure rules in stagecall.domain.criteria. Fetch failures surface as
CriteriaValidationError(DATABASE_ERROR), anything else unexpected as
CriteriaValidationError(VALIDATION_ERROR); unknown projects raise
NotFoundError.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog

from stagecall.core.exceptions import CriteriaValidationError, NotFoundError, StorageError
from stagecall.domain.criteria import (
    ValidationResult,
    classify_pre_show,
    classify_prep,
    classify_staffing,
    classify_timecards,
)
from stagecall.domain.records import ProjectRecord
from stagecall.domain.timezones import current_time_in_timezone, get_project_timezone
from stagecall.store.base import PhaseStore

logger = structlog.get_logger(__name__)


class CriteriaValidator:
    def __init__(self, store: PhaseStore):
        self.store = store

    async def _project(self, project_id: str) -> ProjectRecord:
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def _guarded(
        self, check: str, project_id: str, run: Callable[[], Awaitable[ValidationResult]]
    ) -> ValidationResult:
        try:
            result = await run()
        except (NotFoundError, CriteriaValidationError):
            raise
        except StorageError as exc:
            logger.error("criteria_data_fetch_failed", check=check, project_id=project_id, error=str(exc))
            raise CriteriaValidationError(
                CriteriaValidationError.DATABASE_ERROR,
                f"Failed to fetch data for {check} validation",
                {"project_id": project_id, "error": str(exc)},
            ) from exc
        except Exception as exc:
            logger.error("criteria_validation_failed", check=check, project_id=project_id, error=str(exc))
            raise CriteriaValidationError(
                CriteriaValidationError.VALIDATION_ERROR,
                f"Failed to validate {check} completion",
                {"project_id": project_id, "error": str(exc)},
            ) from exc

        logger.debug(
            "criteria_validated",
            check=check,
            project_id=project_id,
            is_complete=result.is_complete,
            blockers=len(result.blockers),
        )
        return result

    async def validate_prep_completion(self, project_id: str) -> ValidationResult:
        """Vital project information, locations and role templates."""

        async def run() -> ValidationResult:
            project = await self._project(project_id)
            locations = await self.store.count_locations(project_id)
            role_templates = await self.store.count_role_templates(project_id)
            return classify_prep(project, locations, role_templates)

        return await self._guarded("prep", project_id, run)

    async def validate_staffing_completion(self, project_id: str) -> ValidationResult:
        """Team and talent assignment, including the essential supervisor/coordinator roles."""

        async def run() -> ValidationResult:
            await self._project(project_id)
            team = await self.store.get_team_assignments(project_id)
            talent = await self.store.get_talent_assignments(project_id)
            return classify_staffing(team, talent)

        return await self._guarded("staffing", project_id, run)

    async def validate_pre_show_readiness(self, project_id: str, now: datetime | None = None) -> ValidationResult:
        """Checklist sign-off, rehearsal date and escort coverage.

        Args:
            project_id: Project to check
            now: Injectable current time for testing
        """

        async def run() -> ValidationResult:
            project = await self._project(project_id)
            talent = await self.store.get_talent_assignments(project_id)
            today = current_time_in_timezone(get_project_timezone(project), now or datetime.now(UTC)).date()
            return classify_pre_show(project.checklist, project.rehearsal_start_date, talent, today)

        return await self._guarded("pre-show", project_id, run)

    async def validate_timecard_completion(self, project_id: str) -> ValidationResult:
        """Every team member has submitted and every timecard is approved or paid."""

        async def run() -> ValidationResult:
            await self._project(project_id)
            timecards = await self.store.get_timecards(project_id)
            team = await self.store.get_team_assignments(project_id)
            return classify_timecards(timecards, team)

        return await self._guarded("timecard", project_id, run)
