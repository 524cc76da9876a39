"""Tests for PhaseConfigurationService reads, validated writes and defaults."""

from datetime import UTC, date, datetime

import pytest

from stagecall.core.exceptions import ConfigurationValidationError, NotFoundError
from stagecall.domain.configuration import PhaseConfigurationUpdate, PhaseDefaults
from stagecall.domain.phases import Phase
from stagecall.domain.records import ProjectSettingsRecord
from stagecall.services.phase_configuration_service import CONFIGURATION_UPDATED_ACTION, PhaseConfigurationService

pytestmark = pytest.mark.unit


@pytest.fixture
def service(store, defaults) -> PhaseConfigurationService:
    return PhaseConfigurationService(store, defaults)


def test_get_defaults_returns_injected_value(service, defaults):
    assert service.get_defaults() is defaults
    assert defaults == PhaseDefaults(
        auto_transitions_enabled=True, archive_month=4, archive_day=1, post_show_transition_hour=6
    )


async def test_get_configuration_unknown_project(service):
    with pytest.raises(NotFoundError):
        await service.get_configuration("missing")


async def test_get_configuration_fills_defaults(service, store, project_factory):
    store.add_project(project_factory())
    config = await service.get_configuration("proj-001")
    assert (config.archive_month, config.archive_day, config.post_show_transition_hour) == (4, 1, 6)
    assert config.timezone == "America/New_York"


async def test_update_writes_project_settings_and_audit(service, store, project_factory):
    store.add_project(project_factory())
    updates = PhaseConfigurationUpdate(
        rehearsal_start_date="2025-03-14",
        show_end_date="2025-03-16",
        archive_month=5,
        auto_transitions_enabled=False,
    )

    config = await service.update_configuration("proj-001", updates, actor_id="user-7")

    assert config.rehearsal_start_date == date(2025, 3, 14)
    assert config.archive_month == 5
    assert config.auto_transitions_enabled is False
    assert store.projects["proj-001"].settings.updated_by == "user-7"

    [entry] = store.audit_log
    assert entry.action_type == CONFIGURATION_UPDATED_ACTION
    assert entry.details["project_updates"]["rehearsal_start_date"] == "2025-03-14"
    assert entry.details["settings_updates"] == {"archive_month": 5, "auto_transitions_enabled": False}


async def test_invalid_update_writes_nothing(service, store, project_factory):
    store.add_project(project_factory())
    updates = PhaseConfigurationUpdate(archive_month=2, archive_day=31)

    with pytest.raises(ConfigurationValidationError, match="Invalid archive date combination: month 2, day 31"):
        await service.update_configuration("proj-001", updates, actor_id="user-7")

    assert store.audit_log == []
    assert store.projects["proj-001"].settings is None


async def test_empty_update_is_a_no_op(service, store, project_factory):
    store.add_project(project_factory())
    await service.update_configuration("proj-001", PhaseConfigurationUpdate(), actor_id="user-7")
    assert store.audit_log == []


async def test_apply_defaults_only_once(service, store, project_factory):
    store.add_project(project_factory())
    assert await service.apply_defaults_to_project("proj-001", "user-7") is True
    assert await service.apply_defaults_to_project("proj-001", "user-7") is False
    assert store.projects["proj-001"].settings.archive_month == 4


async def test_apply_defaults_keeps_existing_settings(store, project_factory):
    service = PhaseConfigurationService(store, PhaseDefaults(archive_month=9))
    store.add_project(project_factory(settings=ProjectSettingsRecord(archive_month=2)))
    assert await service.apply_defaults_to_project("proj-001", "user-7") is False
    assert store.projects["proj-001"].settings.archive_month == 2


async def test_next_transition_time(service, store, project_factory):
    store.add_project(project_factory(phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 3, 15)))
    assert await service.get_next_transition_time("proj-001") == datetime(2025, 3, 15, 4, 0, tzinfo=UTC)


async def test_next_transition_time_none_when_auto_disabled(service, store, project_factory):
    store.add_project(
        project_factory(phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 3, 15), auto_transitions_enabled=False)
    )
    assert await service.is_auto_transitions_enabled("proj-001") is False
    assert await service.get_next_transition_time("proj-001") is None
