"""Shared test fixtures for all test groups."""

from datetime import UTC, date, datetime

import pytest

from stagecall.domain.configuration import PhaseDefaults
from stagecall.domain.phases import Phase
from stagecall.domain.records import ProjectRecord, SetupChecklist
from stagecall.services.phase_engine import PhaseEngine
from stagecall.store.memory import InMemoryPhaseStore

CREATED_AT = datetime(2025, 1, 6, 12, 0, tzinfo=UTC)


def make_project(project_id: str = "proj-001", phase: Phase = Phase.PREP, **overrides) -> ProjectRecord:
    """ProjectRecord with sensible defaults; any field can be overridden."""
    fields = {
        "id": project_id,
        "name": f"Production {project_id}",
        "phase": phase,
        "description": "Three-day awards show",
        "timezone": "America/New_York",
        "start_date": date(2025, 3, 10),
        "end_date": date(2025, 3, 20),
        "created_at": CREATED_AT,
        "phase_updated_at": CREATED_AT,
    }
    fields.update(overrides)
    return ProjectRecord(**fields)


def full_checklist() -> SetupChecklist:
    return SetupChecklist(
        roles_finalized=True,
        locations_finalized=True,
        team_assignments_finalized=True,
        talent_roster_finalized=True,
    )


@pytest.fixture
def store() -> InMemoryPhaseStore:
    """Fresh in-memory store for each test."""
    return InMemoryPhaseStore()


@pytest.fixture
def defaults() -> PhaseDefaults:
    return PhaseDefaults()


@pytest.fixture
def engine(store: InMemoryPhaseStore, defaults: PhaseDefaults) -> PhaseEngine:
    return PhaseEngine(store, defaults)


@pytest.fixture
def project_factory():
    """The make_project builder, for tests that need several projects."""
    return make_project


@pytest.fixture
def checklist_factory():
    return full_checklist
