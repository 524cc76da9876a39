"""Integration tests for SqlPhaseStore against PostgreSQL.

Requires TEST_DATABASE_URL; skipped otherwise.
"""

import os
import uuid
from datetime import UTC, date, datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stagecall.db.base import Base
from stagecall.db.models import Organization, Project, ProjectSettings, ProjectSetupChecklist, Timecard
from stagecall.domain.phases import Phase, TransitionTrigger
from stagecall.domain.records import AuditLogEntry
from stagecall.services.phase_engine import PHASE_TRANSITION_ACTION, PhaseEngine
from stagecall.store.sql import SqlPhaseStore

_TEST_DB_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not _TEST_DB_URL, reason="TEST_DATABASE_URL not set"),
]


@pytest.fixture
async def session_factory():
    import stagecall.db.models  # noqa: F401

    engine = create_async_engine(_TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def seeded_project(session_factory) -> str:
    org_id = uuid.uuid4()
    project_id = uuid.uuid4()
    async with session_factory() as session:
        session.add(Organization(id=org_id, name="Acme Live", timezone="America/Chicago"))
        await session.flush()
        session.add(
            Project(
                id=project_id,
                organization_id=org_id,
                name="Winter Gala",
                phase="prep",
                timezone=None,
                rehearsal_start_date=date(2025, 3, 14),
                phase_updated_at=datetime(2025, 1, 6, tzinfo=UTC),
            )
        )
        await session.flush()
        session.add(ProjectSetupChecklist(project_id=project_id, roles_finalized=True, locations_finalized=True))
        session.add(Timecard(project_id=project_id, user_id="u1", status="submitted", full_name="Dana"))
        await session.commit()
    return str(project_id)


async def test_get_project_joins_organization_timezone(session_factory, seeded_project):
    store = SqlPhaseStore(session_factory)
    project = await store.get_project(seeded_project)

    assert project.phase is Phase.PREP
    assert project.organization_timezone == "America/Chicago"
    assert project.checklist.roles_finalized is True
    assert project.settings is None


async def test_listing_loads_checklist_and_settings(session_factory, seeded_project):
    bare_id = uuid.uuid4()
    async with session_factory() as session:
        session.add(
            Project(id=bare_id, name="Spring Fair", phase="staffing", created_at=datetime(2025, 2, 1, tzinfo=UTC))
        )
        session.add(Project(name="Old Tour", phase="archived"))
        session.add(ProjectSettings(project_id=uuid.UUID(seeded_project), archive_month=6, archive_day=15))
        await session.commit()

    projects = await SqlPhaseStore(session_factory).list_auto_transition_projects()

    by_id = {p.id: p for p in projects}
    assert set(by_id) == {seeded_project, str(bare_id)}
    seeded = by_id[seeded_project]
    assert seeded.organization_timezone == "America/Chicago"
    assert seeded.checklist.locations_finalized is True
    assert (seeded.settings.archive_month, seeded.settings.archive_day) == (6, 15)
    bare = by_id[str(bare_id)]
    assert bare.checklist is None
    assert bare.settings is None
    assert bare.organization_timezone is None


async def test_invalid_and_unknown_ids_are_not_found(session_factory):
    store = SqlPhaseStore(session_factory)
    assert await store.get_project("not-a-uuid") is None
    assert await store.get_project(str(uuid.uuid4())) is None
    assert await store.get_timecards("not-a-uuid") == []


async def test_conditional_commit_applies_once(session_factory, seeded_project):
    store = SqlPhaseStore(session_factory)
    now = datetime(2025, 2, 1, tzinfo=UTC)
    entry = AuditLogEntry(
        action_type=PHASE_TRANSITION_ACTION,
        project_id=seeded_project,
        details={"from_phase": "prep", "to_phase": "staffing", "trigger": "manual"},
        timestamp=now,
        triggered_by="user-7",
    )

    assert await store.commit_phase_transition(seeded_project, Phase.PREP, Phase.STAFFING, now, entry) is True
    assert await store.commit_phase_transition(seeded_project, Phase.PREP, Phase.STAFFING, now, entry) is False

    entries = await store.list_audit_entries(project_id=seeded_project, action_types=(PHASE_TRANSITION_ACTION,))
    assert len(entries) == 1
    assert (await store.get_project(seeded_project)).phase is Phase.STAFFING


async def test_engine_end_to_end(session_factory, seeded_project):
    store = SqlPhaseStore(session_factory)
    engine = PhaseEngine(store)

    await engine.execute_transition(seeded_project, Phase.STAFFING, TransitionTrigger.MANUAL, actor_id="user-7")

    history = await engine.get_transition_history(seeded_project)
    assert [t.to_phase for t in history] == [Phase.STAFFING]


async def test_configuration_update_and_settings(session_factory, seeded_project):
    store = SqlPhaseStore(session_factory)
    entry = AuditLogEntry(action_type="phase_configuration_updated", project_id=seeded_project, triggered_by="user-7")

    await store.update_configuration(
        seeded_project,
        {"timezone": "Europe/London", "auto_transitions_enabled": False},
        {"archive_month": 5, "auto_transitions_enabled": False},
        entry,
    )

    project = await store.get_project(seeded_project)
    assert project.timezone == "Europe/London"
    assert project.auto_transitions_enabled is False
    assert project.settings.archive_month == 5
    assert await store.list_auto_transition_projects() == []


async def test_ping(session_factory):
    await SqlPhaseStore(session_factory).ping()
