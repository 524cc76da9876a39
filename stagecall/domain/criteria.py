"""Completion criteria per phase.

Pure classification over record snapshots: no I/O, no logging. The engine's
transition gates and the action-item generators both read the gate tables
below so the two never disagree on what blocks a move.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date

from stagecall.domain.phases import Phase
from stagecall.domain.records import (
    TERMINAL_TIMECARD_STATUSES,
    ProjectRecord,
    SetupChecklist,
    TalentAssignmentRecord,
    TeamAssignmentRecord,
    TimecardRecord,
    TimecardStatus,
)

ESSENTIAL_ROLES: tuple[str, ...] = ("supervisor", "coordinator")

# Escort coverage at or above this percentage counts as done
ESCORT_COVERAGE_TARGET = 80

# Rehearsal within this many days counts as "approaching"
REHEARSAL_PROXIMITY_DAYS = 7

# (checklist flag, blocker) pairs gating the checklist-driven transitions
CHECKLIST_GATES: dict[Phase, tuple[tuple[str, str], ...]] = {
    Phase.PREP: (
        ("roles_finalized", "Project roles must be finalized"),
        ("locations_finalized", "Project locations must be defined"),
    ),
    Phase.STAFFING: (
        ("team_assignments_finalized", "Team assignments must be complete"),
        ("talent_roster_finalized", "Talent roster must be finalized"),
    ),
}

# Labels shown when the pre-show checklist is reviewed
CHECKLIST_LABELS: tuple[tuple[str, str], ...] = (
    ("roles_finalized", "Project roles finalized"),
    ("locations_finalized", "Project locations finalized"),
    ("talent_roster_finalized", "Talent roster finalized"),
    ("team_assignments_finalized", "Team assignments finalized"),
)


@dataclass
class ValidationResult:
    """Classification of a phase's completion criteria.

    is_complete is True only when nothing is pending and nothing blocks.
    """

    completed_items: list[str] = field(default_factory=list)
    pending_items: list[str] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.pending_items and not self.blockers


def checklist_blockers(phase: Phase, checklist: SetupChecklist | None) -> list[str]:
    """Blockers from unset checklist flags for phase. An absent checklist has every flag unset."""
    checklist = checklist or SetupChecklist()
    return [blocker for flag, blocker in CHECKLIST_GATES.get(phase, ()) if not getattr(checklist, flag)]


def outstanding_timecards(timecards: list[TimecardRecord]) -> list[TimecardRecord]:
    """Timecards not yet approved or paid."""
    return [tc for tc in timecards if tc.status not in TERMINAL_TIMECARD_STATUSES]


def timecard_blocker(timecards: list[TimecardRecord]) -> str | None:
    """The post_show -> complete blocker, or None when every timecard is settled."""
    pending = len(outstanding_timecards(timecards))
    if pending:
        return f"{pending} timecards pending approval"
    return None


def round_half_up_percentage(part: int, whole: int) -> int:
    """Integer percentage of part/whole, .5 rounded up."""
    return (part * 200 + whole) // (2 * whole)


def classify_prep(project: ProjectRecord, location_count: int, role_template_count: int) -> ValidationResult:
    """Vital project information needed before staffing can begin."""
    result = ValidationResult()

    checks = (
        (bool(project.name and project.name.strip()), "Project name defined", "Project name required"),
        (
            bool(project.description and project.description.strip()),
            "Project description provided",
            "Project description required",
        ),
        (project.start_date is not None, "Project start date set", "Project start date required"),
        (project.end_date is not None, "Project end date set", "Project end date required"),
        (bool(project.timezone), "Project timezone configured", "Project timezone required"),
    )
    for ok, done, missing in checks:
        (result.completed_items if ok else result.pending_items).append(done if ok else missing)

    if location_count > 0:
        result.completed_items.append(f"{location_count} project locations defined")
    else:
        result.pending_items.append("Project locations required")
        result.blockers.append("At least one project location must be defined")

    if role_template_count > 0:
        result.completed_items.append(f"{role_template_count} role templates configured")
    else:
        result.pending_items.append("Project role templates required")
        result.blockers.append("At least one role template must be defined")

    return result


def classify_staffing(team: list[TeamAssignmentRecord], talent: list[TalentAssignmentRecord]) -> ValidationResult:
    result = ValidationResult()

    if team:
        result.completed_items.append(f"{len(team)} team members assigned")
    else:
        result.pending_items.append("Team assignments required")
        result.blockers.append("At least one team member must be assigned")

    if talent:
        result.completed_items.append(f"{len(talent)} talent assigned to project")
    else:
        result.pending_items.append("Talent roster required")
        result.blockers.append("At least one talent must be assigned to the project")

    assigned_roles = {assignment.role for assignment in team}
    missing_roles = [role for role in ESSENTIAL_ROLES if role not in assigned_roles]
    if missing_roles:
        result.pending_items.append(f"Missing essential roles: {', '.join(missing_roles)}")
        result.blockers.append("Supervisor and coordinator roles must be assigned")
    else:
        result.completed_items.append("Essential roles (supervisor, coordinator) assigned")

    return result


def classify_pre_show(
    checklist: SetupChecklist | None,
    rehearsal_start_date: date | None,
    talent: list[TalentAssignmentRecord],
    today: date,
) -> ValidationResult:
    """Final preparations before rehearsals begin.

    Args:
        checklist: Setup checklist, None when never initialized
        rehearsal_start_date: Calendar date rehearsals begin
        talent: Talent assignments (escort coverage is derived from these)
        today: Current calendar date in the project's timezone
    """
    result = ValidationResult()

    if checklist is None:
        result.pending_items.append("Project setup checklist not initialized")
        result.blockers.append("Setup checklist must be completed")
    else:
        for flag, label in CHECKLIST_LABELS:
            if getattr(checklist, flag):
                result.completed_items.append(label)
            else:
                result.pending_items.append(label)
                result.blockers.append(f"{label} must be completed before going active")

    if rehearsal_start_date is None:
        result.pending_items.append("Rehearsal start date required")
        result.blockers.append("Rehearsal start date must be set for pre-show phase")
    else:
        result.completed_items.append("Rehearsal start date configured")
        days_until = (rehearsal_start_date - today).days
        if days_until < 0:
            result.completed_items.append("Rehearsal start date has passed")
        elif days_until <= REHEARSAL_PROXIMITY_DAYS:
            result.completed_items.append(
                f"Rehearsal start date is approaching (within {REHEARSAL_PROXIMITY_DAYS} days)"
            )
        else:
            result.pending_items.append(f"Rehearsal start date is {days_until} days away")

    if talent:
        escorted = sum(1 for assignment in talent if assignment.escort_id)
        coverage = round_half_up_percentage(escorted, len(talent))
        if coverage >= ESCORT_COVERAGE_TARGET:
            result.completed_items.append(f"{coverage}% of talent have assigned escorts")
        else:
            result.pending_items.append(f"Only {coverage}% of talent have assigned escorts")

    return result


def classify_timecards(timecards: list[TimecardRecord], team: list[TeamAssignmentRecord]) -> ValidationResult:
    """Payroll state required before a project can be completed."""
    result = ValidationResult()

    if not timecards:
        result.pending_items.append("No timecards submitted")
        result.blockers.append("Timecards must be submitted before project completion")
        return result

    counts = Counter(tc.status for tc in timecards)
    if counts[TimecardStatus.APPROVED]:
        result.completed_items.append(f"{counts[TimecardStatus.APPROVED]} timecards approved")
    if counts[TimecardStatus.PAID]:
        result.completed_items.append(f"{counts[TimecardStatus.PAID]} timecards paid")

    outstanding = outstanding_timecards(timecards)
    if outstanding:
        result.pending_items.append(f"{len(outstanding)} timecards pending approval")
        result.blockers.append("All timecards must be approved or paid for project completion")
    else:
        result.completed_items.append("All timecards have been approved or paid")

    if counts[TimecardStatus.REJECTED]:
        result.pending_items.append(
            f"{counts[TimecardStatus.REJECTED]} timecards rejected and need resubmission"
        )
        result.blockers.append("Rejected timecards must be corrected and resubmitted")

    submitted = {tc.user_id for tc in timecards}
    missing = [member for member in team if member.user_id not in submitted]
    if missing:
        names = ", ".join(member.full_name or "Unknown" for member in missing)
        result.pending_items.append(f"Missing timecard submissions from: {names}")
        result.blockers.append("All team members must submit timecards")
    elif team:
        result.completed_items.append("All team members have submitted timecards")

    return result
