"""Phase-specific action items.

Each generator turns live project state into the to-do list an operator sees
for the current phase. Items marked required_for_transition are derived from
the same checklist flags and timecards the engine gates on (see
domain/criteria.py); readiness counts only shape wording and add optional
guidance.
"""

from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from stagecall.domain.criteria import CHECKLIST_GATES, outstanding_timecards
from stagecall.domain.phases import Phase
from stagecall.domain.records import (
    ProjectRecord,
    SetupChecklist,
    TeamAssignmentRecord,
    TimecardRecord,
    TimecardStatus,
)


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK: dict[str, int] = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass
class ActionItem:
    id: str
    title: str
    description: str
    category: str
    priority: Priority
    completed: bool = False
    required_for_transition: bool = False


@dataclass
class ReadinessTodo:
    id: str
    area: str
    priority: str
    title: str
    description: str = ""


@dataclass
class ReadinessSnapshot:
    """Externally computed setup summary for one project.

    The defaults describe a project nobody has started configuring; they are
    used whenever the readiness feed is unavailable.
    """

    project_id: str
    roles_status: str = "default-only"
    locations_status: str = "default-only"
    total_staff_assigned: int = 0
    total_talent: int = 0
    escort_count: int = 0
    supervisor_count: int = 0
    coordinator_count: int = 0
    team_finalized: bool = False
    talent_finalized: bool = False
    roles_finalized: bool = False
    locations_finalized: bool = False
    overall_status: str = "getting-started"
    urgent_assignment_issues: int = 0
    todo_items: list[ReadinessTodo] = field(default_factory=list)


@dataclass
class PhaseItemContext:
    """Everything a generator may look at. Built fresh per call."""

    project: ProjectRecord
    readiness: ReadinessSnapshot
    archive_month: int
    archive_day: int
    team: list[TeamAssignmentRecord] = field(default_factory=list)
    timecards: list[TimecardRecord] = field(default_factory=list)

    @property
    def checklist(self) -> SetupChecklist:
        return self.project.checklist or SetupChecklist()


def _gate_open(ctx: PhaseItemContext, phase: Phase, flag: str) -> bool:
    return any(gate_flag == flag for gate_flag, _ in CHECKLIST_GATES[phase]) and not getattr(ctx.checklist, flag)


def prep_items(ctx: PhaseItemContext) -> list[ActionItem]:
    items: list[ActionItem] = []
    readiness = ctx.readiness

    if _gate_open(ctx, Phase.PREP, "roles_finalized"):
        if readiness.roles_status == "default-only":
            items.append(ActionItem(
                id="prep-roles",
                title="Add Project Roles & Pay Rates",
                description="Define all roles needed for this project with appropriate pay rates",
                category="setup",
                priority=Priority.HIGH,
                required_for_transition=True,
            ))
        else:
            items.append(ActionItem(
                id="prep-finalize-roles",
                title="Finalize Project Roles",
                description="Mark role configuration as complete when ready",
                category="setup",
                priority=Priority.MEDIUM,
                required_for_transition=True,
            ))

    if _gate_open(ctx, Phase.PREP, "locations_finalized"):
        if readiness.locations_status == "default-only":
            items.append(ActionItem(
                id="prep-locations",
                title="Define Talent Locations",
                description="Set up location tracking areas for talent management",
                category="setup",
                priority=Priority.HIGH,
                required_for_transition=True,
            ))
        else:
            items.append(ActionItem(
                id="prep-finalize-locations",
                title="Finalize Location Setup",
                description="Mark location configuration as complete when ready",
                category="setup",
                priority=Priority.MEDIUM,
                required_for_transition=True,
            ))

    if not (ctx.project.name and ctx.project.name.strip()):
        items.append(ActionItem(
            id="prep-project-name",
            title="Set Project Name",
            description="Provide a clear name for this project",
            category="setup",
            priority=Priority.HIGH,
        ))

    if ctx.project.rehearsal_start_date is None:
        items.append(ActionItem(
            id="prep-rehearsal-date",
            title="Set Rehearsal Start Date",
            description="Define when rehearsals begin for automatic phase transitions",
            category="setup",
            priority=Priority.MEDIUM,
        ))

    if ctx.project.show_end_date is None:
        items.append(ActionItem(
            id="prep-show-end-date",
            title="Set Show End Date",
            description="Define when the show ends for automatic phase transitions",
            category="setup",
            priority=Priority.MEDIUM,
        ))

    return items


def staffing_items(ctx: PhaseItemContext) -> list[ActionItem]:
    items: list[ActionItem] = []
    readiness = ctx.readiness

    if _gate_open(ctx, Phase.STAFFING, "team_assignments_finalized"):
        if readiness.total_staff_assigned == 0:
            items.append(ActionItem(
                id="staffing-assign-team",
                title="Assign Team Members",
                description="No staff assigned to this project. Assign team members to project roles.",
                category="staffing",
                priority=Priority.HIGH,
                required_for_transition=True,
            ))
        else:
            items.append(ActionItem(
                id="staffing-finalize-team",
                title="Finalize Team Assignments",
                description=(
                    f"{readiness.total_staff_assigned} staff assigned. "
                    "Mark team setup as complete when ready."
                ),
                category="staffing",
                priority=Priority.MEDIUM,
                required_for_transition=True,
            ))

    if _gate_open(ctx, Phase.STAFFING, "talent_roster_finalized"):
        if readiness.total_talent == 0:
            items.append(ActionItem(
                id="staffing-add-talent",
                title="Add Talent to Roster",
                description="No talent assigned to this project. Add talent to enable assignments.",
                category="staffing",
                priority=Priority.HIGH,
                required_for_transition=True,
            ))
        else:
            items.append(ActionItem(
                id="staffing-finalize-talent",
                title="Finalize Talent Roster",
                description=(
                    f"{readiness.total_talent} talent assigned. "
                    "Mark talent roster as complete when ready."
                ),
                category="staffing",
                priority=Priority.MEDIUM,
                required_for_transition=True,
            ))

    if readiness.total_talent > 0 and readiness.escort_count == 0:
        items.append(ActionItem(
            id="staffing-assign-escorts",
            title="Assign Talent Escorts",
            description="Talent needs escort assignments for proper management",
            category="staffing",
            priority=Priority.HIGH,
        ))

    if readiness.total_staff_assigned > 0 and readiness.supervisor_count == 0:
        items.append(ActionItem(
            id="staffing-assign-supervisor",
            title="Assign a Supervisor",
            description="No supervisor assigned for team oversight and checkout controls",
            category="staffing",
            priority=Priority.MEDIUM,
        ))

    if readiness.coordinator_count == 0 and readiness.total_staff_assigned > 2:
        items.append(ActionItem(
            id="staffing-consider-coordinator",
            title="Consider Adding a Coordinator",
            description="For larger teams, a coordinator can help with informational oversight",
            category="staffing",
            priority=Priority.LOW,
        ))

    return items


def pre_show_items(ctx: PhaseItemContext) -> list[ActionItem]:
    items: list[ActionItem] = []
    readiness = ctx.readiness

    if ctx.project.rehearsal_start_date is None:
        items.append(ActionItem(
            id="preshow-rehearsal-date",
            title="Set Rehearsal Start Date",
            description="The project activates automatically at the start of the rehearsal date",
            category="preparation",
            priority=Priority.HIGH,
            required_for_transition=True,
        ))

    if readiness.urgent_assignment_issues > 0:
        noun = "assignment" if readiness.urgent_assignment_issues == 1 else "assignments"
        items.append(ActionItem(
            id="preshow-urgent-assignments",
            title="Complete Urgent Assignments",
            description=f"{readiness.urgent_assignment_issues} {noun} needed for upcoming show dates",
            category="assignments",
            priority=Priority.HIGH,
        ))

    if readiness.overall_status != "production-ready":
        items.append(ActionItem(
            id="preshow-final-prep",
            title="Complete Final Preparations",
            description="Ensure all setup items are finalized before rehearsals begin",
            category="preparation",
            priority=Priority.HIGH,
        ))

    if readiness.total_staff_assigned > 1:
        items.append(ActionItem(
            id="preshow-team-communication",
            title="Verify Team Communication",
            description="Ensure all team members have necessary contact information and schedules",
            category="communication",
            priority=Priority.MEDIUM,
        ))

    if readiness.total_talent > 0:
        items.append(ActionItem(
            id="preshow-talent-briefing",
            title="Talent Briefing",
            description="Ensure talent and representatives have all necessary information",
            category="preparation",
            priority=Priority.MEDIUM,
        ))

    if readiness.locations_status != "default-only":
        items.append(ActionItem(
            id="preshow-location-check",
            title="Location Setup Verification",
            description="Verify all location tracking areas are properly configured",
            category="preparation",
            priority=Priority.MEDIUM,
        ))

    items.append(ActionItem(
        id="preshow-tech-check",
        title="Technology Check",
        description="Verify all devices and systems are ready for live operations",
        category="preparation",
        priority=Priority.MEDIUM,
    ))

    return items


def active_items(ctx: PhaseItemContext) -> list[ActionItem]:
    items: list[ActionItem] = []
    readiness = ctx.readiness

    if ctx.project.show_end_date is None:
        items.append(ActionItem(
            id="active-show-end-date",
            title="Set Show End Date",
            description="The project moves to post-show the morning after the show end date",
            category="operations",
            priority=Priority.HIGH,
            required_for_transition=True,
        ))

    if readiness.total_talent > 0:
        items.append(ActionItem(
            id="active-talent-tracking",
            title="Monitor Talent Locations",
            description=f"Track {readiness.total_talent} talent members in real-time during operations",
            category="operations",
            priority=Priority.HIGH,
        ))

    if readiness.total_staff_assigned > 0:
        items.append(ActionItem(
            id="active-time-tracking",
            title="Oversee Time Tracking",
            description=f"Monitor {readiness.total_staff_assigned} team members' time tracking and breaks",
            category="operations",
            priority=Priority.HIGH,
        ))

    if readiness.urgent_assignment_issues > 0:
        items.append(ActionItem(
            id="active-assignment-issues",
            title="Resolve Assignment Issues",
            description=f"Address {readiness.urgent_assignment_issues} urgent assignment issues",
            category="operations",
            priority=Priority.HIGH,
        ))

    if readiness.supervisor_count > 0 and readiness.escort_count > 0:
        items.append(ActionItem(
            id="active-supervisor-oversight",
            title="Supervisor Coordination",
            description="Coordinate with supervisors for team checkout and operational decisions",
            category="operations",
            priority=Priority.MEDIUM,
        ))

    items.append(ActionItem(
        id="active-communication",
        title="Maintain Communication",
        description="Keep open communication channels with all team members and talent",
        category="operations",
        priority=Priority.MEDIUM,
    ))
    items.append(ActionItem(
        id="active-daily-operations",
        title="Daily Operations Management",
        description="Handle daily operational tasks, scheduling, and coordination",
        category="operations",
        priority=Priority.MEDIUM,
    ))

    return items


def post_show_items(ctx: PhaseItemContext) -> list[ActionItem]:
    items: list[ActionItem] = []
    readiness = ctx.readiness

    outstanding = outstanding_timecards(ctx.timecards)
    if outstanding:
        counts = Counter(tc.status for tc in outstanding)
        items.append(ActionItem(
            id="postshow-review-timecards",
            title="Review and Approve Timecards",
            description=(
                f"{len(outstanding)} timecards pending approval "
                f"({counts[TimecardStatus.SUBMITTED]} submitted, {counts[TimecardStatus.DRAFT]} draft, "
                f"{counts[TimecardStatus.REJECTED]} rejected)"
            ),
            category="payroll",
            priority=Priority.HIGH,
            required_for_transition=True,
        ))

    submitted = {tc.user_id for tc in ctx.timecards}
    missing = [member for member in ctx.team if member.user_id not in submitted]
    if missing:
        items.append(ActionItem(
            id="postshow-missing-timecards",
            title="Collect Missing Timecards",
            description=f"{len(missing)} team members haven't submitted timecards yet",
            category="payroll",
            priority=Priority.HIGH,
        ))

    approved = sum(1 for tc in ctx.timecards if tc.status == TimecardStatus.APPROVED)
    if approved:
        items.append(ActionItem(
            id="postshow-process-payroll",
            title="Process Payroll",
            description=f"Process payroll for {approved} approved timecards",
            category="payroll",
            priority=Priority.HIGH,
        ))

    items.append(ActionItem(
        id="postshow-project-summary",
        title="Create Project Summary",
        description="Document project outcomes, lessons learned, and final statistics",
        category="completion",
        priority=Priority.MEDIUM,
    ))

    if readiness.total_talent > 0 or readiness.total_staff_assigned > 0:
        items.append(ActionItem(
            id="postshow-data-review",
            title="Review Project Data",
            description="Review and organize project data for archival",
            category="completion",
            priority=Priority.MEDIUM,
        ))

    items.append(ActionItem(
        id="postshow-final-communications",
        title="Final Team Communications",
        description="Send final communications to team and talent about project completion",
        category="completion",
        priority=Priority.LOW,
    ))

    return items


def complete_items(ctx: PhaseItemContext) -> list[ActionItem]:
    items = [
        ActionItem(
            id="complete-final-summary",
            title="Finalize Project Summary",
            description="Complete final project documentation and performance summary",
            category="completion",
            priority=Priority.LOW,
        ),
        ActionItem(
            id="complete-archival-prep",
            title="Prepare for Archival",
            description="Organize and prepare project data for long-term archival storage",
            category="archival",
            priority=Priority.LOW,
        ),
    ]

    if ctx.readiness.total_staff_assigned > 0 or ctx.readiness.total_talent > 0:
        items.append(ActionItem(
            id="complete-data-verification",
            title="Verify Data Integrity",
            description="Perform final verification of all project data before archival",
            category="archival",
            priority=Priority.LOW,
        ))

    items.append(ActionItem(
        id="complete-archive-settings",
        title="Review Archive Settings",
        description=f"Project will auto-archive on {ctx.archive_month}/{ctx.archive_day}. Adjust if needed.",
        category="archival",
        priority=Priority.LOW,
    ))

    return items


GENERATORS: dict[Phase, Callable[[PhaseItemContext], list[ActionItem]]] = {
    Phase.PREP: prep_items,
    Phase.STAFFING: staffing_items,
    Phase.PRE_SHOW: pre_show_items,
    Phase.ACTIVE: active_items,
    Phase.POST_SHOW: post_show_items,
    Phase.COMPLETE: complete_items,
}


def generate_phase_items(phase: Phase, ctx: PhaseItemContext) -> list[ActionItem]:
    """Action items for phase. Archived projects have none."""
    generator = GENERATORS.get(phase)
    if generator is None:
        return []
    return generator(ctx)
