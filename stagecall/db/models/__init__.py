"""Re-export all models so Base.metadata sees them."""

from stagecall.db.models.assignments import TalentAssignment, TeamAssignment
from stagecall.db.models.audit_log import ProjectAuditLog
from stagecall.db.models.organization import Organization
from stagecall.db.models.project import Project
from stagecall.db.models.project_settings import ProjectSettings
from stagecall.db.models.project_setup import ProjectLocation, ProjectRoleTemplate
from stagecall.db.models.setup_checklist import ProjectSetupChecklist
from stagecall.db.models.timecard import Timecard

__all__ = [
    "Organization",
    "Project",
    "ProjectAuditLog",
    "ProjectLocation",
    "ProjectRoleTemplate",
    "ProjectSettings",
    "ProjectSetupChecklist",
    "TalentAssignment",
    "TeamAssignment",
    "Timecard",
]
