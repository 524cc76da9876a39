"""Per-project scheduling configuration: defaults, merged view, update validation."""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from stagecall.core.exceptions import ConfigurationValidationError
from stagecall.domain.phases import Phase
from stagecall.domain.records import ProjectRecord
from stagecall.domain.timezones import parse_time_of_day, validate_timezone

# Leap year used to validate (month, day) pairs so 29 February is accepted
_REFERENCE_LEAP_YEAR = 2024

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class PhaseDefaults:
    """Scheduling values used when a project has no settings record."""

    auto_transitions_enabled: bool = True
    archive_month: int = 4
    archive_day: int = 1
    post_show_transition_hour: int = 6
    rehearsal_transition_time: str = "00:00"

    @classmethod
    def from_settings(cls, settings) -> "PhaseDefaults":
        return cls(
            auto_transitions_enabled=settings.default_auto_transitions_enabled,
            archive_month=settings.default_archive_month,
            archive_day=settings.default_archive_day,
            post_show_transition_hour=settings.default_post_show_transition_hour,
            rehearsal_transition_time=settings.rehearsal_transition_time,
        )


@dataclass
class PhaseConfiguration:
    """Merged view of a project's phase fields and its settings record."""

    project_id: str
    current_phase: Phase
    phase_updated_at: datetime | None
    auto_transitions_enabled: bool
    timezone: str | None
    rehearsal_start_date: date | None
    show_end_date: date | None
    archive_month: int
    archive_day: int
    post_show_transition_hour: int


class PhaseConfigurationUpdate(BaseModel):
    """Partial update. Only fields present in the payload are applied.

    Dates are strings in strict YYYY-MM-DD form; null clears timezone and dates.
    """

    model_config = ConfigDict(extra="forbid")

    auto_transitions_enabled: bool | None = None
    timezone: str | None = None
    rehearsal_start_date: str | None = None
    show_end_date: str | None = None
    archive_month: int | None = None
    archive_day: int | None = None
    post_show_transition_hour: int | None = None


# Fields that may not be cleared with an explicit null
_NON_NULLABLE = ("auto_transitions_enabled", "archive_month", "archive_day", "post_show_transition_hour")


def merge_configuration(project: ProjectRecord, defaults: PhaseDefaults) -> PhaseConfiguration:
    """Project fields win, then the settings record, then defaults."""
    settings = project.settings

    def pick(name: str) -> Any:
        value = getattr(settings, name, None) if settings is not None else None
        return getattr(defaults, name) if value is None else value

    return PhaseConfiguration(
        project_id=project.id,
        current_phase=project.phase,
        phase_updated_at=project.phase_updated_at,
        auto_transitions_enabled=project.auto_transitions_enabled,
        timezone=project.timezone,
        rehearsal_start_date=project.rehearsal_start_date,
        show_end_date=project.show_end_date,
        archive_month=pick("archive_month"),
        archive_day=pick("archive_day"),
        post_show_transition_hour=pick("post_show_transition_hour"),
    )


def parse_iso_date(value: str, field: str) -> date:
    """Strict YYYY-MM-DD parse.

    Raises:
        ConfigurationValidationError: If value is not a real calendar date in that form
    """
    label = field.replace("_", " ")
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ConfigurationValidationError(f"Invalid {label} format: {value!r} (expected YYYY-MM-DD)", field=field)
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ConfigurationValidationError(f"Invalid {label}: {value}", field=field) from None


def validate_archive_date(month: int, day: int) -> None:
    if not 1 <= month <= 12:
        raise ConfigurationValidationError("Archive month must be between 1 and 12", field="archive_month")
    if not 1 <= day <= 31:
        raise ConfigurationValidationError("Archive day must be between 1 and 31", field="archive_day")
    if day > calendar.monthrange(_REFERENCE_LEAP_YEAR, month)[1]:
        raise ConfigurationValidationError(
            f"Invalid archive date combination: month {month}, day {day}",
            field="archive_day",
        )


def validate_update(update: PhaseConfigurationUpdate, current: PhaseConfiguration) -> dict[str, Any]:
    """Validate every provided field against the merged result.

    Returns the provided fields converted to storage types (dates as date
    objects). Raises ConfigurationValidationError on the first problem;
    callers must not have written anything yet.
    """
    provided = update.model_dump(include=update.model_fields_set)

    for name in _NON_NULLABLE:
        if name in provided and provided[name] is None:
            raise ConfigurationValidationError(f"{name} cannot be null", field=name)

    changes: dict[str, Any] = dict(provided)

    if "archive_month" in provided or "archive_day" in provided:
        validate_archive_date(
            provided.get("archive_month", current.archive_month),
            provided.get("archive_day", current.archive_day),
        )

    if "post_show_transition_hour" in provided:
        hour = provided["post_show_transition_hour"]
        if not 0 <= hour <= 23:
            raise ConfigurationValidationError(
                "Post-show transition hour must be between 0 and 23",
                field="post_show_transition_hour",
            )

    if provided.get("timezone") is not None and not validate_timezone(provided["timezone"]):
        raise ConfigurationValidationError(
            f"Invalid timezone identifier: {provided['timezone']}",
            field="timezone",
        )

    for name in ("rehearsal_start_date", "show_end_date"):
        if provided.get(name) is not None:
            changes[name] = parse_iso_date(provided[name], name)

    rehearsal = changes.get("rehearsal_start_date", current.rehearsal_start_date)
    show_end = changes.get("show_end_date", current.show_end_date)
    if rehearsal is not None and show_end is not None and show_end < rehearsal:
        raise ConfigurationValidationError(
            "Show end date cannot be before rehearsal start date",
            field="show_end_date",
        )

    return changes


def validate_defaults(defaults: PhaseDefaults) -> None:
    """Reject misconfigured defaults at startup."""
    validate_archive_date(defaults.archive_month, defaults.archive_day)
    if not 0 <= defaults.post_show_transition_hour <= 23:
        raise ConfigurationValidationError(
            "Post-show transition hour must be between 0 and 23",
            field="post_show_transition_hour",
        )
    if parse_time_of_day(defaults.rehearsal_transition_time) is None:
        raise ConfigurationValidationError(
            f"Invalid rehearsal transition time: {defaults.rehearsal_transition_time!r}",
            field="rehearsal_transition_time",
        )
