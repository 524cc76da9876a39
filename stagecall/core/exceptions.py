class StageCallError(Exception):
    """Base exception for the phase engine."""

    pass


class NotFoundError(StageCallError):
    """Raised when a referenced project or record does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class StorageError(StageCallError):
    """Raised when the underlying record store fails a read or write."""

    pass


class ConfigurationValidationError(StageCallError):
    """Raised when phase configuration input is malformed. Nothing has been written."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class TransitionNotAllowedError(StageCallError):
    """Raised when a commit-time re-evaluation disagrees with the requested target."""

    def __init__(
        self, project_id: str, target_phase: str, blockers: list[str] | None = None, detail: str | None = None
    ):
        self.project_id = project_id
        self.target_phase = target_phase
        self.blockers = list(blockers or [])
        message = detail or (", ".join(self.blockers) if self.blockers else "no transition due")
        super().__init__(f"Transition not allowed: {message}")


class CriteriaValidationError(StageCallError):
    """Raised when completion criteria cannot be evaluated.

    code is stable for callers: "DATABASE_ERROR" when the data fetch failed,
    "VALIDATION_ERROR" for anything else.
    """

    DATABASE_ERROR = "DATABASE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)
