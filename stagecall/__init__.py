"""StageCall: production lifecycle phase engine."""

__version__ = "0.1.0"
