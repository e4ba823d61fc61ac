"""Custom exceptions for ganttline."""


class GanttlineError(Exception):
    """Base exception for all ganttline errors."""

    pass


class ValidationError(GanttlineError):
    """Raised when validation fails."""

    pass


class InstanceValidationError(ValidationError):
    """Raised when a job-shop instance is structurally invalid."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid instance")


class CircularDependencyError(ValidationError):
    """Raised when a circular dependency is detected."""

    pass


class MissingReferenceError(ValidationError):
    """Raised when a referenced ID does not exist."""

    pass


class TaskNotFoundError(MissingReferenceError):
    """Raised when a task ID is not part of the schedule."""

    pass


class LayerNotFoundError(MissingReferenceError):
    """Raised when a layer ID is not known to the layer manager."""

    pass


class ParseError(GanttlineError):
    """Raised when input parsing fails."""

    pass


class ImportFormatError(ParseError):
    """Raised when an imported instance or solution payload is malformed.

    Carries every error found plus any warnings collected before the failure.
    """

    def __init__(self, errors: list[str], warnings: list[str] | None = None) -> None:
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__("; ".join(self.errors) or "Invalid import payload")
