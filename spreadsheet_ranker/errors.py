from __future__ import annotations


class UpdateError(Exception):
    """Base class for failures that end a single update request."""

    tag = "update_error"


class RequestValidationError(UpdateError):
    tag = "validation_error"


class UnmappedDepartmentError(UpdateError):
    tag = "unmapped_department"

    def __init__(self, department: str) -> None:
        super().__init__(f"Unknown department: {department}")
        self.department = department


class NameNotFoundError(UpdateError):
    tag = "name_not_found"


class ColumnNotFoundError(UpdateError):
    tag = "column_not_found"


class NonNumericValueError(UpdateError):
    """Raised when an existing counter cell does not hold a number."""

    tag = "non_numeric_value"

    def __init__(self, value: str, where: str | None = None) -> None:
        location = f" in {where}" if where else ""
        super().__init__(f"Value '{value}'{location} is not a number")
        self.value = value


class RemoteFailureError(UpdateError):
    tag = "remote_failure"
