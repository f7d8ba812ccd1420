from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import RequestValidationError

_REQUIRED_FIELDS = ("name", "department", "field")
_MISSING_FIELDS_MESSAGE = "Missing required fields (name, department, or field)"

Number = int | float


class UpdateRequest(BaseModel):
    """A single counter increment submitted by the game server."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    department: str
    field: str
    amount: Number = Field(1, validation_alias=AliasChoices("amount", "increment"))

    @field_validator("name", "department", "field")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("amount", mode="before")
    @classmethod
    def _default_amount(cls, value: Any) -> Any:
        if value is None:
            return 1
        if isinstance(value, bool):
            raise ValueError("must be a number")
        return value

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: Number) -> Number:
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("must be a finite number")
        return value


def parse_request(payload: Mapping[str, Any] | UpdateRequest) -> UpdateRequest:
    """Validate a raw payload, raising RequestValidationError on bad shapes."""

    if isinstance(payload, UpdateRequest):
        return payload
    if not isinstance(payload, Mapping):
        raise RequestValidationError("Update payload must be an object")

    try:
        return UpdateRequest.model_validate(dict(payload))
    except ValidationError as exc:
        errors = exc.errors()
        if any(
            err["loc"] and err["loc"][0] in _REQUIRED_FIELDS
            and err["type"] in ("missing", "value_error")
            for err in errors
        ):
            raise RequestValidationError(_MISSING_FIELDS_MESSAGE) from exc
        first = errors[0]
        location = ".".join(str(part) for part in first["loc"]) or "payload"
        raise RequestValidationError(f"Invalid '{location}': {first['msg']}") from exc


@dataclass(frozen=True, slots=True)
class RowMatch:
    """Outcome of scanning a grid for a name."""

    matched: bool
    row_number: Optional[int] = None  # spreadsheet 1-based row number (header is row 1)
    row_data: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class CellLocation:
    """Resolved target cell for an update."""

    sheet_name: str
    row: int  # 1-based
    column_index: int  # zero-based
    raw_value: Optional[str]


@dataclass(frozen=True, slots=True)
class UpdateResult:
    """Outcome of one update request; created once and never modified."""

    success: bool
    name: str
    department: str
    field: str
    amount: Optional[Number] = None
    previous_value: Optional[Number] = None
    new_value: Optional[Number] = None
    row: Optional[int] = None
    column: Optional[int] = None  # 1-based, as shown in Sheets
    column_letter: Optional[str] = None
    sheet_name: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation consumed by the game client."""

        payload: Dict[str, Any] = {
            "success": self.success,
            "name": self.name,
            "department": self.department,
            "field": self.field,
            "increment": self.amount,
        }
        optional = {
            "previousValue": self.previous_value,
            "newValue": self.new_value,
            "row": self.row,
            "column": self.column,
            "columnLetter": self.column_letter,
            "sheetName": self.sheet_name,
            "message": self.message,
            "error": self.error,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


@dataclass(frozen=True, slots=True)
class BatchReport:
    results: List[UpdateResult]

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @property
    def failures(self) -> List[UpdateResult]:
        return [result for result in self.results if not result.success]
