from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping

from .config import AppConfig, SearchMode
from .errors import (
    ColumnNotFoundError,
    NameNotFoundError,
    NonNumericValueError,
    RemoteFailureError,
    RequestValidationError,
    UnmappedDepartmentError,
    UpdateError,
)
from .google_sheets import SheetGateway, SheetsGatewayError, a1_range
from .lookup import add_values, coerce_value, column_letter, format_value, normalize_name
from .models import BatchReport, UpdateRequest, UpdateResult, parse_request
from .search import LocateFailure, LocateResult, locate_across_sheets, locate_in_sheet

LOGGER = logging.getLogger("spreadsheet_ranker.pipeline")

RequestLike = UpdateRequest | Mapping[str, Any]


def apply_field_aliases(
    payloads: Iterable[Any],
    aliases: Mapping[str, str],
) -> List[Any]:
    """Replace short field codes with the header text they stand for.

    Alias keys match case-insensitively. Payloads that are not mappings are
    passed through untouched so that validation can reject them later.
    """

    lookup = {alias.strip().lower(): target for alias, target in aliases.items()}
    prepared: List[Any] = []
    for payload in payloads:
        if isinstance(payload, Mapping) and isinstance(payload.get("field"), str):
            target = lookup.get(payload["field"].strip().lower())
            if target is not None:
                payload = {**payload, "field": target}
        prepared.append(payload)
    return prepared


def _echo_value(payload: Any, key: str) -> str:
    if isinstance(payload, UpdateRequest):
        return getattr(payload, key)
    if isinstance(payload, Mapping):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return "unknown"


class BatchOrchestrator:
    """Apply counter increments one request at a time against a workbook."""

    def __init__(
        self,
        gateway: SheetGateway,
        departments: Mapping[str, str],
        *,
        search_mode: SearchMode = SearchMode.ALL_SHEETS,
        sheet_name: str = "Events",
        name_column: str = "Username",
    ) -> None:
        self._gateway = gateway
        self._departments = dict(departments)
        self._search_mode = search_mode
        self._sheet_name = sheet_name
        self._name_column = name_column

    @classmethod
    def from_config(cls, config: AppConfig, gateway: SheetGateway) -> "BatchOrchestrator":
        return cls(
            gateway,
            config.departments,
            search_mode=config.search.mode,
            sheet_name=config.search.sheet_name,
            name_column=config.search.name_column,
        )

    # Public ------------------------------------------------------------------
    def apply_batch(self, requests: Iterable[RequestLike]) -> BatchReport:
        results = [self.apply_one(request) for request in requests]
        report = BatchReport(results=results)
        LOGGER.info(
            "Batch complete: %s succeeded, %s failed",
            report.success_count,
            report.failure_count,
        )
        return report

    def apply_one(self, request: RequestLike) -> UpdateResult:
        try:
            parsed = parse_request(request)
        except RequestValidationError as exc:
            LOGGER.warning("Rejected update payload: %s", exc)
            return self._failure(request, exc)

        try:
            result = self._increment(parsed)
        except UpdateError as exc:
            LOGGER.warning(
                "Failed to increment %s for user %s in department %s: %s",
                parsed.field,
                parsed.name,
                parsed.department,
                exc,
            )
            return self._failure(parsed, exc)
        except Exception as exc:
            LOGGER.exception(
                "Unexpected error while incrementing %s for user %s", parsed.field, parsed.name
            )
            return self._failure(parsed, RemoteFailureError(f"Unexpected error: {exc}"))

        LOGGER.info(
            "Incremented %s for user %s in %s!%s%s: %s -> %s",
            parsed.field,
            parsed.name,
            result.sheet_name,
            result.column_letter,
            result.row,
            result.previous_value,
            result.new_value,
        )
        return result

    # Internal ----------------------------------------------------------------
    def _increment(self, request: UpdateRequest) -> UpdateResult:
        spreadsheet_id = self._departments.get(request.department)
        if not spreadsheet_id:
            raise UnmappedDepartmentError(request.department)

        located = self._locate(spreadsheet_id, request)
        location = located.location
        if location is None:
            raise self._locate_error(request, located)

        where = f"{request.field} for user {request.name} in sheet {location.sheet_name}"
        try:
            previous_value = coerce_value(location.raw_value)
        except NonNumericValueError as exc:
            raise NonNumericValueError(exc.value, where) from exc

        new_value = add_values(previous_value, request.amount)
        letter = column_letter(location.column_index)
        cell_address = a1_range(location.sheet_name, f"{letter}{location.row}")
        LOGGER.debug("Updating cell %s from %s to %s", cell_address, previous_value, new_value)
        try:
            self._gateway.write_single_cell(spreadsheet_id, cell_address, format_value(new_value))
        except SheetsGatewayError as exc:
            raise RemoteFailureError(f"Failed to update {where}: {exc}") from exc

        return UpdateResult(
            success=True,
            name=request.name,
            department=request.department,
            field=request.field,
            amount=request.amount,
            previous_value=previous_value,
            new_value=new_value,
            row=location.row,
            column=location.column_index + 1,
            column_letter=letter,
            sheet_name=location.sheet_name,
        )

    def _locate(self, spreadsheet_id: str, request: UpdateRequest) -> LocateResult:
        name_key = normalize_name(request.name)
        try:
            if self._search_mode is SearchMode.SINGLE_SHEET:
                return locate_in_sheet(
                    self._gateway,
                    spreadsheet_id,
                    self._sheet_name,
                    name_key,
                    self._name_column,
                    request.field,
                )

            sheet_names = self._gateway.list_sheet_names(spreadsheet_id)
            if not sheet_names:
                raise RemoteFailureError("No sheets found in spreadsheet")
            return locate_across_sheets(
                self._gateway,
                spreadsheet_id,
                sheet_names,
                name_key,
                self._name_column,
                request.field,
            )
        except SheetsGatewayError as exc:
            raise RemoteFailureError(f"Failed to read spreadsheet: {exc}") from exc

    def _locate_error(self, request: UpdateRequest, located: LocateResult) -> UpdateError:
        single = self._search_mode is SearchMode.SINGLE_SHEET
        scope = f"sheet {self._sheet_name}" if single else "any sheet in the spreadsheet"
        if located.failure is LocateFailure.NAME_COLUMN_MISSING:
            return ColumnNotFoundError(
                f'Name column "{self._name_column}" not found in {scope}'
            )
        if located.failure is LocateFailure.FIELD_COLUMN_MISSING:
            if single:
                return ColumnNotFoundError(
                    f'Column "{request.field}" not found in sheet {self._sheet_name} headers'
                )
            return ColumnNotFoundError(
                f'Column "{request.field}" not found in any sheet listing user "{request.name}"'
            )
        return NameNotFoundError(f'User "{request.name}" not found in {scope}')

    def _failure(self, request: RequestLike, exc: UpdateError) -> UpdateResult:
        amount: Any = None
        if isinstance(request, UpdateRequest):
            amount = request.amount
        return UpdateResult(
            success=False,
            name=_echo_value(request, "name"),
            department=_echo_value(request, "department"),
            field=_echo_value(request, "field"),
            amount=amount,
            message=str(exc),
            error=exc.tag,
        )
