from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .google_sheets import SheetGateway, a1_range
from .lookup import find_row, resolve_column
from .models import CellLocation

LOGGER = logging.getLogger(__name__)


class LocateFailure(str, Enum):
    NAME_COLUMN_MISSING = "name_column_missing"
    NAME_NOT_FOUND = "name_not_found"
    FIELD_COLUMN_MISSING = "field_column_missing"


@dataclass(frozen=True, slots=True)
class LocateResult:
    location: Optional[CellLocation] = None
    failure: Optional[LocateFailure] = None
    searched_sheets: tuple[str, ...] = ()

    @property
    def found(self) -> bool:
        return self.location is not None


def _scan_sheet(
    gateway: SheetGateway,
    spreadsheet_id: str,
    sheet_name: str,
    name_key: str,
    name_spec: str,
    field_spec: str,
) -> CellLocation | LocateFailure:
    grid = gateway.read_range(spreadsheet_id, a1_range(sheet_name))
    header = grid[0] if grid else []
    name_idx = resolve_column(header, name_spec)
    if name_idx is None:
        LOGGER.debug("Column '%s' not found in sheet %s headers", name_spec, sheet_name)
        return LocateFailure.NAME_COLUMN_MISSING

    match = find_row(grid, name_key, name_idx)
    if not match.matched:
        return LocateFailure.NAME_NOT_FOUND

    field_idx = resolve_column(header, field_spec)
    if field_idx is None:
        LOGGER.debug(
            "Found '%s' in sheet %s row %s but column '%s' is missing",
            name_key,
            sheet_name,
            match.row_number,
            field_spec,
        )
        return LocateFailure.FIELD_COLUMN_MISSING

    raw_value = match.row_data[field_idx] if field_idx < len(match.row_data) else None
    return CellLocation(
        sheet_name=sheet_name,
        row=match.row_number,
        column_index=field_idx,
        raw_value=raw_value,
    )


def locate_across_sheets(
    gateway: SheetGateway,
    spreadsheet_id: str,
    sheet_names: Iterable[str],
    name_key: str,
    name_spec: str,
    field_spec: str,
) -> LocateResult:
    """Find the first sheet holding both the name and the field column.

    Sheets are visited in the given order and each is read fresh. A sheet
    where the name matches but the field column is missing does not end the
    search, since the same person can be listed on several tabs.
    """

    visited: list[str] = []
    saw_name_column = False
    saw_name = False
    for sheet_name in sheet_names:
        visited.append(sheet_name)
        LOGGER.debug("Searching for %s in sheet %s", name_key, sheet_name)
        outcome = _scan_sheet(gateway, spreadsheet_id, sheet_name, name_key, name_spec, field_spec)
        if isinstance(outcome, CellLocation):
            return LocateResult(location=outcome, searched_sheets=tuple(visited))
        if outcome is not LocateFailure.NAME_COLUMN_MISSING:
            saw_name_column = True
        if outcome is LocateFailure.FIELD_COLUMN_MISSING:
            saw_name = True

    if saw_name:
        failure = LocateFailure.FIELD_COLUMN_MISSING
    elif saw_name_column or not visited:
        failure = LocateFailure.NAME_NOT_FOUND
    else:
        failure = LocateFailure.NAME_COLUMN_MISSING
    return LocateResult(failure=failure, searched_sheets=tuple(visited))


def locate_in_sheet(
    gateway: SheetGateway,
    spreadsheet_id: str,
    sheet_name: str,
    name_key: str,
    name_spec: str,
    field_spec: str,
) -> LocateResult:
    """Single fixed-sheet variant of :func:`locate_across_sheets`."""

    outcome = _scan_sheet(gateway, spreadsheet_id, sheet_name, name_key, name_spec, field_spec)
    if isinstance(outcome, CellLocation):
        return LocateResult(location=outcome, searched_sheets=(sheet_name,))
    return LocateResult(failure=outcome, searched_sheets=(sheet_name,))
