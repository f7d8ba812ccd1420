from __future__ import annotations

import pytest

from spreadsheet_ranker.google_sheets import SheetsGatewayError
from spreadsheet_ranker.search import LocateFailure, locate_across_sheets, locate_in_sheet

from conftest import FakeGateway


def _gateway(**sheets) -> FakeGateway:
    return FakeGateway({"book": dict(sheets)})


def test_cross_sheet_fallback_reports_second_sheet() -> None:
    gateway = _gateway(
        A=[["Username", "Points"], ["someone", "1"]],
        B=[["Username", "Points"], ["target", "5"]],
    )

    result = locate_across_sheets(gateway, "book", ["A", "B"], "target", "Username", "Points")

    assert result.found
    assert result.location.sheet_name == "B"
    assert result.location.row == 2
    assert result.location.column_index == 1
    assert result.location.raw_value == "5"
    assert result.searched_sheets == ("A", "B")


def test_name_match_without_field_column_continues_search() -> None:
    gateway = _gateway(
        A=[["Username", "Other"], ["target", "x"]],
        B=[["Username", "Points"], ["target", "2"]],
    )

    result = locate_across_sheets(gateway, "book", ["A", "B"], "target", "Username", "Points")

    assert result.location.sheet_name == "B"


def test_stops_at_first_successful_sheet() -> None:
    gateway = _gateway(
        A=[["Username", "Points"], ["target", "1"]],
        B=[["Username", "Points"], ["target", "2"]],
    )

    result = locate_across_sheets(gateway, "book", ["A", "B"], "target", "Username", "Points")

    assert result.location.sheet_name == "A"
    assert [call[2] for call in gateway.calls] == ["'A'"]


def test_visits_sheets_in_given_order() -> None:
    gateway = _gateway(
        A=[["Username", "Points"], ["target", "1"]],
        B=[["Username", "Points"], ["target", "2"]],
    )

    result = locate_across_sheets(gateway, "book", ["B", "A"], "target", "Username", "Points")

    assert result.location.sheet_name == "B"


def test_reports_name_not_found() -> None:
    gateway = _gateway(A=[["Username", "Points"], ["someone", "1"]], B=[])

    result = locate_across_sheets(gateway, "book", ["A", "B"], "target", "Username", "Points")

    assert not result.found
    assert result.failure is LocateFailure.NAME_NOT_FOUND


def test_reports_field_column_missing_when_name_was_seen() -> None:
    gateway = _gateway(
        A=[["Username", "Other"], ["target", "1"]],
        B=[["Username", "Points"], ["someone", "1"]],
    )

    result = locate_across_sheets(gateway, "book", ["A", "B"], "target", "Username", "Points")

    assert result.failure is LocateFailure.FIELD_COLUMN_MISSING


def test_reports_name_column_missing_everywhere() -> None:
    gateway = _gateway(A=[["Player", "Points"], ["target", "1"]])

    result = locate_across_sheets(gateway, "book", ["A"], "target", "Username", "Points")

    assert result.failure is LocateFailure.NAME_COLUMN_MISSING


def test_letter_specs_need_no_header_match() -> None:
    gateway = _gateway(A=[["who", "what"], ["target", "3"]])

    result = locate_across_sheets(gateway, "book", ["A"], "target", "A", "B")

    assert result.location.raw_value == "3"


def test_missing_cell_in_short_row_reads_as_none() -> None:
    gateway = _gateway(A=[["Username", "Points", "Wins"], ["target", "1"]])

    result = locate_in_sheet(gateway, "book", "A", "target", "Username", "Wins")

    assert result.location.column_index == 2
    assert result.location.raw_value is None


def test_single_sheet_mode_does_not_fall_back() -> None:
    gateway = _gateway(
        Events=[["Username", "Other"], ["target", "1"]],
        B=[["Username", "Points"], ["target", "2"]],
    )

    result = locate_in_sheet(gateway, "book", "Events", "target", "Username", "Points")

    assert result.failure is LocateFailure.FIELD_COLUMN_MISSING
    assert result.searched_sheets == ("Events",)


def test_read_failure_propagates() -> None:
    gateway = _gateway(A=[["Username", "Points"]])
    gateway.failing_reads.add("A")

    with pytest.raises(SheetsGatewayError):
        locate_across_sheets(gateway, "book", ["A"], "target", "Username", "Points")


def test_quoted_sheet_titles_are_read() -> None:
    gateway = _gateway(**{"Week 1": [["Username", "Points"], ["target", "4"]]})

    result = locate_across_sheets(gateway, "book", ["Week 1"], "target", "Username", "Points")

    assert gateway.calls[0][2] == "'Week 1'"
    assert result.location.sheet_name == "Week 1"


def test_cell_like_sheet_title_is_read_as_a_tab() -> None:
    gateway = _gateway(
        Q1=[["Username", "Points"], ["target", "4"]],
        Events=[["Username", "Points"], ["target", "9"]],
    )

    result = locate_across_sheets(gateway, "book", ["Q1", "Events"], "target", "Username", "Points")

    assert [call[2] for call in gateway.calls] == ["'Q1'"]
    assert result.location.sheet_name == "Q1"
    assert result.location.raw_value == "4"
