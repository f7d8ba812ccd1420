# Shared pytest fixtures
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List

import pytest

from spreadsheet_ranker.google_sheets import SheetsGatewayError
from spreadsheet_ranker.lookup import letter_to_index
from spreadsheet_ranker.pipeline import BatchOrchestrator

_CELL_RE = re.compile(r"([A-Z]+)(\d+)")


def _unquote(title: str) -> str:
    if len(title) >= 2 and title.startswith("'") and title.endswith("'"):
        return title[1:-1].replace("''", "'")
    return title


class FakeGateway:
    """In-memory workbook store implementing the gateway contract."""

    def __init__(self, workbooks: Dict[str, Dict[str, List[List[str]]]]) -> None:
        self.workbooks = workbooks
        self.calls: List[tuple] = []
        self.failing_reads: set[str] = set()
        self.fail_writes = False
        self.fail_listing = False

    def read_range(self, spreadsheet_id: str, range_expr: str) -> List[List[str]]:
        self.calls.append(("read", spreadsheet_id, range_expr))
        title = _unquote(range_expr.split("!", 1)[0])
        if title in self.failing_reads:
            raise SheetsGatewayError(f"Sheets API read {range_expr} failed: boom")
        grid = self.workbooks[spreadsheet_id].get(title, [])
        return [list(row) for row in grid]

    def write_single_cell(self, spreadsheet_id: str, cell_address: str, value: str) -> None:
        self.calls.append(("write", spreadsheet_id, cell_address, value))
        if self.fail_writes:
            raise SheetsGatewayError(f"Sheets API write {cell_address} failed: quota")
        title, cell = cell_address.rsplit("!", 1)
        match = _CELL_RE.fullmatch(cell)
        assert match is not None, cell_address
        col = letter_to_index(match.group(1))
        row = int(match.group(2)) - 1
        grid = self.workbooks[spreadsheet_id][_unquote(title)]
        while len(grid) <= row:
            grid.append([])
        while len(grid[row]) <= col:
            grid[row].append("")
        grid[row][col] = value

    def list_sheet_names(self, spreadsheet_id: str) -> List[str]:
        self.calls.append(("list", spreadsheet_id))
        if self.fail_listing:
            return []
        return list(self.workbooks.get(spreadsheet_id, {}))

    @property
    def writes(self) -> List[tuple]:
        return [call for call in self.calls if call[0] == "write"]


@pytest.fixture()
def workbook() -> Dict[str, List[List[str]]]:
    return {
        "Events": [
            ["Username", "Points", "Events Attended"],
            ["Alice", "7", ""],
            ["Bob", "N/A", "2"],
        ],
        "Trainees": [
            ["USERNAME", "Trainings", "Points"],
            ["carol", "1", "4"],
            ["bob", "3"],
        ],
    }


@pytest.fixture()
def gateway(workbook) -> FakeGateway:
    return FakeGateway({"sheet-fmb": workbook})


@pytest.fixture()
def orchestrator(gateway: FakeGateway) -> BatchOrchestrator:
    return BatchOrchestrator(gateway, {"FMB": "sheet-fmb"})


@pytest.fixture()
def write_config(tmp_path: Path):
    def _write(text: str) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def sample_config_yaml() -> str:
    return """departments:
  FMB: sheet-fmb
field_aliases:
  pts: Points
search:
  mode: all_sheets
  name_column: Username
server:
  api_token: secret-token
"""
