from __future__ import annotations

from typing import Callable, List, Protocol

import logging
import ssl
import time

import google.auth
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import Resource
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest
from httplib2 import HttpLib2Error

from .config import SheetsConfig

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

LOGGER = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_MAX_RETRY_ATTEMPTS = 4
_INITIAL_BACKOFF_SECONDS = 1.0
_MAX_BACKOFF_SECONDS = 8.0
_RETRYABLE_EXCEPTIONS = (ssl.SSLEOFError, HttpLib2Error)


class SheetsGatewayError(Exception):
    """A read or write against the spreadsheet service failed."""


class SheetGateway(Protocol):
    """Read/write contract the update engine relies on."""

    def read_range(self, spreadsheet_id: str, range_expr: str) -> List[List[str]]:
        ...

    def write_single_cell(self, spreadsheet_id: str, cell_address: str, value: str) -> None:
        ...

    def list_sheet_names(self, spreadsheet_id: str) -> List[str]:
        ...


def quote_sheet_title(title: str) -> str:
    """Return a sheet title quoted for A1 notation.

    Titles are always quoted: a bare ``Q1`` or ``FY2024`` would be read as a
    cell on the first sheet.
    """

    escaped = title.replace("'", "''")
    return f"'{escaped}'"


def a1_range(sheet_name: str, range_spec: str | None = None) -> str:
    if not range_spec:
        return quote_sheet_title(sheet_name)
    return f"{quote_sheet_title(sheet_name)}!{range_spec}"


class GoogleSheetsClient:
    """Thin wrapper around the Google Sheets API for this project."""

    def __init__(self, conf: SheetsConfig) -> None:
        self._conf = conf
        self._service: Resource | None = None

    def _service_client(self) -> Resource:
        if self._service is None:
            if self._conf.credentials_file is not None:
                creds = Credentials.from_service_account_file(
                    str(self._conf.credentials_file), scopes=SCOPES
                )
            else:
                creds, _ = google.auth.default(scopes=SCOPES)
            self._service = build("sheets", "v4", credentials=creds)
        return self._service

    # Reading -----------------------------------------------------------------
    def read_range(self, spreadsheet_id: str, range_expr: str) -> List[List[str]]:
        """Load the values of a range; a bare sheet title reads the whole sheet."""

        def _build_request() -> HttpRequest:
            service = self._service_client()
            return (
                service.spreadsheets()
                .values()
                .get(spreadsheetId=spreadsheet_id, range=range_expr)
            )

        result = self._execute(_build_request, operation=f"read {range_expr}")
        return [[str(cell) for cell in row] for row in result.get("values", [])]

    def list_sheet_names(self, spreadsheet_id: str) -> List[str]:
        """Return sheet titles in workbook order, or an empty list on failure."""

        def _build_request() -> HttpRequest:
            service = self._service_client()
            return service.spreadsheets().get(
                spreadsheetId=spreadsheet_id,
                fields="sheets.properties",
            )

        try:
            result = self._execute(_build_request, operation="list sheet names")
        except SheetsGatewayError as exc:
            LOGGER.error("Unable to list sheets of %s: %s", spreadsheet_id, exc)
            return []
        return [
            sheet.get("properties", {}).get("title", "")
            for sheet in result.get("sheets", [])
        ]

    # Writing -----------------------------------------------------------------
    def write_single_cell(self, spreadsheet_id: str, cell_address: str, value: str) -> None:
        """Overwrite a single cell, interpreting the value as if typed by a user."""

        payload = {"values": [[value]]}

        def _update_request() -> HttpRequest:
            service = self._service_client()
            return (
                service.spreadsheets()
                .values()
                .update(
                    spreadsheetId=spreadsheet_id,
                    range=cell_address,
                    valueInputOption="USER_ENTERED",
                    body=payload,
                )
            )

        self._execute(_update_request, operation=f"write {cell_address}")

    # Internal ----------------------------------------------------------------
    def _reset_service(self) -> None:
        self._service = None

    def _execute(self, request_builder: Callable[[], HttpRequest], *, operation: str) -> dict:
        try:
            return self._execute_with_retry(request_builder, operation=operation)
        except (HttpError, *_RETRYABLE_EXCEPTIONS) as exc:
            raise SheetsGatewayError(f"Sheets API {operation} failed: {exc}") from exc

    def _execute_with_retry(
        self,
        request_builder: Callable[[], HttpRequest],
        *,
        operation: str,
    ) -> dict:
        """Execute a Sheets API request with retries for transient failures."""

        backoff = _INITIAL_BACKOFF_SECONDS
        last_exc: Exception | None = None

        for attempt in range(1, _MAX_RETRY_ATTEMPTS + 1):
            try:
                return request_builder().execute()
            except _RETRYABLE_EXCEPTIONS as exc:
                last_exc = exc
            except HttpError as exc:
                status = getattr(exc.resp, "status", None)
                if status not in _RETRYABLE_STATUS_CODES:
                    raise
                last_exc = exc

            if attempt == _MAX_RETRY_ATTEMPTS:
                raise last_exc

            wait_time = min(backoff, _MAX_BACKOFF_SECONDS)
            LOGGER.warning(
                "Sheets API %s failed on attempt %s/%s (%s); retrying in %.1f seconds",
                operation,
                attempt,
                _MAX_RETRY_ATTEMPTS,
                last_exc,
                wait_time,
            )
            self._reset_service()
            time.sleep(wait_time)
            backoff *= 2

        raise RuntimeError("Sheets API request failed without capturing an exception")
