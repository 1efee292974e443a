"""Google Sheets destination: one tab per city, fixed header, chunked appends."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Set

import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials

from glow_hunter.core.config import Settings
from glow_hunter.core.dedupe import dedupe_key
from glow_hunter.core.errors import DestinationError
from glow_hunter.core.models import OutputRow
from glow_hunter.etl.transform import row_to_values

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

HEADERS: List[str] = [
    "timestamp",
    "country",
    "city",
    "category",
    "name",
    "phone",
    "website",
    "lat",
    "lng",
    "address",
    "place_id",
    "source",
]

FALLBACK_SHEET_NAME = "Resultados"
MAX_SHEET_NAME_LENGTH = 100
DEFAULT_CHUNK_SIZE = 300
NEW_SHEET_ROWS = 1000

_FORBIDDEN_CHARS = re.compile(r"[:\\/?*\[\]]")
_WHITESPACE = re.compile(r"\s+")
_SHEETS_ERRORS = (gspread.exceptions.GSpreadException, requests.RequestException, GoogleAuthError)


def build_client(settings: Settings) -> gspread.Client:
    """Authorize a gspread client from the configured service account."""
    creds = Credentials.from_service_account_info(settings.service_account_info, scopes=SCOPES)
    return gspread.authorize(creds)


def sheet_name_for(city: str, country: Optional[str] = None) -> str:
    """Derive a valid tab title from the city (and optionally the country)."""
    raw = f"{city} - {country}" if country and country.strip() else city or ""
    name = _FORBIDDEN_CHARS.sub("-", raw)
    name = _WHITESPACE.sub(" ", name).strip().strip("'").strip()
    name = name[:MAX_SHEET_NAME_LENGTH].rstrip()
    return name or FALLBACK_SHEET_NAME


def column_letter(index: int) -> str:
    """1-based column number to A1 letters: 1 -> A, 26 -> Z, 27 -> AA."""
    if index < 1:
        raise ValueError("column index must be >= 1")
    letters = ""
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


class SheetSink:
    """Writes OutputRows into named tabs of a single spreadsheet.

    The gspread client is injected so a fake can stand in for tests. Column order is
    taken from ``header`` everywhere; rows are never serialized from a literal order.
    """

    def __init__(
        self,
        client: Any,
        spreadsheet_id: str,
        *,
        header: Sequence[str] = HEADERS,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self._client = client
        self._spreadsheet_id = spreadsheet_id
        self._spreadsheet = None
        self.header = list(header)
        self.chunk_size = chunk_size
        self._last_column = column_letter(len(self.header))

    def _open(self):
        if self._spreadsheet is None:
            self._spreadsheet = self._client.open_by_key(self._spreadsheet_id)
        return self._spreadsheet

    def _worksheet(self, name: str):
        return self._open().worksheet(name)

    def ensure_destination(self, name: str):
        """Create the tab if missing and make sure row 1 holds the canonical header."""
        try:
            spreadsheet = self._open()
            try:
                worksheet = spreadsheet.worksheet(name)
            except gspread.exceptions.WorksheetNotFound:
                logger.info("Creating sheet tab %s", name)
                worksheet = spreadsheet.add_worksheet(title=name, rows=NEW_SHEET_ROWS, cols=len(self.header))

            current = worksheet.row_values(1)
            if current != self.header:
                # Blank any stale cells past the header so the next comparison matches.
                width = max(len(current), len(self.header))
                padded = self.header + [""] * (width - len(self.header))
                logger.info("Writing header row on tab %s", name)
                worksheet.update(
                    range_name=f"A1:{column_letter(width)}1",
                    values=[padded],
                    value_input_option="RAW",
                )
        except _SHEETS_ERRORS as exc:
            raise DestinationError(f"Unable to prepare sheet tab {name!r}: {exc}") from exc
        return worksheet

    def read_rows(self, name: str) -> List[List[Any]]:
        try:
            values = self._worksheet(name).get(f"A2:{self._last_column}")
        except gspread.exceptions.WorksheetNotFound:
            return []
        except _SHEETS_ERRORS as exc:
            raise DestinationError(f"Unable to read rows from tab {name!r}: {exc}") from exc
        return [list(row) for row in values or []]

    def read_existing_keys(self, name: str) -> Set[str]:
        """Dedupe keys of every stored row, read once per run."""
        positions: Dict[str, int] = {field: idx for idx, field in enumerate(self.header)}

        def cell(row: List[Any], field: str) -> str:
            idx = positions.get(field)
            if idx is None or idx >= len(row):
                return ""
            return str(row[idx] or "")

        keys: Set[str] = set()
        for row in self.read_rows(name):
            key = dedupe_key(cell(row, "place_id"), cell(row, "name"), cell(row, "address"))
            if key:
                keys.add(key)
        logger.info("Loaded %d existing keys from tab %s", len(keys), name)
        return keys

    def to_values(self, rows: Sequence[OutputRow]) -> List[List[Any]]:
        return [row_to_values(row, self.header) for row in rows]

    def append_rows(self, name: str, rows: Sequence[OutputRow]) -> int:
        """Append rows in chunks; returns how many rows were written (0 for no rows)."""
        if not rows:
            return 0
        values = self.to_values(rows)
        appended = 0
        try:
            worksheet = self._worksheet(name)
            for start in range(0, len(values), self.chunk_size):
                chunk = values[start : start + self.chunk_size]
                worksheet.append_rows(
                    chunk,
                    value_input_option="RAW",
                    insert_data_option="INSERT_ROWS",
                    table_range="A1",
                )
                appended += len(chunk)
                logger.info("Appended %d rows to tab %s (%d/%d)", len(chunk), name, appended, len(values))
        except _SHEETS_ERRORS as exc:
            raise DestinationError(
                f"Unable to append rows to tab {name!r} after {appended} of {len(values)}: {exc}"
            ) from exc
        return appended
