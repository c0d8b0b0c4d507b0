# tutorsync/sheets/adapter.py

from __future__ import annotations

import logging
from typing import Any, Sequence

import gspread
from gspread.utils import absolute_range_name

logger = logging.getLogger(__name__)

LAST_COLUMN = "Z"


def _as_row(row: Sequence[Any]) -> list[str]:
    return [(str(x) if x is not None else "") for x in row]


class SpreadsheetAdapter:
    """Row-level primitives over the first worksheet of a spreadsheet.

    Rows are addressed by 1-based sheet row number; row 1 is the header and
    column A holds the record id. Calls are idempotent individually but nothing
    spans more than one request, so a pass can stop halfway.
    """

    def __init__(self, client: gspread.Client):
        self.client = client
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}
        self._sheet_names: dict[str, str] = {}

    def _open(self, sheet_id: str) -> gspread.Spreadsheet:
        sh = self._spreadsheets.get(sheet_id)
        if sh is None:
            sh = self.client.open_by_key(sheet_id)
            self._spreadsheets[sheet_id] = sh
        return sh

    def forget(self, sheet_id: str) -> None:
        """Drops the cached sheet name so the next call re-reads metadata."""
        self._sheet_names.pop(sheet_id, None)

    def sheet_name(self, sheet_id: str) -> str:
        name = self._sheet_names.get(sheet_id)
        if name is None:
            name = self._open(sheet_id).get_worksheet(0).title
            self._sheet_names[sheet_id] = name
        return name

    def _range(self, sheet_id: str, a1: str) -> str:
        return absolute_range_name(self.sheet_name(sheet_id), a1)

    def read_all(self, sheet_id: str) -> list[list[str]]:
        name = self.sheet_name(sheet_id)
        logger.debug("Fetching data from [%s] range [%s]", sheet_id, name)
        resp = self._open(sheet_id).values_get(absolute_range_name(name))
        values = resp.get("values", []) or []
        logger.debug("Retrieved %d rows from sheet %s", len(values), sheet_id)
        return [_as_row(r) for r in values]

    def append(self, sheet_id: str, row: Sequence[Any]) -> None:
        self.append_rows(sheet_id, [row])

    def append_rows(self, sheet_id: str, rows: Sequence[Sequence[Any]]) -> None:
        if not rows:
            return
        # A1 anchors the table search at the first column
        self._open(sheet_id).values_append(
            self._range(sheet_id, "A1"),
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            body={"values": [_as_row(r) for r in rows]},
        )

    def write_at(self, sheet_id: str, row_number: int, row: Sequence[Any]) -> None:
        if row_number < 1:
            raise ValueError(f"row_number must be >= 1, got {row_number}")
        self._open(sheet_id).values_update(
            self._range(sheet_id, f"A{row_number}"),
            params={"valueInputOption": "USER_ENTERED"},
            body={"values": [_as_row(row)]},
        )

    def clear_row(self, sheet_id: str, row_number: int) -> bool:
        """Blanks A..Z of one row. The row itself stays, so row numbers don't shift.

        Best-effort: failures are logged and reported as False.
        """
        try:
            self._open(sheet_id).values_clear(
                self._range(sheet_id, f"A{row_number}:{LAST_COLUMN}{row_number}")
            )
            return True
        except Exception as e:
            logger.warning("Error clearing row %d of %s: %s", row_number, sheet_id, e)
            return False

    def ensure_header(self, sheet_id: str, headers: Sequence[str]) -> bool:
        """Writes the header row only if row 1 is absent or empty. Never overwrites."""
        sh = self._open(sheet_id)
        resp = sh.values_get(self._range(sheet_id, "A1:1"))
        values = resp.get("values", []) or []
        if values and any(str(c).strip() for c in values[0]):
            return False

        sh.values_update(
            self._range(sheet_id, "A1"),
            params={"valueInputOption": "RAW"},
            body={"values": [list(headers)]},
        )
        logger.info("Wrote header row to %s", sheet_id)
        return True
