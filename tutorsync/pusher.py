# tutorsync/pusher.py

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from tutorsync.directory import RepositoryDirectory
from tutorsync.notifier import ACTIONS, ADD, DELETE
from tutorsync.sheets.client import extract_spreadsheet_id
from tutorsync.sheets.codec import encode, is_blank_row, resolve_schema
from tutorsync.sheets.schema import header_labels

logger = logging.getLogger(__name__)


def find_row_number(rows: Sequence[Sequence[str]], record_id: str) -> Optional[int]:
    """1-based sheet row holding `record_id` in column A (header row excluded)."""
    for i, row in enumerate(rows[1:], start=2):
        if row and row[0].strip() == record_id:
            return i
    return None


class SheetPusher:
    """Mirrors a single CRUD write to the module's linked sheet right away.

    The store write has already happened by the time push() runs, so every
    failure here is logged and swallowed; the next reconciliation pass fixes
    whatever this missed.
    """

    def __init__(self, sheets, directory: RepositoryDirectory):
        self.sheets = sheets
        self.directory = directory

    def push(self, module: str, collection: str, record: dict[str, Any], action: str) -> bool:
        try:
            return self._push(module, collection, record, action)
        except Exception as e:
            logger.error("Push to sheet failed for %s: %s", module, e)
            return False

    def _push(self, module: str, collection: str, record: dict[str, Any], action: str) -> bool:
        if action not in ACTIONS:
            logger.warning("Unknown action type: %s", action)
            return False

        record_id = str(record.get("id") or "")
        if not record_id:
            logger.warning("Not pushing %s record without an id", module)
            return False

        url = self.directory.resolve(module)
        if not url:
            logger.warning("No sheet linked for module: %s", module)
            return False

        sheet_id = extract_spreadsheet_id(url)
        if not sheet_id:
            logger.error("Invalid spreadsheet URL for %s: %s", module, url)
            return False

        rows = self.sheets.read_all(sheet_id)
        row_number = find_row_number(rows, record_id)

        if action == DELETE:
            if row_number is None:
                return False
            return self.sheets.clear_row(sheet_id, row_number)

        header = rows[0] if rows else []
        has_header = not is_blank_row(header)
        schema = resolve_schema(collection, header if has_header else None, record)
        if not has_header:
            self.sheets.ensure_header(sheet_id, header_labels(schema))

        row = encode(collection, record, schema)
        if row_number is not None:
            self.sheets.write_at(sheet_id, row_number, row)
        else:
            if action != ADD:
                logger.debug("Row for %s/%s not in sheet; appending", collection, record_id)
            self.sheets.append(sheet_id, row)
        return True
