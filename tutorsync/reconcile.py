# tutorsync/reconcile.py

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from tutorsync.directory import MirrorTarget, RepositoryDirectory
from tutorsync.notifier import ADD, UPDATE, ChangeNotifier
from tutorsync.sheets.codec import decode, encode, is_blank_row, resolve_schema
from tutorsync.sheets.schema import ColumnSchema, header_labels

logger = logging.getLogger(__name__)

# Maintained by the store on every write; a sheet copy of these is always stale.
STORE_MANAGED_FIELDS = ("createdAt", "updatedAt")


@dataclass
class PassResult:
    target: MirrorTarget
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    exported: int = 0
    skipped: int = 0
    busy: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error and not self.busy

    @property
    def writes(self) -> int:
        return self.added + self.updated + self.exported

    def summary(self) -> str:
        line = (
            f"target={self.target.collection} added={self.added} updated={self.updated} "
            f"unchanged={self.unchanged} exported={self.exported} skipped={self.skipped}"
        )
        if self.busy:
            line += " busy=1"
        if self.error:
            line += f" error={self.error[:200]}"
        return line


def _fields(record: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.items() if k != "id" and k not in STORE_MANAGED_FIELDS}


def _field_names(records: list[dict[str, Any]]) -> list[str]:
    names: dict[str, None] = {}
    for record in records:
        for key in record:
            names.setdefault(key, None)
    return list(names)


def _changed(collection: str, existing: dict[str, Any], incoming: dict[str, Any], schema: ColumnSchema) -> bool:
    """Field-level diff of a decoded row against the store record as the sheet would show it.

    Projecting the record through the codec first means fallback columns
    (date <- createdAt) and non-string values don't read as edits.
    """
    shown = decode(collection, encode(collection, existing, schema), schema) or {}
    # == on dicts/lists is already a deep comparison
    return any(shown.get(k) != v for k, v in incoming.items())


class Reconciler:
    """Bidirectional spreadsheet <-> store mirroring, one pass per mirror target.

    Phase A walks the sheet rows (sheet wins on conflict), Phase B appends
    store records the sheet has never seen. Both phases work off one snapshot
    of the sheet taken at the start of the pass. A pass is not atomic; the
    next pass re-compares everything by id and picks up where a failed one
    stopped.
    """

    def __init__(
        self,
        store,
        sheets,
        directory: RepositoryDirectory,
        notifier: ChangeNotifier,
        dry_run: bool = False,
    ):
        self.store = store
        self.sheets = sheets
        self.directory = directory
        self.notifier = notifier
        self.dry_run = dry_run
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, sheet_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(sheet_id, threading.Lock())

    def _notify(self, collection: str, action: str, record_id: str, fields: dict[str, Any]) -> None:
        if self.dry_run:
            return
        self.notifier.emit(collection, action, {**fields, "id": record_id})

    def run_all(self) -> list[PassResult]:
        """One pass over every mirror target; a failing target never stops the rest."""
        try:
            targets = self.directory.targets()
        except Exception as e:
            logger.error("Could not load mirror targets: %s", e)
            return []

        return [reconcile_target(self, target) for target in targets]

    def reconcile(self, target: MirrorTarget) -> PassResult:
        lock = self._lock_for(target.sheet_id)
        if not lock.acquire(blocking=False):
            logger.info("Pass for %s still running; skipping this trigger", target)
            return PassResult(target=target, busy=True)
        try:
            return self._run_pass(target)
        finally:
            lock.release()

    def _run_pass(self, target: MirrorTarget) -> PassResult:
        result = PassResult(target=target)
        collection = target.collection
        sheet_id = target.sheet_id

        self.sheets.forget(sheet_id)
        snapshot = self.sheets.read_all(sheet_id)
        header = snapshot[0] if snapshot else []
        rows = snapshot[1:]

        records = self.store.list(collection)
        has_header = not is_blank_row(header)
        schema = resolve_schema(
            collection,
            header if has_header else None,
            sample=records[0] if records else None,
            fields=_field_names(records),
        )

        seen = {row[0].strip() for row in rows if row and row[0].strip()}

        self._pull(collection, sheet_id, rows, schema, seen, result)
        self._push(collection, sheet_id, records, schema, has_header, seen, result)

        if not self.dry_run:
            self.directory.touch(target.entry_id)

        logger.info("Synced %s: %s", target, result.summary())
        return result

    # ------------------------------------------------------------------
    # Phase A: sheet -> store
    # ------------------------------------------------------------------
    def _pull(
        self,
        collection: str,
        sheet_id: str,
        rows: list[list[str]],
        schema: ColumnSchema,
        seen: set[str],
        result: PassResult,
    ) -> None:
        handled: set[str] = set()

        for i, row in enumerate(rows):
            row_number = i + 2
            if is_blank_row(row):
                result.skipped += 1
                continue

            row_id = row[0].strip() if row else ""
            if not row_id:
                new_id = self._import_new_row(collection, sheet_id, row_number, row, schema)
                seen.add(new_id)
                result.added += 1
                continue

            if row_id in handled:
                logger.warning("Duplicate id %s at row %d of %s; ignoring the repeat", row_id, row_number, sheet_id)
                result.skipped += 1
                continue
            handled.add(row_id)

            record = decode(collection, row, schema)
            if record is None:
                result.skipped += 1
                continue
            incoming = _fields(record)

            existing = self.store.get(collection, row_id)
            if existing is None:
                if not self.dry_run:
                    self.store.set(
                        collection,
                        row_id,
                        {**incoming, "createdAt": self.store.SERVER_TIMESTAMP, "updatedAt": self.store.SERVER_TIMESTAMP},
                    )
                self._notify(collection, ADD, row_id, incoming)
                result.added += 1
            elif _changed(collection, existing, incoming, schema):
                if not self.dry_run:
                    self.store.update(collection, row_id, {**incoming, "updatedAt": self.store.SERVER_TIMESTAMP})
                self._notify(collection, UPDATE, row_id, incoming)
                result.updated += 1
            else:
                result.unchanged += 1

    def _import_new_row(
        self,
        collection: str,
        sheet_id: str,
        row_number: int,
        row: list[str],
        schema: ColumnSchema,
    ) -> str:
        new_id = self.store.new_id(collection)
        filled = [new_id] + list(row[1:])
        record = decode(collection, filled, schema) or {"id": new_id}
        incoming = _fields(record)

        if not self.dry_run:
            # id goes into the sheet first so a failed store write is retried
            # under the same id instead of importing the row twice
            self.sheets.write_at(sheet_id, row_number, [new_id])
            self.store.set(
                collection,
                new_id,
                {**incoming, "createdAt": self.store.SERVER_TIMESTAMP, "updatedAt": self.store.SERVER_TIMESTAMP},
            )
        logger.debug("Imported new row %d of %s as %s/%s", row_number, sheet_id, collection, new_id)
        self._notify(collection, ADD, new_id, incoming)
        return new_id

    # ------------------------------------------------------------------
    # Phase B: store -> sheet
    # ------------------------------------------------------------------
    def _push(
        self,
        collection: str,
        sheet_id: str,
        records: list[dict[str, Any]],
        schema: ColumnSchema,
        has_header: bool,
        seen: set[str],
        result: PassResult,
    ) -> None:
        # records taken before Phase A; anything Phase A wrote is already in seen
        if not records:
            return

        if not has_header and not self.dry_run:
            self.sheets.ensure_header(sheet_id, header_labels(schema))

        pending: list[list[str]] = []
        for record in records:
            record_id = str(record.get("id") or "")
            if not record_id or record_id in seen:
                continue
            seen.add(record_id)
            pending.append(encode(collection, record, schema))

        if pending and not self.dry_run:
            self.sheets.append_rows(sheet_id, pending)
        result.exported += len(pending)


def reconcile_target(reconciler: Reconciler, target: MirrorTarget) -> PassResult:
    """One pass for one target. Errors are logged and reported on the result, never raised."""
    try:
        return reconciler.reconcile(target)
    except Exception as e:
        logger.exception("Sync failed for %s", target)
        return PassResult(target=target, error=str(e) or e.__class__.__name__)
