from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from tutorsync.directory import REPOSITORIES, RepositoryDirectory
from tutorsync.errors import RecordNotFound
from tutorsync.notifier import ChangeNotifier
from tutorsync.reconcile import Reconciler

INQUIRY_HEADER = ["ID", "Name", "Email", "Phone", "Subject", "Message", "Date", "Status"]


def sheet_url(sheet_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{sheet_id}/edit#gid=0"


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


class MemoryStore:
    """In-memory stand-in for FirestoreStore; iteration order is insertion order."""

    SERVER_TIMESTAMP = _ServerTimestamp()

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._last_stamp: Optional[datetime] = None

    def _server_now(self) -> datetime:
        # strictly increasing, so ordering by createdAt never ties
        now = datetime.now(timezone.utc)
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    def _resolve(self, data: dict[str, Any]) -> dict[str, Any]:
        now = self._server_now()
        return {k: (now if v is self.SERVER_TIMESTAMP else copy.deepcopy(v)) for k, v in data.items()}

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._data.setdefault(collection, {})

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        with self._lock:
            data = self._collection(collection).get(record_id)
            return {"id": record_id, **copy.deepcopy(data)} if data is not None else None

    def list(self, collection: str, order_by: Optional[str] = None, descending: bool = False) -> list[dict[str, Any]]:
        with self._lock:
            out = [{"id": k, **copy.deepcopy(v)} for k, v in self._collection(collection).items()]
        if order_by:
            # Firestore leaves out documents that lack the order field
            out = [r for r in out if r.get(order_by) is not None]
            out.sort(key=lambda r: r[order_by], reverse=descending)
        return out

    def query(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        return [r for r in self.list(collection) if r.get(field) == value]

    def add(self, collection: str, data: dict[str, Any]) -> str:
        record_id = self.new_id(collection)
        self.set(collection, record_id, data)
        return record_id

    def set(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        payload = {k: v for k, v in data.items() if k != "id"}
        with self._lock:
            self._collection(collection)[record_id] = self._resolve(payload)

    def update(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        payload = {k: v for k, v in data.items() if k != "id"}
        with self._lock:
            docs = self._collection(collection)
            if record_id not in docs:
                raise RecordNotFound(collection, record_id)
            docs[record_id].update(self._resolve(payload))

    def delete(self, collection: str, record_id: str) -> None:
        with self._lock:
            self._collection(collection).pop(record_id, None)


class FakeSheets:
    """In-memory stand-in for SpreadsheetAdapter: one list of rows per sheet id."""

    def __init__(self):
        self.sheets: dict[str, list[list[str]]] = {}
        self.writes: list[tuple] = []
        self.fail_on: set[str] = set()

    def _check(self, sheet_id: str) -> None:
        if sheet_id in self.fail_on:
            raise RuntimeError(f"quota exceeded for {sheet_id}")

    def rows(self, sheet_id: str) -> list[list[str]]:
        return self.sheets.setdefault(sheet_id, [])

    def forget(self, sheet_id):
        pass

    def sheet_name(self, sheet_id):
        return "Sheet1"

    def read_all(self, sheet_id):
        self._check(sheet_id)
        rows = self.rows(sheet_id)
        # the API leaves trailing empty rows out
        while rows and not any(c.strip() for c in rows[-1]):
            rows = rows[:-1]
        return [list(r) for r in rows]

    def append(self, sheet_id, row):
        self.append_rows(sheet_id, [row])

    def append_rows(self, sheet_id, rows):
        self._check(sheet_id)
        table = self.rows(sheet_id)
        end = len(table)
        while end and not any(c.strip() for c in table[end - 1]):
            end -= 1
        for offset, row in enumerate(rows):
            table.insert(end + offset, [str(c) for c in row])
        self.writes.append(("append", sheet_id, len(rows)))

    def write_at(self, sheet_id, row_number, row):
        self._check(sheet_id)
        table = self.rows(sheet_id)
        while len(table) < row_number:
            table.append([])
        target = table[row_number - 1]
        while len(target) < len(row):
            target.append("")
        for i, v in enumerate(row):
            target[i] = str(v)
        self.writes.append(("write", sheet_id, row_number))

    def clear_row(self, sheet_id, row_number):
        if sheet_id in self.fail_on:
            return False
        table = self.rows(sheet_id)
        if row_number <= len(table):
            table[row_number - 1] = []
        self.writes.append(("clear", sheet_id, row_number))
        return True

    def ensure_header(self, sheet_id, headers):
        self._check(sheet_id)
        table = self.rows(sheet_id)
        if table and any(c.strip() for c in table[0]):
            return False
        if table:
            table[0] = list(headers)
        else:
            table.append(list(headers))
        self.writes.append(("header", sheet_id, 1))
        return True


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def sheets():
    return FakeSheets()


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def events(notifier):
    seen = []
    notifier.subscribe(seen.append)
    return seen


@pytest.fixture
def directory(store):
    return RepositoryDirectory(store)


@pytest.fixture
def reconciler(store, sheets, directory, notifier):
    return Reconciler(store, sheets, directory, notifier)


@pytest.fixture
def add_repo(store):
    def _add(name, category="", sheet_id="SHEET1", url=None):
        return store.add(
            REPOSITORIES,
            {"name": name, "category": category, "url": url if url is not None else sheet_url(sheet_id)},
        )

    return _add
