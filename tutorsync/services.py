# tutorsync/services.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from tutorsync.directory import REPOSITORIES
from tutorsync.errors import ConfigError, RecordNotFound
from tutorsync.notifier import ADD, DELETE, UPDATE, ChangeNotifier
from tutorsync.pusher import SheetPusher

logger = logging.getLogger(__name__)


def clean_record(value: Any) -> Any:
    """Recursively drops None values; Firestore has no 'undefined'."""
    if isinstance(value, dict):
        return {k: clean_record(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [clean_record(v) for v in value]
    return value


class RecordService:
    """CRUD over one store collection.

    Every write goes store first, then the linked sheet (best-effort), then a
    change event. Store errors propagate to the caller.
    """

    def __init__(
        self,
        store,
        collection: str,
        module: str,
        notifier: ChangeNotifier,
        pusher: Optional[SheetPusher] = None,
    ):
        self.store = store
        self.collection = collection
        self.module = module
        self.notifier = notifier
        self.pusher = pusher

    def _after_write(self, record: dict[str, Any], action: str) -> None:
        if self.pusher is not None:
            self.pusher.push(self.module, self.collection, record, action)
        self.notifier.emit(self.collection, action, record)

    def add(self, data: dict[str, Any]) -> dict[str, Any]:
        payload = clean_record({k: v for k, v in data.items() if k != "id"})
        payload["createdAt"] = self.store.SERVER_TIMESTAMP
        payload["updatedAt"] = self.store.SERVER_TIMESTAMP

        record_id = self.store.add(self.collection, payload)
        # re-read so timestamps come back resolved
        result = self.store.get(self.collection, record_id) or {"id": record_id, **payload}
        logger.info("Added %s/%s", self.collection, record_id)

        self._after_write(result, ADD)
        return result

    def list(self) -> list[dict[str, Any]]:
        return self.store.list(self.collection, order_by="createdAt", descending=True)

    def get(self, record_id: str) -> Optional[dict[str, Any]]:
        return self.store.get(self.collection, record_id)

    def find_by(self, field: str, value: Any) -> list[dict[str, Any]]:
        return self.store.query(self.collection, field, value)

    def update(self, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        payload = clean_record({k: v for k, v in data.items() if k != "id"})
        payload["updatedAt"] = self.store.SERVER_TIMESTAMP

        self.store.update(self.collection, record_id, payload)
        # the sheet row is rewritten whole, so push the full record, not the patch
        result = self.store.get(self.collection, record_id)
        if result is None:
            raise RecordNotFound(self.collection, record_id)
        logger.info("Updated %s/%s", self.collection, record_id)

        self._after_write(result, UPDATE)
        return result

    def delete(self, record_id: str) -> dict[str, Any]:
        self.store.delete(self.collection, record_id)
        logger.info("Deleted %s/%s", self.collection, record_id)

        result = {"id": record_id}
        self._after_write(result, DELETE)
        return result


# collection -> module name used to find the linked sheet
MIRRORED_COLLECTIONS: dict[str, str] = {
    "contacts": "Inquiries",
    "bookings": "Bookings",
    "manualMatches": "Matches",
}


def build_services(store, notifier: ChangeNotifier, pusher: Optional[SheetPusher] = None) -> dict[str, RecordService]:
    services = {
        collection: RecordService(store, collection, module, notifier, pusher)
        for collection, module in MIRRORED_COLLECTIONS.items()
    }
    # repository entries are the mirror catalog itself; nothing to push
    services[REPOSITORIES] = RecordService(store, REPOSITORIES, "Repositories", notifier)
    return services


def load_repository_file(path: str | Path) -> list[dict[str, Any]]:
    import yaml

    path = Path(path)
    if not path.exists():
        raise ConfigError(f"repositories file not found at: {path}")

    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    entries = data.get("repositories") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigError("repositories file must contain top-level key: repositories: [ ... ]")

    out: list[dict[str, Any]] = []
    for i, e in enumerate(entries):
        if not isinstance(e, dict) or not str(e.get("name") or "").strip():
            raise ConfigError(f"repositories[{i}] needs at least a name")
        out.append({k: (str(v).strip() if v is not None else None) for k, v in e.items()})
    return out


def import_repositories(service: RecordService, path: str | Path) -> int:
    """Adds entries from a YAML file, skipping any whose url is already registered."""
    existing = {str(r.get("url") or "").strip() for r in service.store.list(service.collection)}
    added = 0
    for entry in load_repository_file(path):
        url = str(entry.get("url") or "").strip()
        if url and url in existing:
            logger.info("Repository %s already registered; skipped", entry.get("name"))
            continue
        service.add(entry)
        existing.add(url)
        added += 1
    return added
