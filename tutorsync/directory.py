# tutorsync/directory.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from tutorsync.errors import DirectoryConfigError
from tutorsync.naming import collection_for
from tutorsync.sheets.client import extract_spreadsheet_id

logger = logging.getLogger(__name__)

REPOSITORIES = "repositories"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class MirrorTarget:
    entry_id: str
    name: str
    collection: str
    url: str
    sheet_id: str

    def __str__(self) -> str:
        return f"{self.collection} -> {self.sheet_id}"


class RepositoryDirectory:
    """Catalog of mirror targets, read from the `repositories` collection.

    Each entry binds one store collection to one spreadsheet URL.
    """

    def __init__(self, store, collection: str = REPOSITORIES):
        self.store = store
        self.collection = collection

    def entries(self) -> list[dict[str, Any]]:
        return self.store.list(self.collection)

    def resolve(self, module: str) -> Optional[str]:
        """URL of the sheet linked to `module`, or None when it isn't mirrored.

        An exact (case-insensitive) category match beats a substring match on
        the entry name. Two entries with the same category is a configuration
        error; among several name matches the first one listed wins.
        """
        wanted = (module or "").lower().strip()
        if not wanted:
            return None

        entries = self.entries()

        by_category = [
            e for e in entries if str(e.get("category") or "").lower().strip() == wanted
        ]
        if len(by_category) > 1:
            ids = ", ".join(str(e.get("id")) for e in by_category)
            raise DirectoryConfigError(f"Multiple repositories claim category '{wanted}': {ids}")
        if by_category:
            return by_category[0].get("url") or None

        for e in entries:
            if wanted in str(e.get("name") or "").lower():
                return e.get("url") or None
        return None

    def targets(self) -> list[MirrorTarget]:
        out: list[MirrorTarget] = []
        claimed: dict[str, str] = {}

        for e in self.entries():
            entry_id = str(e.get("id") or "")
            name = str(e.get("name") or "")
            collection = collection_for(e)
            if not collection:
                logger.warning("Repository %s names no collection; not mirrored", entry_id)
                continue

            url = str(e.get("url") or "")
            sheet_id = extract_spreadsheet_id(url)
            if not sheet_id:
                logger.error("Invalid spreadsheet URL for %s (%s): %r", name or entry_id, collection, url)
                continue

            if collection in claimed:
                logger.error(
                    "Repository %s also mirrors '%s' (already bound to %s); skipped",
                    entry_id, collection, claimed[collection],
                )
                continue

            claimed[collection] = entry_id
            out.append(MirrorTarget(entry_id=entry_id, name=name, collection=collection, url=url, sheet_id=sheet_id))
        return out

    def touch(self, entry_id: str) -> str:
        stamp = utc_now_iso()
        self.store.update(self.collection, entry_id, {"lastSync": stamp})
        return stamp
