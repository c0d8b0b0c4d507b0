# tutorsync/store/firestore.py

from __future__ import annotations

import logging
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import NotFound

from tutorsync.config import AppConfig
from tutorsync.errors import ConfigError, RecordNotFound

logger = logging.getLogger(__name__)


def _credentials(cfg: AppConfig) -> credentials.Certificate:
    if cfg.has_inline_service_account:
        return credentials.Certificate(cfg.service_account_info())
    if cfg.credentials_path:
        return credentials.Certificate(cfg.credentials_path)
    raise ConfigError("Missing Firebase credentials in environment variables")


def init_app(cfg: AppConfig) -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {"projectId": cfg.firebase_project_id} if cfg.firebase_project_id else None
    app = firebase_admin.initialize_app(_credentials(cfg), options)
    logger.info("Firebase app initialized (project=%s)", cfg.firebase_project_id or "<from key>")
    return app


class FirestoreStore:
    """Thin record-level wrapper around a Firestore client.

    Records come back as plain dicts with the document id under "id".
    """

    SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP

    def __init__(self, db):
        self.db = db

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "FirestoreStore":
        return cls(firestore.client(init_app(cfg)))

    @staticmethod
    def _record(doc) -> dict[str, Any]:
        return {"id": doc.id, **(doc.to_dict() or {})}

    def new_id(self, collection: str) -> str:
        return self.db.collection(collection).document().id

    def get(self, collection: str, record_id: str) -> Optional[dict[str, Any]]:
        doc = self.db.collection(collection).document(record_id).get()
        return self._record(doc) if doc.exists else None

    def list(self, collection: str, order_by: Optional[str] = None, descending: bool = False) -> list[dict[str, Any]]:
        ref = self.db.collection(collection)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            ref = ref.order_by(order_by, direction=direction)
        return [self._record(doc) for doc in ref.stream()]

    def query(self, collection: str, field: str, value: Any) -> list[dict[str, Any]]:
        ref = self.db.collection(collection).where(filter=firestore.FieldFilter(field, "==", value))
        return [self._record(doc) for doc in ref.stream()]

    def add(self, collection: str, data: dict[str, Any]) -> str:
        payload = {k: v for k, v in data.items() if k != "id"}
        _, doc_ref = self.db.collection(collection).add(payload)
        return doc_ref.id

    def set(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        payload = {k: v for k, v in data.items() if k != "id"}
        self.db.collection(collection).document(record_id).set(payload)

    def update(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        payload = {k: v for k, v in data.items() if k != "id"}
        try:
            self.db.collection(collection).document(record_id).update(payload)
        except NotFound as e:
            raise RecordNotFound(collection, record_id) from e

    def delete(self, collection: str, record_id: str) -> None:
        self.db.collection(collection).document(record_id).delete()
