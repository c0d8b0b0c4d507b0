# tutorsync/errors.py

from __future__ import annotations


class ConfigError(RuntimeError):
    """Missing or unusable configuration (env vars, credentials, mirror entries)."""


class DirectoryConfigError(ConfigError):
    """Two or more repository entries claim the same category."""


class RecordNotFound(KeyError):
    """update/get on a document id that the store does not hold."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection}/{record_id}")
        self.collection = collection
        self.record_id = record_id
