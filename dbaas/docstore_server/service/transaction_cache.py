"""
Per-transaction cache of database locks, ids and version bumps.

One TransactionCache lives exactly as long as one transaction and is
discarded with it. It guarantees:
- at most one lock acquisition per database and transaction
- at most one version increment per database and transaction, however
  many documents are written
"""

from __future__ import annotations

from .database_service import DatabaseInfo, DatabaseService


class TransactionCache:
    """Memoizes database lookups for the current transaction."""

    def __init__(self, databases: DatabaseService) -> None:
        self.databases = databases
        # every database in here has been locked in this transaction
        self._name_to_info: dict[str, DatabaseInfo] = {}
        # entries in here are potentially not locked
        self._name_to_id: dict[str, int] = {}
        self._id_to_incremented_version: dict[int, str] = {}

    def lock_and_get_info(self, name: str) -> DatabaseInfo:
        info = self._name_to_info.get(name)
        if info is None:
            info = self.databases.get_info_and_lock(name)
            self._name_to_info[name] = info
        return info

    def get_id(self, name: str) -> int:
        info = self._name_to_info.get(name)
        if info is not None:
            return info.id
        database_id = self._name_to_id.get(name)
        if database_id is None:
            database_id = self.databases.get_id(name)
            self._name_to_id[name] = database_id
        return database_id

    def get_incremented_version(self, info: DatabaseInfo) -> str:
        """Return the version documents written in this transaction get.

        Must only be called with a locked DatabaseInfo and only when
        documents of that database are about to change.
        """
        version = self._id_to_incremented_version.get(info.id)
        if version is None:
            version = self.databases.increment_version(info)
            self._id_to_incremented_version[info.id] = version
        return version
