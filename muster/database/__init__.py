"""
Database module.

Event records are stored here, one entry per event keyed by its event
ID. Operator configuration that is meant to be edited by hand (such as
the role mentions) is stored as YAML and managed separately.

The database library used here is sqlitedict. Autocommit is turned off
and every write is committed with a blocking commit, so a failed write
is reported to the caller right away instead of surfacing on some later
unrelated call from sqlitedict's worker thread. A write whose commit
fails is undone again before the error is raised.
"""

import os
import sqlite3
from typing import Dict, Iterator, Tuple

from loguru import logger
from sqlitedict import SqliteDict

STORAGE_EXCEPTIONS = (sqlite3.Error, OSError, RuntimeError)

_MISSING = object()
_UNREAD = object()


class StorageUnavailable(Exception):
    """When a durable write or read fails."""


class MusterDatabase:
    """Database class for the Muster bot."""

    __slots__ = ["db", "file_path"]

    def __init__(self, file_path: str, table: str = "events") -> None:
        """
        Initializer for the MusterDatabase class.

        :param file_path: Path to database file
        :param table: Table name inside the database file
        :raises StorageUnavailable: Database file could not be opened
        """
        self.file_path = file_path

        directory = os.path.dirname(file_path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            self.db = SqliteDict(file_path, tablename=table, autocommit=False)
        except STORAGE_EXCEPTIONS as e:
            raise StorageUnavailable(
                f"Could not open database at {file_path}"
            ) from e

    def items(self) -> Iterator[Tuple[str, dict]]:
        """
        Iterate over every stored entry.

        :return: Iterator of keys and stored dictionaries
        :raises StorageUnavailable: Database could not be read
        """
        try:
            entries: Dict[str, dict] = dict(self.db.items())
        except STORAGE_EXCEPTIONS as e:
            raise StorageUnavailable("Could not read database") from e

        return iter(entries.items())

    def _restore(self, key: str, previous) -> None:
        # Undo a write whose commit failed, so the pending transaction
        # doesn't carry it into the next successful commit
        try:
            if previous is _MISSING:
                if key in self.db:
                    del self.db[key]
            else:
                self.db[key] = previous
        except STORAGE_EXCEPTIONS as e:
            logger.critical(
                "Failed to roll back entry {} after a failed write: {}",
                key,
                e
            )

    def put(self, key: str, value: dict) -> None:
        """
        Write an entry and commit it.

        If the commit fails the entry is set back to its previous value,
        so nothing of the failed write is saved by a later commit.

        :param key: Entry key
        :param value: Dictionary to store
        :raises StorageUnavailable: Write or commit failed
        """
        previous = _UNREAD
        try:
            previous = self.db.get(key, _MISSING)
            self.db[key] = value
            self.db.commit(blocking=True)
        except STORAGE_EXCEPTIONS as e:
            logger.error("Failed to write entry {} to database: {}", key, e)
            if previous is not _UNREAD:
                self._restore(key, previous)
            raise StorageUnavailable(f"Could not write {key}") from e

    def remove(self, key: str) -> None:
        """
        Delete an entry and commit the deletion.

        If the commit fails the entry is put back.

        :param key: Entry key
        :raises StorageUnavailable: Delete or commit failed
        """
        previous = _UNREAD
        try:
            previous = self.db.get(key, _MISSING)
            if previous is not _MISSING:
                del self.db[key]
            self.db.commit(blocking=True)
        except STORAGE_EXCEPTIONS as e:
            logger.error("Failed to delete entry {} from database: {}", key, e)
            if previous is not _UNREAD:
                self._restore(key, previous)
            raise StorageUnavailable(f"Could not delete {key}") from e

    def close(self) -> None:
        """Close the database file."""
        self.db.close()
