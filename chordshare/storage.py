"""Thread-safe key/value storage held by a ring node: its own data plus a backup copy."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping

__all__ = ["DataStore"]


def _pairs(pairs) -> list[tuple[str, str]]:
    """Normalise a mapping or an iterable of (key, value) pairs into a list of tuples."""
    if isinstance(pairs, Mapping):
        return list(pairs.items())
    result = []
    for pair in pairs or ():
        key, value = pair
        result.append((key, value))
    return result


class DataStore:
    """The primary data of a node and the backup of its predecessor's data.

    Each table has its own lock, so readers and writers of one never block the other.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._backup: dict[str, str] = {}
        self._data_lock = threading.Lock()
        self._backup_lock = threading.Lock()

    def update_data(self, pairs) -> None:
        """Insert or overwrite entries in the primary data."""
        items = _pairs(pairs)
        with self._data_lock:
            self._data.update(items)

    def update_backup(self, pairs) -> None:
        """Insert or overwrite entries in the backup."""
        items = _pairs(pairs)
        with self._backup_lock:
            self._backup.update(items)

    def delete_data(self, keys: Iterable[str]) -> bool:
        """Remove ``keys`` from the primary data; True only if every key was present."""
        with self._data_lock:
            return _remove_all(self._data, keys)

    def delete_data_single(self, key: str) -> bool:
        """Remove ``key`` from the primary data; True if it was present."""
        with self._data_lock:
            return self._data.pop(key, None) is not None

    def delete_backup(self, keys: Iterable[str]) -> bool:
        """Remove ``keys`` from the backup; True only if every key was present."""
        with self._backup_lock:
            return _remove_all(self._backup, keys)

    def delete_backup_single(self, key: str) -> bool:
        """Remove ``key`` from the backup; True if it was present."""
        with self._backup_lock:
            return self._backup.pop(key, None) is not None

    def get_value(self, key: str) -> tuple[bool, str]:
        """Look ``key`` up in the primary data: ``(found, value)``, value "" when absent."""
        with self._data_lock:
            if key in self._data:
                return True, self._data[key]
        return False, ""

    def data_items(self) -> list[tuple[str, str]]:
        """A snapshot of the primary data as (key, value) pairs."""
        with self._data_lock:
            return list(self._data.items())

    def backup_items(self) -> list[tuple[str, str]]:
        """A snapshot of the backup as (key, value) pairs."""
        with self._backup_lock:
            return list(self._backup.items())

    def take_backup(self) -> list[tuple[str, str]]:
        """Empty the backup and return what it held."""
        with self._backup_lock:
            items = list(self._backup.items())
            self._backup = {}
        return items

    def clear_backup(self) -> None:
        with self._backup_lock:
            self._backup = {}

    def reset(self) -> None:
        """Drop both the primary data and the backup."""
        with self._data_lock:
            self._data = {}
        with self._backup_lock:
            self._backup = {}


def _remove_all(table: dict[str, str], keys: Iterable[str]) -> bool:
    complete = True
    for key in keys or ():
        if key in table:
            del table[key]
        else:
            complete = False
    return complete