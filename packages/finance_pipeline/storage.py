"""Key-value persistence backends.

Every backend stores JSON text under string keys, mirroring the browser
``localStorage`` slots the data model was designed around:

- :class:`MemoryStore`: process-local dict, used by tests and one-off runs.
- :class:`JsonDirectoryStore`: one ``<key>.json`` file per slot under a data
  directory (``FP_DATA_DIR`` or ``./.finance_data``). Writes go to a ``.tmp``
  file first and are moved into place with ``os.replace``.
- :class:`SqlKeyValueStore`: rows in ``fp_kv_slots`` through the shared
  ``db.client`` session helpers.

Backend failures are raised as :class:`~finance_pipeline.errors.StorageError`.
"""

from __future__ import annotations

import contextlib
import os
import re
from pathlib import Path
from typing import Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .errors import StorageError
from .logging_setup import get_logger

_logger = get_logger("finance_pipeline.storage")

_KEY_RE = re.compile(r"^[A-Za-z0-9_.\-]{1,128}$")


def _validate_key(key: str) -> str:
    """Reject keys that could escape the data directory or the column width."""

    if not _KEY_RE.fullmatch(key) or key.startswith("."):
        raise ValueError(f"invalid storage key {key!r}")
    return key


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(_validate_key(key))

    def set(self, key: str, value: str) -> None:
        self._data[_validate_key(key)] = value

    def delete(self, key: str) -> None:
        self._data.pop(_validate_key(key), None)

    def keys(self) -> list[str]:
        return sorted(self._data)


def default_data_dir() -> Path:
    """Return the data directory.

    Default: ``./.finance_data`` under the current working directory.
    Override: ``FP_DATA_DIR`` environment variable (absolute or relative).
    """

    root = os.getenv("FP_DATA_DIR")
    if root and root.strip():
        return Path(root).expanduser().resolve()
    return (Path.cwd() / ".finance_data").resolve()


class JsonDirectoryStore:
    def __init__(self, root: str | os.PathLike[str] | None = None) -> None:
        self.root = Path(root).expanduser().resolve() if root is not None else default_data_dir()

    def _path(self, key: str) -> Path:
        return self.root / f"{_validate_key(key)}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"failed to read {os.fspath(path)}: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            with contextlib.suppress(OSError):
                tmp.unlink()
            raise StorageError(f"failed to write {os.fspath(path)}: {e}", key=key) from e
        _logger.debug("storage:write; key=%s bytes=%d path=%s", key, len(value), path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"failed to delete {os.fspath(path)}: {e}", key=key) from e

    def keys(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.stem for p in self.root.glob("*.json") if p.is_file())


class SqlKeyValueStore:
    """Slots stored as rows of ``fp_kv_slots``; the table is created on init."""

    def __init__(self, database_url: str | None = None) -> None:
        from db.client import ensure_schema

        self.database_url = database_url
        try:
            ensure_schema(database_url=database_url)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to initialize key-value schema: {e}") from e

    def get(self, key: str) -> str | None:
        from db.client import session_scope
        from db.models import KvSlot

        _validate_key(key)
        try:
            with session_scope(database_url=self.database_url) as session:
                row = session.get(KvSlot, key)
                return row.value if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"failed to read slot {key!r}: {e}", key=key) from e

    def set(self, key: str, value: str) -> None:
        from db.client import session_scope
        from db.models import KvSlot

        _validate_key(key)
        try:
            with session_scope(database_url=self.database_url) as session:
                row = session.get(KvSlot, key)
                if row is None:
                    session.add(KvSlot(key=key, value=value))
                else:
                    row.value = value
        except SQLAlchemyError as e:
            raise StorageError(f"failed to write slot {key!r}: {e}", key=key) from e
        _logger.debug("storage:write; key=%s bytes=%d backend=sql", key, len(value))

    def delete(self, key: str) -> None:
        from db.client import session_scope
        from db.models import KvSlot

        _validate_key(key)
        try:
            with session_scope(database_url=self.database_url) as session:
                row = session.get(KvSlot, key)
                if row is not None:
                    session.delete(row)
        except SQLAlchemyError as e:
            raise StorageError(f"failed to delete slot {key!r}: {e}", key=key) from e

    def keys(self) -> list[str]:
        from db.client import session_scope
        from db.models import KvSlot

        try:
            with session_scope(database_url=self.database_url) as session:
                return list(session.scalars(select(KvSlot.key).order_by(KvSlot.key)))
        except SQLAlchemyError as e:
            raise StorageError(f"failed to list slots: {e}") from e


def open_store(
    *,
    database_url: str | None = None,
    data_dir: str | os.PathLike[str] | None = None,
) -> KeyValueStore:
    """Pick a backend.

    An explicit ``database_url`` selects SQL. Otherwise ``DATABASE_URL`` does,
    unless ``data_dir`` was given. The JSON directory store is the fallback.
    """

    url = database_url or (os.getenv("DATABASE_URL") if data_dir is None else None)
    if url:
        _logger.debug("storage:open; backend=sql")
        return SqlKeyValueStore(url)
    store = JsonDirectoryStore(data_dir)
    _logger.debug("storage:open; backend=json root=%s", store.root)
    return store


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonDirectoryStore",
    "SqlKeyValueStore",
    "default_data_dir",
    "open_store",
]
