# db.py
"""Metadata store interface and its SQLite implementation."""
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from errors import DuplicateIdentifierError, NotFoundError
from logging_config import get_logger
from models import FileDescriptor
from utils import normalize_rename

logger = get_logger(__name__)


class MetadataStore(ABC):
    """Durable mapping from file id to descriptor."""

    @abstractmethod
    def insert(self, descriptor: FileDescriptor) -> None:
        ...

    @abstractmethod
    def get(self, file_id: str) -> FileDescriptor:
        ...

    @abstractmethod
    def list_all(self) -> List[FileDescriptor]:
        ...

    @abstractmethod
    def update(self, file_id: str, name: Optional[str] = None, remark: Optional[str] = None) -> FileDescriptor:
        """Rename and/or re-annotate one record; a new name keeps the current extension."""
        ...

    @abstractmethod
    def delete_many(self, file_ids: Iterable[str]) -> int:
        """Remove all matching records atomically and return how many existed."""
        ...

    @abstractmethod
    def count(self) -> int:
        ...

    def delete(self, file_id: str) -> None:
        if self.delete_many([file_id]) == 0:
            raise NotFoundError(file_id)


def _row_to_descriptor(row: sqlite3.Row) -> FileDescriptor:
    return FileDescriptor(
        id=row["id"],
        name=row["name"],
        size=int(row["size"]),
        type=row["type"],
        upload_date=row["upload_date"],
        remark=row["remark"],
        path=row["path"],
    )


class SqliteMetadataStore(MetadataStore):
    """One row per file in a WAL-journaled SQLite database; each mutation is one transaction."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._lock = threading.Lock()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success, rolls back on error and always closes."""
        con = sqlite3.connect(str(self.db_path), timeout=30)
        con.row_factory = sqlite3.Row
        try:
            yield con
            con.commit()
        except Exception:
            con.rollback()
            raise
        finally:
            con.close()

    def init(self) -> None:
        """Create the schema (idempotent)."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as con:
            con.execute("PRAGMA journal_mode=WAL")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS files (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    type TEXT NOT NULL,
                    upload_date TEXT NOT NULL,
                    remark TEXT,
                    path TEXT NOT NULL
                )
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_files_upload_date ON files (upload_date)")

    def insert(self, descriptor: FileDescriptor) -> None:
        with self._lock, self._connect() as con:
            try:
                con.execute(
                    """
                    INSERT INTO files (id, name, size, type, upload_date, remark, path)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        descriptor.id,
                        descriptor.name,
                        descriptor.size,
                        descriptor.type,
                        descriptor.upload_date,
                        descriptor.remark,
                        descriptor.path,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateIdentifierError(descriptor.id) from e

    def get(self, file_id: str) -> FileDescriptor:
        with self._connect() as con:
            row = con.execute("SELECT * FROM files WHERE id=?", (file_id,)).fetchone()
        if row is None:
            raise NotFoundError(file_id)
        return _row_to_descriptor(row)

    def list_all(self) -> List[FileDescriptor]:
        with self._connect() as con:
            rows = con.execute("SELECT * FROM files ORDER BY upload_date DESC").fetchall()
        return [_row_to_descriptor(r) for r in rows]

    def update(self, file_id: str, name: Optional[str] = None, remark: Optional[str] = None) -> FileDescriptor:
        with self._lock, self._connect() as con:
            row = con.execute("SELECT * FROM files WHERE id=?", (file_id,)).fetchone()
            if row is None:
                raise NotFoundError(file_id)
            current = _row_to_descriptor(row)
            if name is not None:
                current.name = normalize_rename(current.name, name)
            if remark is not None:
                current.remark = remark
            con.execute(
                "UPDATE files SET name=?, remark=? WHERE id=?",
                (current.name, current.remark, file_id),
            )
        return current

    def delete_many(self, file_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return 0
        placeholders = ",".join("?" for _ in ids)
        with self._lock, self._connect() as con:
            cur = con.execute(f"DELETE FROM files WHERE id IN ({placeholders})", ids)
            removed = cur.rowcount
        logger.info("Deleted %d of %d requested file records", removed, len(ids))
        return removed

    def count(self) -> int:
        with self._connect() as con:
            return int(con.execute("SELECT COUNT(*) FROM files").fetchone()[0])
