"""Flat JSON metadata store and the one-time import into the SQLite store."""
import json
import os
import threading
from pathlib import Path
from typing import Iterable, List, Optional

from db import MetadataStore
from errors import DuplicateIdentifierError, NotFoundError
from logging_config import get_logger
from models import FileDescriptor
from utils import normalize_rename

logger = get_logger(__name__)


class JsonMetadataStore(MetadataStore):
    """
    All descriptors in one JSON array, rewritten wholesale on every mutation.

    Every mutation is a read-modify-write of the entire file under a single writer
    lock; without the lock two concurrent writers would lose updates. The lock is
    per process, so two processes sharing one file are not supported.
    """

    def __init__(self, json_path: Path):
        self.json_path = Path(json_path)
        self._lock = threading.Lock()

    def exists(self) -> bool:
        return self.json_path.is_file()

    def read_raw(self) -> List[dict]:
        if not self.json_path.exists():
            return []
        with open(self.json_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{self.json_path} does not hold a JSON array")
        return data

    def _read(self) -> List[FileDescriptor]:
        return [FileDescriptor.from_dict(d) for d in self.read_raw()]

    def _write(self, records: List[FileDescriptor]) -> None:
        self.json_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.json_path.with_suffix(self.json_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in records], f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.json_path)

    def insert(self, descriptor: FileDescriptor) -> None:
        with self._lock:
            records = self._read()
            if any(r.id == descriptor.id for r in records):
                raise DuplicateIdentifierError(descriptor.id)
            records.append(descriptor)
            self._write(records)

    def get(self, file_id: str) -> FileDescriptor:
        for r in self._read():
            if r.id == file_id:
                return r
        raise NotFoundError(file_id)

    def list_all(self) -> List[FileDescriptor]:
        return self._read()

    def update(self, file_id: str, name: Optional[str] = None, remark: Optional[str] = None) -> FileDescriptor:
        with self._lock:
            records = self._read()
            for r in records:
                if r.id == file_id:
                    if name is not None:
                        r.name = normalize_rename(r.name, name)
                    if remark is not None:
                        r.remark = remark
                    self._write(records)
                    return r
        raise NotFoundError(file_id)

    def delete_many(self, file_ids: Iterable[str]) -> int:
        wanted = set(file_ids)
        if not wanted:
            return 0
        with self._lock:
            records = self._read()
            kept = [r for r in records if r.id not in wanted]
            removed = len(records) - len(kept)
            if removed:
                self._write(kept)
        return removed

    def count(self) -> int:
        return len(self._read())


def migrate_from_legacy(store: MetadataStore, legacy_path: Path) -> int:
    """
    Copy records from the legacy JSON file into ``store``.

    Runs only when the store is empty and the legacy file exists, so it is safe to
    call on every start. A record that fails to import is logged and skipped.

    Returns:
        Number of records imported
    """
    legacy = JsonMetadataStore(legacy_path)
    if not legacy.exists():
        return 0
    if store.count() > 0:
        logger.debug("Metadata store not empty, skipping legacy import from %s", legacy_path)
        return 0

    try:
        raw_records = legacy.read_raw()
    except (OSError, ValueError) as e:
        logger.error("Failed to read legacy metadata from %s: %s", legacy_path, e)
        return 0

    if not raw_records:
        return 0

    logger.info("Migrating %d files from %s", len(raw_records), legacy_path)
    imported = 0
    for raw in raw_records:
        try:
            store.insert(FileDescriptor.from_dict(raw))
            imported += 1
        except Exception as e:
            logger.error("Failed to import legacy record %r: %s", raw.get("id") if isinstance(raw, dict) else raw, e)
    logger.info("Migration complete: %d of %d records imported", imported, len(raw_records))
    return imported
