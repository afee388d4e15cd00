"""Filesystem blob store: one file per stored upload, named ``<id><ext>``."""
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Union

from config import COPY_BUFFER_SIZE
from errors import IOFailureError, NotFoundError
from logging_config import get_logger
from models import DiskUsage

logger = get_logger(__name__)


class BlobStore:
    def __init__(self, root: Path):
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        if not name or name != os.path.basename(name) or "\\" in name or name in (".", ".."):
            raise ValueError(f"invalid blob name: {name!r}")
        return self.root / name

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    @contextmanager
    def writer(self, name: str) -> Iterator[BinaryIO]:
        """
        Open a new blob for sequential writing.

        Bytes go to a temporary sibling file that is fsynced and renamed over the
        final name when the block exits cleanly; on error the temporary file is
        removed and nothing appears under ``name``.
        """
        final_path = self.path_for(name)
        tmp_path = final_path.with_name(final_path.name + ".assembling")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            out = open(tmp_path, "wb")
        except OSError as e:
            raise IOFailureError(f"cannot create blob {name}: {e}") from e
        try:
            with out:
                yield out
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_path, final_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def write(self, name: str, data: Union[bytes, BinaryIO]) -> int:
        """Create or overwrite a blob; returns the number of bytes written."""
        written = 0
        try:
            with self.writer(name) as out:
                if isinstance(data, (bytes, bytearray, memoryview)):
                    out.write(data)
                    written = len(data)
                else:
                    while True:
                        buf = data.read(COPY_BUFFER_SIZE)
                        if not buf:
                            break
                        out.write(buf)
                        written += len(buf)
        except OSError as e:
            raise IOFailureError(f"failed to write blob {name}: {e}") from e
        return written

    def open_stream(self, name: str) -> BinaryIO:
        try:
            return open(self.path_for(name), "rb")
        except FileNotFoundError as e:
            raise NotFoundError(name) from e

    def delete(self, name: str) -> bool:
        """Remove a blob. Failures are logged and reported as False, never raised."""
        try:
            self.path_for(name).unlink()
            return True
        except FileNotFoundError:
            logger.warning("Blob %s already absent", name)
            return False
        except (OSError, ValueError) as e:
            logger.error("Failed to delete blob %s: %s", name, e)
            return False

    def disk_usage(self) -> DiskUsage:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            usage = shutil.disk_usage(self.root)
        except OSError as e:
            logger.error("Failed to get disk space for %s: %s", self.root, e)
            return DiskUsage()
        used = usage.total - usage.free
        percent = (used / usage.total) * 100 if usage.total else 0.0
        return DiskUsage(total=usage.total, used=used, free=usage.free, percent=percent)
