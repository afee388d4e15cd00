"""Per-upload staging areas and index-ordered assembly of staged chunks."""
import os
import shutil
import threading
import time
from pathlib import Path
from typing import BinaryIO, List, Union

from blobs import BlobStore
from config import COPY_BUFFER_SIZE
from errors import IncompleteUploadError, IOFailureError, SessionNotFoundError
from logging_config import get_logger
from utils import new_id

logger = get_logger(__name__)

PART_SUFFIX = ".part"
TRASH_DIR_NAME = "_trash"


class ChunkAssembler:
    def __init__(self, staging_dir: Path, blobs: BlobStore):
        self.staging_dir = Path(staging_dir)
        self.blobs = blobs

    def session_dir(self, upload_id: str) -> Path:
        if not upload_id or upload_id != os.path.basename(upload_id) or upload_id.startswith((".", "_")):
            raise SessionNotFoundError(upload_id)
        return self.staging_dir / upload_id

    def has_session(self, upload_id: str) -> bool:
        try:
            return self.session_dir(upload_id).is_dir()
        except SessionNotFoundError:
            return False

    def _require_session(self, upload_id: str) -> Path:
        chunk_dir = self.session_dir(upload_id)
        if not chunk_dir.is_dir():
            raise SessionNotFoundError(upload_id)
        return chunk_dir

    def begin_session(self) -> str:
        upload_id = new_id()
        try:
            (self.staging_dir / upload_id).mkdir(parents=True)
        except OSError as e:
            raise IOFailureError(f"cannot create staging area: {e}") from e
        logger.info("Started upload session %s", upload_id)
        return upload_id

    def write_chunk(self, upload_id: str, index: int, data: Union[bytes, BinaryIO]) -> int:
        """
        Persist one chunk. Re-writing an index replaces it.

        The chunk is written to a uniquely named temporary file and renamed into
        place, so a concurrent finalize sees either the whole chunk or none of it.

        Returns:
            Number of bytes stored for this chunk
        """
        if index < 0:
            raise ValueError(f"chunk index must be >= 0, got {index}")
        chunk_dir = self._require_session(upload_id)
        final_path = chunk_dir / f"{index:08d}{PART_SUFFIX}"
        tmp_path = chunk_dir / f".{index:08d}-{new_id()}.tmp"

        written = 0
        try:
            with open(tmp_path, "wb") as f:
                if isinstance(data, (bytes, bytearray, memoryview)):
                    f.write(data)
                    written = len(data)
                else:
                    while True:
                        buf = data.read(COPY_BUFFER_SIZE)
                        if not buf:
                            break
                        f.write(buf)
                        written += len(buf)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, final_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            if not chunk_dir.is_dir():
                raise SessionNotFoundError(upload_id) from e
            raise IOFailureError(f"failed to write chunk {index} of {upload_id}: {e}") from e

        logger.debug("Stored chunk %d of %s (%d bytes)", index, upload_id, written)
        return written

    def received_indices(self, upload_id: str) -> List[int]:
        chunk_dir = self._require_session(upload_id)
        got = []
        for p in chunk_dir.glob(f"*{PART_SUFFIX}"):
            try:
                got.append(int(p.stem))
            except ValueError:
                continue
        return sorted(got)

    def finalize(self, upload_id: str, total_chunks: int, blob_name: str) -> int:
        """
        Concatenate chunks ``0..total_chunks-1`` in index order into ``blob_name``.

        Raises IncompleteUploadError (and writes nothing) when any index is missing.
        On success the staging area is removed.

        Returns:
            Number of bytes in the assembled blob
        """
        if total_chunks < 0:
            raise ValueError(f"total_chunks must be >= 0, got {total_chunks}")
        chunk_dir = self._require_session(upload_id)

        missing = self._missing(chunk_dir, total_chunks)
        if missing:
            raise IncompleteUploadError(upload_id, missing, total_chunks)

        written = 0
        assembly_start = time.time()
        try:
            with self.blobs.writer(blob_name) as out:
                for i in range(total_chunks):
                    with open(chunk_dir / f"{i:08d}{PART_SUFFIX}", "rb") as f:
                        while True:
                            buf = f.read(COPY_BUFFER_SIZE)
                            if not buf:
                                break
                            out.write(buf)
                            written += len(buf)
        except FileNotFoundError as e:
            # a chunk vanished between the completeness check and the copy
            raise IncompleteUploadError(upload_id, self._missing(chunk_dir, total_chunks), total_chunks) from e
        except OSError as e:
            raise IOFailureError(f"failed to assemble {upload_id}: {e}") from e
        logger.info(
            "Assembled %s from %d chunks into %s (%d bytes, %.3fs)",
            upload_id, total_chunks, blob_name, written, time.time() - assembly_start,
        )

        self._discard(upload_id, chunk_dir)
        return written

    def _missing(self, chunk_dir: Path, total_chunks: int) -> List[int]:
        return [i for i in range(total_chunks) if not (chunk_dir / f"{i:08d}{PART_SUFFIX}").is_file()]

    def abandon(self, upload_id: str) -> None:
        chunk_dir = self._require_session(upload_id)
        self._discard(upload_id, chunk_dir)
        logger.info("Abandoned upload session %s", upload_id)

    def _discard(self, upload_id: str, chunk_dir: Path) -> None:
        """Move the staging area aside and delete it in the background."""
        trash_dir = self.staging_dir / TRASH_DIR_NAME
        to_delete = trash_dir / f"{upload_id}-{int(time.time())}"
        try:
            trash_dir.mkdir(exist_ok=True)
            os.replace(str(chunk_dir), str(to_delete))
        except OSError as e:
            logger.warning("Could not move %s to trash (%s), deleting in place", chunk_dir, e)
            to_delete = chunk_dir

        def _cleanup_async(path: Path):
            try:
                shutil.rmtree(path)
            except OSError as e:
                logger.error("Failed to remove staging area %s: %s", path, e)

        if to_delete is chunk_dir:
            _cleanup_async(chunk_dir)
        else:
            threading.Thread(target=_cleanup_async, args=(to_delete,), daemon=True).start()
