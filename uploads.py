"""Upload orchestration and the file operations exposed to the HTTP layer."""
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple, Union

from blobs import BlobStore
from chunks import ChunkAssembler
from db import MetadataStore
from errors import IncompleteUploadError, NotFoundError, SessionNotFoundError, UploadStateError
from logging_config import get_logger
from models import DiskUsage, FileDescriptor, UploadState
from utils import display_name, new_id, now_iso, storable_name

logger = get_logger(__name__)

DELETE_WORKERS = 8


class FileService:
    """
    Coordinates the metadata store, blob store and chunk assembler.

    Chunked uploads move through INITIATED -> RECEIVING -> FINALIZING -> COMPLETE,
    or to ABANDONED from INITIATED/RECEIVING. Session state lives in memory only.
    COMPLETE has no enum member: a finished session is dropped from the map, so
    later calls on it raise SessionNotFoundError. ABANDONED is held only while the
    staging area is removed. A staging directory left over from an earlier
    process counts as RECEIVING.

    Sessions that are never completed or abandoned keep their map entry and
    their staging directory for the life of the process; nothing sweeps them.
    """

    def __init__(self, store: MetadataStore, blobs: BlobStore, assembler: ChunkAssembler):
        self.store = store
        self.blobs = blobs
        self.assembler = assembler
        self._sessions: Dict[str, UploadState] = {}
        self._sessions_lock = threading.Lock()

    # single-shot

    def upload(
        self,
        data: Union[bytes, BinaryIO],
        name: str,
        mime_type: Optional[str] = None,
        remark: str = "",
    ) -> FileDescriptor:
        name, ext = storable_name(name)
        file_id = new_id()
        blob_name = f"{file_id}{ext}"
        size = self.blobs.write(blob_name, data)

        descriptor = FileDescriptor(
            id=file_id,
            name=name,
            size=size,
            type=mime_type or "",
            upload_date=now_iso(),
            remark=remark or "",
            path=blob_name,
        )
        try:
            self.store.insert(descriptor)
        except Exception:
            logger.error("Failed to register %s, removing blob %s", name, blob_name)
            self.blobs.delete(blob_name)
            raise
        logger.info("Stored %s as %s (%d bytes)", name, file_id, size)
        return descriptor

    # chunked

    def _state(self, upload_id: str) -> UploadState:
        state = self._sessions.get(upload_id)
        if state is None:
            if not self.assembler.has_session(upload_id):
                raise SessionNotFoundError(upload_id)
            state = UploadState.RECEIVING
        return state

    def _transition(self, upload_id: str, allowed: Tuple[UploadState, ...], new_state: UploadState) -> None:
        with self._sessions_lock:
            state = self._state(upload_id)
            if state not in allowed:
                raise UploadStateError(f"upload {upload_id} is {state.value}")
            self._sessions[upload_id] = new_state

    def initiate_chunked_upload(self) -> str:
        upload_id = self.assembler.begin_session()
        with self._sessions_lock:
            self._sessions[upload_id] = UploadState.INITIATED
        return upload_id

    def push_chunk(self, upload_id: str, index: int, data: Union[bytes, BinaryIO]) -> int:
        self._transition(upload_id, (UploadState.INITIATED, UploadState.RECEIVING), UploadState.RECEIVING)
        return self.assembler.write_chunk(upload_id, index, data)

    def upload_status(self, upload_id: str) -> dict:
        with self._sessions_lock:
            state = self._state(upload_id)
        received = self.assembler.received_indices(upload_id)
        return {"upload_id": upload_id, "state": state.value, "received": received}

    def complete_chunked_upload(
        self,
        upload_id: str,
        name: str,
        size: Optional[int],
        mime_type: Optional[str],
        total_chunks: int,
        remark: str = "",
    ) -> FileDescriptor:
        """
        Assemble the staged chunks into a blob and register its descriptor.

        If the metadata insert fails after assembly the blob is left on disk
        without a record; this is logged and the error propagates.
        """
        self._transition(upload_id, (UploadState.INITIATED, UploadState.RECEIVING), UploadState.FINALIZING)

        name, ext = storable_name(name)
        file_id = new_id()
        blob_name = f"{file_id}{ext}"
        try:
            written = self.assembler.finalize(upload_id, total_chunks, blob_name)
        except IncompleteUploadError:
            with self._sessions_lock:
                self._sessions[upload_id] = UploadState.RECEIVING
            raise
        except Exception:
            with self._sessions_lock:
                if self.assembler.has_session(upload_id):
                    self._sessions[upload_id] = UploadState.RECEIVING
                else:
                    self._sessions.pop(upload_id, None)
            raise

        with self._sessions_lock:
            self._sessions.pop(upload_id, None)

        if size is not None and size != written:
            logger.warning("Upload %s declared %d bytes but assembled %d", upload_id, size, written)

        descriptor = FileDescriptor(
            id=file_id,
            name=name,
            size=written,
            type=mime_type or "",
            upload_date=now_iso(),
            remark=remark or "",
            path=blob_name,
        )
        try:
            self.store.insert(descriptor)
        except Exception:
            logger.error("Failed to register upload %s; blob %s is orphaned", upload_id, blob_name)
            raise
        logger.info("Completed upload %s as %s (%s, %d bytes)", upload_id, file_id, name, written)
        return descriptor

    def abandon_upload(self, upload_id: str) -> None:
        self._transition(upload_id, (UploadState.INITIATED, UploadState.RECEIVING), UploadState.ABANDONED)
        try:
            self.assembler.abandon(upload_id)
        finally:
            with self._sessions_lock:
                self._sessions.pop(upload_id, None)

    # metadata

    def list_files(self) -> List[FileDescriptor]:
        return self.store.list_all()

    def get_file(self, file_id: str) -> FileDescriptor:
        return self.store.get(file_id)

    def rename(self, file_id: str, new_name: str) -> FileDescriptor:
        return self.update_file(file_id, name=new_name or "")

    def update_remark(self, file_id: str, remark: str) -> FileDescriptor:
        return self.store.update(file_id, remark=remark or "")

    def update_file(self, file_id: str, name: Optional[str] = None, remark: Optional[str] = None) -> FileDescriptor:
        """Apply a rename and a remark change to one record in a single store update."""
        if name is not None:
            if not name.strip():
                raise ValueError("new name must not be empty")
            name = display_name(name)
        return self.store.update(file_id, name=name, remark=remark)

    def delete(self, file_id: str) -> None:
        descriptor = self.store.get(file_id)
        self.blobs.delete(descriptor.path)
        self.store.delete(file_id)
        logger.info("Deleted %s (%s)", file_id, descriptor.name)

    def delete_many(self, file_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return 0
        found = []
        for file_id in ids:
            try:
                found.append(self.store.get(file_id))
            except NotFoundError:
                continue
        if found:
            with ThreadPoolExecutor(max_workers=min(DELETE_WORKERS, len(found))) as pool:
                list(pool.map(lambda d: self.blobs.delete(d.path), found))
        return self.store.delete_many(ids)

    # content

    def open_download(self, file_id: str) -> Tuple[FileDescriptor, BinaryIO]:
        descriptor = self.store.get(file_id)
        return descriptor, self.blobs.open_stream(descriptor.path)

    def disk_usage(self) -> DiskUsage:
        return self.blobs.disk_usage()
