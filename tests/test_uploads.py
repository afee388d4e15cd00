"""Tests for FileService: upload lifecycle, metadata operations and deletion."""

import io
import os

import pytest

from errors import DuplicateIdentifierError, IncompleteUploadError, NotFoundError, SessionNotFoundError, UploadStateError
from models import UploadState


class TestSingleShotUpload:
    def test_round_trip(self, service):
        payload = b"\x00\x01binary\xff" * 100
        d = service.upload(io.BytesIO(payload), "data.bin", "application/octet-stream", "first")

        assert d.size == len(payload)
        assert d.path == f"{d.id}.bin"
        assert d.remark == "first"
        descriptor, stream = service.open_download(d.id)
        with stream:
            assert stream.read() == payload
        assert descriptor == d

    def test_zero_byte_file(self, service):
        d = service.upload(b"", "empty.txt", "text/plain")

        assert d.size == 0
        _, stream = service.open_download(d.id)
        with stream:
            assert stream.read() == b""

    def test_strips_client_directories(self, service):
        d = service.upload(b"x", "C:\\Users\\me\\notes.md", "text/markdown")
        assert d.name == "notes.md"
        assert d.path.endswith(".md")

    def test_missing_mime_type_stored_empty(self, service):
        assert service.upload(b"x", "a.dat", None).type == ""

    def test_extension_kept_as_given(self, service):
        d = service.upload(b"int main;", "main.c++", "text/x-c")

        assert d.name == "main.c++"
        assert d.path == f"{d.id}.c++"
        renamed = service.rename(d.id, "prog")
        assert renamed.name == "prog.c++"
        assert os.path.splitext(renamed.name)[1] == os.path.splitext(renamed.path)[1]

    def test_unusable_extension_dropped_from_name_and_path(self, service):
        d = service.upload(b"x", "bad.a\x00b", None)

        assert d.name == "bad"
        assert d.path == d.id

    def test_failed_insert_removes_blob(self, service, monkeypatch):
        def _fail(descriptor):
            raise DuplicateIdentifierError(descriptor.id)

        monkeypatch.setattr(service.store, "insert", _fail)
        with pytest.raises(DuplicateIdentifierError):
            service.upload(b"data", "a.txt", "text/plain")
        assert not service.blobs.root.exists() or list(service.blobs.root.iterdir()) == []


class TestChunkedUpload:
    def test_scenario_aabb(self, service):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 1, b"BB")
        service.push_chunk(upload_id, 0, b"AA")

        d = service.complete_chunked_upload(upload_id, "pair.txt", 4, "text/plain", 2, "r")

        assert d.size == 4
        assert d.name == "pair.txt"
        _, stream = service.open_download(d.id)
        with stream:
            assert stream.read() == b"AABB"
        assert service.get_file(d.id) == d

    def test_extension_kept_as_given(self, service):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 0, b"int main;")

        d = service.complete_chunked_upload(upload_id, "main.c++", None, None, 1)

        assert d.path == f"{d.id}.c++"
        assert d.type == ""
        renamed = service.rename(d.id, "prog")
        assert os.path.splitext(renamed.name)[1] == os.path.splitext(renamed.path)[1] == ".c++"

    def test_size_comes_from_assembled_bytes(self, service):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 0, b"12345")

        d = service.complete_chunked_upload(upload_id, "n.txt", 999, "text/plain", 1)
        assert d.size == 5

    def test_incomplete_creates_no_blob_or_record(self, service):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 0, b"AA")

        with pytest.raises(IncompleteUploadError):
            service.complete_chunked_upload(upload_id, "x.bin", 6, "application/octet-stream", 3)

        assert service.list_files() == []
        assert not service.blobs.root.exists() or list(service.blobs.root.iterdir()) == []
        assert service.upload_status(upload_id)["state"] == UploadState.RECEIVING.value

    def test_retry_after_incomplete(self, service):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 1, b"BB")
        with pytest.raises(IncompleteUploadError):
            service.complete_chunked_upload(upload_id, "x.txt", 4, "text/plain", 2)

        service.push_chunk(upload_id, 0, b"AA")
        d = service.complete_chunked_upload(upload_id, "x.txt", 4, "text/plain", 2)
        assert d.size == 4

    def test_status_reports_received(self, service):
        upload_id = service.initiate_chunked_upload()
        assert service.upload_status(upload_id) == {"upload_id": upload_id, "state": "initiated", "received": []}

        service.push_chunk(upload_id, 2, b"c")
        service.push_chunk(upload_id, 0, b"a")
        status = service.upload_status(upload_id)
        assert status["state"] == "receiving"
        assert status["received"] == [0, 2]

    def test_push_rejected_while_finalizing(self, service):
        upload_id = service.initiate_chunked_upload()
        service._sessions[upload_id] = UploadState.FINALIZING

        with pytest.raises(UploadStateError):
            service.push_chunk(upload_id, 0, b"x")
        with pytest.raises(UploadStateError):
            service.complete_chunked_upload(upload_id, "x.txt", 1, "text/plain", 1)

    def test_completed_session_is_gone(self, service):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 0, b"x")
        service.complete_chunked_upload(upload_id, "x.txt", 1, "text/plain", 1)

        with pytest.raises(SessionNotFoundError):
            service.push_chunk(upload_id, 1, b"y")

    def test_abandon(self, service):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 0, b"x")

        service.abandon_upload(upload_id)
        with pytest.raises(SessionNotFoundError):
            service.upload_status(upload_id)
        assert service.list_files() == []

    def test_staging_left_from_previous_process_is_receiving(self, service, assembler):
        upload_id = assembler.begin_session()
        assembler.write_chunk(upload_id, 0, b"AA")

        service.push_chunk(upload_id, 1, b"BB")
        d = service.complete_chunked_upload(upload_id, "old.txt", 4, "text/plain", 2)
        assert d.size == 4

    def test_failed_insert_orphans_blob(self, service, monkeypatch):
        upload_id = service.initiate_chunked_upload()
        service.push_chunk(upload_id, 0, b"data")

        def _fail(descriptor):
            raise DuplicateIdentifierError(descriptor.id)

        monkeypatch.setattr(service.store, "insert", _fail)
        with pytest.raises(DuplicateIdentifierError):
            service.complete_chunked_upload(upload_id, "a.txt", 4, "text/plain", 1)

        assert len(list(service.blobs.root.iterdir())) == 1
        assert service.list_files() == []


class TestMetadataOperations:
    def test_rename_normalises_extension(self, service):
        d = service.upload(b"x", "draft.docx", "application/msword")

        assert service.rename(d.id, "final").name == "final.docx"
        assert service.rename(d.id, "final.docx").name == "final.docx"

    def test_rename_empty_rejected(self, service):
        d = service.upload(b"x", "a.txt", "text/plain")
        with pytest.raises(ValueError):
            service.rename(d.id, "  ")
        assert service.get_file(d.id).name == "a.txt"

    def test_rename_missing(self, service):
        with pytest.raises(NotFoundError):
            service.rename("nope", "x")

    def test_update_remark(self, service):
        d = service.upload(b"x", "a.txt", "text/plain", "old")
        assert service.update_remark(d.id, "new").remark == "new"
        assert service.get_file(d.id).name == "a.txt"

    def test_update_remark_missing(self, service):
        with pytest.raises(NotFoundError):
            service.update_remark("nope", "x")


class TestDelete:
    def test_delete_removes_blob_and_record(self, service):
        d = service.upload(b"x", "a.txt", "text/plain")

        service.delete(d.id)
        assert not service.blobs.exists(d.path)
        with pytest.raises(NotFoundError):
            service.get_file(d.id)

    def test_delete_with_missing_blob_still_removes_record(self, service):
        d = service.upload(b"x", "a.txt", "text/plain")
        (service.blobs.root / d.path).unlink()

        service.delete(d.id)
        assert service.list_files() == []

    def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            service.delete("nope")

    def test_delete_many(self, service):
        a = service.upload(b"a", "a.txt", "text/plain")
        c = service.upload(b"c", "c.txt", "text/plain")
        keep = service.upload(b"k", "k.txt", "text/plain")

        assert service.delete_many([a.id, "b-missing", c.id]) == 2
        assert [d.id for d in service.list_files()] == [keep.id]
        assert not service.blobs.exists(a.path)
        assert not service.blobs.exists(c.path)
        assert service.blobs.exists(keep.path)
        with pytest.raises(NotFoundError):
            service.get_file("b-missing")

    def test_delete_many_empty(self, service):
        assert service.delete_many([]) == 0


def test_download_missing(service):
    with pytest.raises(NotFoundError):
        service.open_download("nope")


def test_disk_usage(service):
    assert service.disk_usage().total > 0
