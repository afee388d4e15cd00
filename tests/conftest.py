"""Shared pytest fixtures for all tests."""

import pytest

from app import create_app
from blobs import BlobStore
from chunks import ChunkAssembler
from db import SqliteMetadataStore
from legacy import JsonMetadataStore
from models import FileDescriptor
from uploads import FileService
from utils import now_iso


@pytest.fixture
def make_descriptor():
    """
    Build FileDescriptor instances with sensible defaults.

    Returns:
        Factory accepting field overrides
    """
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        file_id = overrides.pop("id", f"file-{counter['n']}")
        fields = dict(
            id=file_id,
            name=f"doc{counter['n']}.txt",
            size=10,
            type="text/plain",
            upload_date=now_iso(),
            remark="",
            path=f"{file_id}.txt",
        )
        fields.update(overrides)
        return FileDescriptor(**fields)

    return _make


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteMetadataStore(tmp_path / "data" / "files.db")
    store.init()
    return store


@pytest.fixture
def json_store(tmp_path):
    return JsonMetadataStore(tmp_path / "data" / "store.json")


@pytest.fixture(params=["sqlite", "json"])
def store(request, sqlite_store, json_store):
    """Each metadata store implementation in turn."""
    return sqlite_store if request.param == "sqlite" else json_store


@pytest.fixture
def blobs(tmp_path):
    return BlobStore(tmp_path / "uploads")


@pytest.fixture
def assembler(tmp_path, blobs):
    return ChunkAssembler(tmp_path / "staging", blobs)


@pytest.fixture
def service(sqlite_store, blobs, assembler):
    return FileService(sqlite_store, blobs, assembler)


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "UPLOAD_DIR": tmp_path / "uploads",
        "STAGING_DIR": tmp_path / "staging",
        "DB_PATH": tmp_path / "data" / "files.db",
        "LEGACY_JSON_PATH": tmp_path / "data" / "files.json",
        "CHUNK_SIZE_MAX": 1024,
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()
