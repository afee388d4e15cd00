# app.py
import os
from typing import Any, Mapping, Optional

from flask import Flask

import config
from blobs import BlobStore
from chunks import ChunkAssembler
from db import SqliteMetadataStore
from legacy import JsonMetadataStore, migrate_from_legacy
from logging_config import setup_logging
from routes import register_error_handlers, register_routes
from uploads import FileService

logger = setup_logging("filedrop", config.LOG_LEVEL)


def build_store(cfg: Mapping[str, Any]):
    """Construct the configured metadata store, importing legacy records on first use."""
    backend = cfg["METADATA_BACKEND"]
    if backend == "json":
        return JsonMetadataStore(cfg["LEGACY_JSON_PATH"])
    if backend != "sqlite":
        raise ValueError(f"unknown METADATA_BACKEND {backend!r}")
    store = SqliteMetadataStore(cfg["DB_PATH"])
    store.init()
    migrate_from_legacy(store, cfg["LEGACY_JSON_PATH"])
    return store


def create_app(overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config)
    if overrides:
        app.config.update(overrides)
    # single-shot uploads may be as large as a whole file; chunk routes check CHUNK_SIZE_MAX themselves
    if app.config.get("MAX_CONTENT_LENGTH") is None:
        app.config["MAX_CONTENT_LENGTH"] = app.config["MAX_FILE_SIZE"] + 1024 * 1024

    config.ensure_dirs(app.config["UPLOAD_DIR"], app.config["STAGING_DIR"])

    store = build_store(app.config)
    blobs = BlobStore(app.config["UPLOAD_DIR"])
    assembler = ChunkAssembler(app.config["STAGING_DIR"], blobs)
    app.extensions["filedrop"] = FileService(store, blobs, assembler)

    register_routes(app)
    register_error_handlers(app)
    return app


if __name__ == "__main__":
    app = create_app()
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "5000"))
    logger.info("Starting %s on http://%s:%s", config.APP_TITLE, host, port)
    app.run(host=host, port=port, threaded=True)
