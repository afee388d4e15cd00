# config.py
import os
from pathlib import Path

APP_TITLE = "File Drop"

UPLOAD_DIR = Path(os.environ.get("STORAGE_PATH", "uploads"))
STAGING_DIR = Path(os.environ.get("STAGING_PATH", "temp_chunks"))
DB_PATH = Path(os.environ.get("DB_PATH", "data/files.db"))
LEGACY_JSON_PATH = Path(os.environ.get("LEGACY_JSON_PATH", "data/files.json"))

# "sqlite" or "json"
METADATA_BACKEND = os.environ.get("METADATA_BACKEND", "sqlite")

MAX_FILE_SIZE = int(os.environ.get("MAX_FILE_SIZE", 50 * 1024 * 1024 * 1024))  # 50 GiB
CHUNK_SIZE_MAX = int(os.environ.get("CHUNK_SIZE_MAX", 64 * 1024 * 1024))       # 64 MiB per chunk
COPY_BUFFER_SIZE = 1024 * 1024

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()


def ensure_dirs(*dirs: Path) -> None:
    """Create storage directories if missing."""
    for d in dirs:
        Path(d).mkdir(parents=True, exist_ok=True)
