# utils.py
import os
import uuid
from datetime import datetime, timezone
from typing import Tuple

MAX_EXTENSION_BYTES = 64


def new_id() -> str:
    """Opaque server-side identifier for files and upload sessions."""
    return uuid.uuid4().hex


def display_name(name: str) -> str:
    """Strip client directory components; fall back to a generated name when nothing is left."""
    base = (name or "").replace("\\", "/").split("/")[-1].strip()
    return base[:255] if base else f"upload-{new_id()}"


def blob_extension(name: str) -> str:
    """Extension of a user file name exactly as given, or "" when it cannot be part of a blob name."""
    ext = os.path.splitext(name or "")[1]
    if not ext or "\x00" in ext or "/" in ext or "\\" in ext:
        return ""
    try:
        if len(ext.encode("utf-8")) > MAX_EXTENSION_BYTES:
            return ""
    except UnicodeEncodeError:
        return ""
    return ext


def storable_name(name: str) -> Tuple[str, str]:
    """
    Split a display name into the name to store and the blob extension.

    A name whose extension cannot be used on disk is stored without it, so the
    stored name and the blob name always end in the same extension.
    """
    name = display_name(name)
    ext = blob_extension(name)
    if ext != os.path.splitext(name)[1]:
        name = os.path.splitext(name)[0] or f"upload-{new_id()}"
    return name, ext


def normalize_rename(current_name: str, new_name: str) -> str:
    """Keep the original extension: append it when the new name drops or changes it."""
    old_ext = os.path.splitext(current_name)[1]
    new_ext = os.path.splitext(new_name)[1]
    if not new_ext or new_ext != old_ext:
        return new_name + old_ext
    return new_name


def now_iso() -> str:
    """UTC ISO timestamp with millisecond precision and trailing Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
