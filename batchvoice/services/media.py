# batchvoice/services/media.py
import re
from datetime import datetime, timezone
from pathlib import PurePath

from batchvoice.app.domain.errors import UnsupportedMediaError

ALLOWED_CONTENT_TYPES = {
    "audio/mp3",
    "audio/wav",
    "audio/m4a",
    "audio/flac",
    "audio/mpeg",
    "video/mp4",
    "video/avi",
    "video/mov",
    "video/mkv",
    "video/webm",
}

ALLOWED_EXTENSIONS = re.compile(r"\.(mp3|wav|m4a|flac|mp4|avi|mov|mkv|webm)$", re.IGNORECASE)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def is_supported_media(filename: str, content_type: str = "") -> bool:
    """Accepts a file when either its MIME type or its extension is allowed."""
    return content_type in ALLOWED_CONTENT_TYPES or bool(ALLOWED_EXTENSIONS.search(filename or ""))


def validate_media(filename: str, content_type: str = "") -> None:
    if not is_supported_media(filename, content_type):
        raise UnsupportedMediaError(filename, content_type)


def safe_filename(original_name: str, suffix: str = "", extension: str = "", now: datetime | None = None) -> str:
    """Lowercase ascii stem with a compact UTC timestamp, e.g. my_talk_processed_20240101T120000."""
    stem = PurePath(original_name).stem or "file"
    name = _UNSAFE_CHARS.sub("_", stem).lower()
    if suffix:
        name = f"{name}_{suffix}"
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S")
    name = f"{name}_{stamp}"
    if extension:
        name += extension if extension.startswith(".") else f".{extension}"
    return name


def format_file_size(size_bytes: int) -> str:
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"


def format_duration(seconds: float | None) -> str:
    if not seconds:
        return "0:00"
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
