"""Utility helpers for Cloud Drive operations."""

from __future__ import annotations

import mimetypes
import os
from datetime import datetime, timezone


def detect_mime_type(path: str | os.PathLike[str]) -> str:
    """Best-effort MIME type detection."""

    mime, _ = mimetypes.guess_type(str(path))
    return mime or "application/octet-stream"


def parse_datetime(value: str | None) -> datetime | None:
    """Parse ISO-8601 timestamps returned by the Cloud Drive API.

    Values without an offset are taken as UTC.
    """

    if not value:
        return None
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S"):
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


__all__ = [
    "detect_mime_type",
    "parse_datetime",
]
