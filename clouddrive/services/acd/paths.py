"""Helpers for Cloud Drive pseudo-paths and filter expressions."""

from __future__ import annotations

ROOT_ALIASES = {"root", "/", ""}


def split_drive_path(path: str | None) -> list[str]:
    """Split a ``/`` separated drive path into name segments.

    Empty segments are dropped, so ``"/a//b/"`` yields ``["a", "b"]``.
    """

    if path is None:
        return []
    stripped = path.strip()
    if stripped in ROOT_ALIASES:
        return []
    return [segment.strip() for segment in stripped.split("/") if segment.strip()]


def normalize_item_name(name: str) -> str:
    """Sanitize drive item names by trimming whitespace."""

    normalized = name.strip()
    if not normalized:
        raise ValueError("Drive item name must not be empty")
    return normalized


def quote_filter_value(value: str) -> str:
    """Quote a value for use in a filter clause, escaping ``\\`` and ``"``."""

    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def filter_clause(key: str, value: str) -> str:
    return f"{key}:{quote_filter_value(value)}"


def join_filters(*clauses: str | None) -> str:
    """Combine filter clauses with ``AND``, skipping empty ones."""

    return " AND ".join(clause for clause in clauses if clause)


__all__ = [
    "split_drive_path",
    "normalize_item_name",
    "quote_filter_value",
    "filter_clause",
    "join_filters",
]
