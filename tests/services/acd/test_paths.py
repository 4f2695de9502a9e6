from __future__ import annotations

import pytest

from clouddrive.services.acd.paths import (
    filter_clause,
    join_filters,
    normalize_item_name,
    quote_filter_value,
    split_drive_path,
)


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/", []),
        ("root", []),
        (None, []),
        ("/Documents/2015/", ["Documents", "2015"]),
        ("a//b", ["a", "b"]),
    ],
)
def test_split_drive_path(path: str | None, expected: list[str]) -> None:
    assert split_drive_path(path) == expected


def test_quote_filter_value_escapes_quotes_and_backslashes() -> None:
    assert quote_filter_value('say "hi"') == '"say \\"hi\\""'
    assert quote_filter_value("C:\\temp") == '"C:\\\\temp"'
    assert quote_filter_value("plain name.txt") == '"plain name.txt"'


def test_join_filters_skips_empty_clauses() -> None:
    combined = join_filters(filter_clause("parents", "abc"), None, "", filter_clause("name", "x y"))

    assert combined == 'parents:"abc" AND name:"x y"'


def test_normalize_item_name() -> None:
    assert normalize_item_name("  report.pdf ") == "report.pdf"
    with pytest.raises(ValueError):
        normalize_item_name("   ")
