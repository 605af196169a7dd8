from __future__ import annotations

from pathlib import Path

import pytest

from stockmeta.core.work_items import WorkItem
from stockmeta.export import CSV_FILENAME, CSV_MIME_TYPE, build_csv, escape_csv_field, write_csv


@pytest.mark.parametrize(
    "value, expected",
    [
        ("plain title", "plain title"),
        ("a,b", '"a,b"'),
        ('He said "hi"', '"He said ""hi"""'),
        ("line one\nline two", '"line one\nline two"'),
        ("", ""),
    ],
)
def test_escape_csv_field(value: str, expected: str) -> None:
    assert escape_csv_field(value) == expected


def _items():
    return [
        WorkItem(
            id="item-0",
            filename="2031_x9.jpg",
            original_prompt="prompt",
            title="Mountain lake under a clear summer sky",
            keywords="lake,mountain,summer",
            category="Landscapes",
        ),
        WorkItem(id="item-1", filename="pending.jpg", original_prompt="prompt"),
    ]


def test_build_csv_writes_header_and_rows_in_order() -> None:
    content = build_csv(_items())

    assert content.split("\n") == [
        "Filename,Title,Keywords,Category",
        '2031_x9.jpg,Mountain lake under a clear summer sky,"lake,mountain,summer",Landscapes',
        "pending.jpg,,,",
    ]


def test_write_csv_uses_default_name(tmp_path: Path) -> None:
    path = write_csv(_items(), tmp_path / "out")

    assert path.name == CSV_FILENAME == "adobe_stock_metadata.csv"
    assert path.read_text(encoding="utf-8") == build_csv(_items())
    assert CSV_MIME_TYPE == "text/csv"
    assert not list((tmp_path / "out").glob("*.tmp"))
