"""CSV export in the column layout Adobe Stock's uploader expects."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from .core.work_items import WorkItem

CSV_FILENAME = "adobe_stock_metadata.csv"
CSV_MIME_TYPE = "text/csv"
CSV_HEADER = ("Filename", "Title", "Keywords", "Category")


def escape_csv_field(value: str) -> str:
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def build_csv(items: Iterable[WorkItem]) -> str:
    lines = [",".join(CSV_HEADER)]
    for item in items:
        row = (item.filename, item.title, item.keywords, item.category)
        lines.append(",".join(escape_csv_field(field) for field in row))
    return "\n".join(lines)


def write_csv(items: Iterable[WorkItem], directory: str | Path, *, filename: str = CSV_FILENAME) -> Path:
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / filename
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(build_csv(items), encoding="utf-8", newline="")
    tmp_path.replace(path)
    return path


__all__ = ["CSV_FILENAME", "CSV_HEADER", "CSV_MIME_TYPE", "build_csv", "escape_csv_field", "write_csv"]
