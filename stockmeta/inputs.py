"""Parsing and validation of the newline-delimited prompt and filename lists."""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple


class InputValidationError(ValueError):
    """The prompt and filename lists cannot start a run."""

    def __init__(self, prompts: int, filenames: int) -> None:
        super().__init__(
            "Line counts must match and not be empty. "
            f"({prompts} prompts vs {filenames} files)"
        )
        self.prompts = prompts
        self.filenames = filenames


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def validate_inputs(prompts_text: str, filenames_text: str) -> List[Tuple[str, str]]:
    """Pair each filename with its prompt, in input order."""

    prompts = split_lines(prompts_text)
    filenames = split_lines(filenames_text)
    if not prompts or len(prompts) != len(filenames):
        raise InputValidationError(len(prompts), len(filenames))
    return list(zip(filenames, prompts))


def read_text_file(path: str | Path) -> str:
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"Input file not found: {file_path}")
    return file_path.read_text(encoding="utf-8")


__all__ = ["InputValidationError", "read_text_file", "split_lines", "validate_inputs"]
