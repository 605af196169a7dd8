"""The closed set of Adobe Stock categories the model may choose from."""

from __future__ import annotations

from typing import Tuple

ADOBE_CATEGORIES: Tuple[str, ...] = (
    "Animals",
    "Buildings and Architecture",
    "Business",
    "Drinks",
    "Environment",
    "States of Mind",
    "Food",
    "Graphic Resources",
    "Hobbies and Leisure",
    "Industry",
    "Landscapes",
    "Lifestyle",
    "People",
    "Plants and Flowers",
    "Culture and Religion",
    "Science",
    "Social Issues",
    "Sports",
    "Technology",
    "Transport",
    "Travel",
)

# Used when the model omits a category for an item.
DEFAULT_CATEGORY = "Graphic Resources"


def is_known_category(label: str) -> bool:
    return label in ADOBE_CATEGORIES


__all__ = ["ADOBE_CATEGORIES", "DEFAULT_CATEGORY", "is_known_category"]
