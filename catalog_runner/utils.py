"""Utility helpers for the catalog runner."""

from __future__ import annotations

import re
from typing import Any, Sequence

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
_FILENAME_PATTERN = re.compile(r"[^A-Za-z0-9]+")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def slugify_key(value: str) -> str:
    """Return a filesystem and CSV friendly slug for a column name."""

    value = value.strip().lower()
    value = _SLUG_PATTERN.sub("_", value)
    value = value.strip("_")
    return value or "value"


def sanitize_filename_part(value: str) -> str:
    """Replace every run of non-alphanumeric characters with ``_``.

    Case is preserved so ``"Garden HighPro"`` becomes ``"Garden_HighPro"``.
    """

    return _FILENAME_PATTERN.sub("_", value)


def collapse_whitespace(value: str) -> str:
    """Collapse whitespace runs (newlines included) into a single space."""

    return _WHITESPACE_PATTERN.sub(" ", value)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def union_fieldnames(rows: Sequence[dict[str, Any]]) -> list[str]:
    """Return a deterministic list of field names across all rows."""

    preferred_order: list[str] = [
        "item_code",
        "product_name",
        "manufacturer",
        "category",
        "description",
        "images",
        "stock",
        "price",
        "price_wholesale",
        "weight",
        "weight_grams",
    ]
    extra = set()
    for row in rows:
        extra.update(row.keys())
    ordered = [field for field in preferred_order if field in extra]
    for field in sorted(extra):
        if field not in preferred_order:
            ordered.append(field)
    return ordered
