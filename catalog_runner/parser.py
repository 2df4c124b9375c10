"""Parsing helpers for API response bodies."""

from __future__ import annotations

import csv
import io
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .errors import DataFormatError

WRAPPER_KEYS = ("data", "items", "result", "results")
CATALOG_WRAPPER_KEYS = ("catalogo", "productos", "products")

_THOUSANDS_POINT = re.compile(r"\.(?=\d{3}\b)")
_NUMERIC = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_SPACES = (" ", "\u00a0")


def autodetect_delimiter(header_line: str) -> str:
    """Pick the delimiter used most often in ``header_line``."""

    counts = {
        ";": header_line.count(";"),
        "\t": header_line.count("\t"),
        ",": header_line.count(","),
    }
    highest = max(counts.values())
    for delimiter in (";", "\t", ","):
        if counts[delimiter] == highest:
            return delimiter
    return ","


def parse_csv_rows(text: str) -> List[Dict[str, Optional[str]]]:
    """Parse CSV ``text`` into dictionaries keyed by the stripped header names.

    Blank lines are skipped and short rows are padded with ``None``.
    """

    text = text.lstrip("\ufeff")
    first_line = text.splitlines()[0] if text.strip() else ""
    if not first_line.strip():
        return []

    reader = csv.reader(io.StringIO(text), delimiter=autodetect_delimiter(first_line))
    headers: Optional[List[str]] = None
    rows: List[Dict[str, Optional[str]]] = []
    for values in reader:
        if headers is None:
            headers = [value.strip() for value in values]
            continue
        if not values or all(not value.strip() for value in values):
            continue
        row: Dict[str, Optional[str]] = {}
        for index, header in enumerate(headers):
            row[header] = values[index] if index < len(values) else None
        rows.append(row)
    return rows


def normalize_decimal(value: Any) -> Any:
    """Convert a locale formatted number to ``float``.

    A comma with no point is a decimal comma (``"12,50"``).  Otherwise points
    followed by a group of three digits are thousands separators and any
    remaining comma becomes the decimal point (``"1.234,56"``).  Values that
    still do not look numeric are returned cleaned but unconverted.
    """

    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = str(value).strip()
    for space in _SPACES:
        cleaned = cleaned.replace(space, "")
    if "," in cleaned and "." not in cleaned:
        cleaned = cleaned.replace(",", ".")
    else:
        cleaned = _THOUSANDS_POINT.sub("", cleaned)
        cleaned = cleaned.replace(",", ".")

    if _NUMERIC.match(cleaned):
        return float(cleaned)
    return cleaned


def is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        return bool(_NUMERIC.match(value.strip()))
    return False


def unwrap_records(
    payload: Any,
    endpoint: str,
    *,
    extra_keys: Sequence[str] = (),
    body: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Return the list of record dictionaries carried by ``payload``.

    ``payload`` may already be a list, or a dictionary wrapping the list under
    one of :data:`WRAPPER_KEYS` followed by ``extra_keys``.  The first key that
    holds a list wins.  A wrapper holding another dictionary is searched one
    more level down (``{"data": {"items": [...]}}``).
    """

    keys = tuple(WRAPPER_KEYS) + tuple(extra_keys)
    records = _unwrap(payload, keys, depth=2)
    if records is None:
        raise DataFormatError(endpoint, body, reason="no record list found in response")
    if records and not any(isinstance(item, dict) for item in records):
        raise DataFormatError(endpoint, body, reason="record list does not contain objects")
    return [item for item in records if isinstance(item, dict)]


def _unwrap(payload: Any, keys: Iterable[str], depth: int) -> Optional[List[Any]]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict) or depth <= 0:
        return None

    keys = tuple(keys)
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    for key in keys:
        value = payload.get(key)
        if isinstance(value, dict):
            nested = _unwrap(value, keys, depth - 1)
            if nested is not None:
                return nested
    return None
