"""Join the fetched datasets into one record per product code."""

from __future__ import annotations

import logging
from collections import OrderedDict
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .constants import PREFERRED_UNIT_CODE
from .fields import DESCRIPTIVE_FIELDS, alias_keys, product_code, resolve, resolve_ci
from .models import MergedRecord, UnitRow
from .parser import is_numeric, normalize_decimal
from .utils import is_blank

logger = logging.getLogger(__name__)

_KG_TO_G_EXPONENT = 3
_WHOLE = Decimal("1")


def kg_to_grams(kilograms: Any) -> int:
    """Convert kilograms to whole grams, rounding halves up (0.0005 kg -> 1 g)."""

    value = Decimal(str(kilograms).strip()).scaleb(_KG_TO_G_EXPONENT)
    return int(value.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def select_unit_row(rows: Sequence[UnitRow], preferred: str = PREFERRED_UNIT_CODE) -> Optional[UnitRow]:
    """Return the row coded ``preferred`` (case-insensitive), else the first row."""

    if not rows:
        return None
    wanted = preferred.casefold()
    for row in rows:
        if row.uom_code is not None and str(row.uom_code).strip().casefold() == wanted:
            return row
    return rows[0]


def merge_records(
    catalog: Iterable[Mapping[str, Any]],
    stock: Iterable[Mapping[str, Any]] = (),
    units: Iterable[Mapping[str, Any]] = (),
    prices: Iterable[Mapping[str, Any]] = (),
    wholesale: Optional[Iterable[Mapping[str, Any]]] = None,
) -> List[MergedRecord]:
    """Merge the datasets by product code.

    The catalog decides which products exist: stock, price, wholesale and unit
    rows whose code is not in the catalog are ignored.  Records come back in
    the order their code first appeared in the catalog.
    """

    index = _index_catalog(catalog)

    for entry in stock:
        record = index.get(product_code(entry) or "")
        if record is not None:
            record.stock = resolve(entry, "stock")

    for entry in prices:
        record = index.get(product_code(entry) or "")
        if record is not None:
            record.price = resolve(entry, "price")

    if wholesale:
        _attach_wholesale(index, wholesale)

    _attach_weights(index, units)

    merged = list(index.values())
    logger.info("Merged %d products", len(merged))
    return merged


def _index_catalog(catalog: Iterable[Mapping[str, Any]]) -> "OrderedDict[str, MergedRecord]":
    index: "OrderedDict[str, MergedRecord]" = OrderedDict()
    skipped = 0
    for row in catalog:
        code = product_code(row)
        if code is None:
            skipped += 1
            continue
        # a repeated code replaces the earlier row but keeps its position
        index[code] = _catalog_record(code, row)
    if skipped:
        logger.debug("Skipped %d catalog rows without a product code", skipped)
    return index


def _catalog_record(code: str, row: Mapping[str, Any]) -> MergedRecord:
    images = resolve(row, "images")
    if isinstance(images, list):
        images = "|".join(str(image) for image in images)

    consumed = set()
    for name in DESCRIPTIVE_FIELDS:
        for alias in alias_keys(name):
            if alias in row:
                consumed.add(alias)
                break
    attributes: Dict[str, Any] = {key: value for key, value in row.items() if key not in consumed}

    return MergedRecord(
        item_code=code,
        product_name=resolve(row, "product_name"),
        manufacturer=resolve(row, "manufacturer"),
        category=resolve(row, "category"),
        description=resolve(row, "description"),
        images=images,
        attributes=attributes,
    )


def _attach_wholesale(index: Mapping[str, MergedRecord], rows: Iterable[Mapping[str, Any]]) -> None:
    for row in rows:
        record = index.get(product_code(row, case_insensitive=True) or "")
        if record is None:
            continue
        value = resolve_ci(row, "wholesale_value")
        if is_blank(value):
            continue
        record.price_wholesale = normalize_decimal(value)


def _attach_weights(index: Mapping[str, MergedRecord], units: Iterable[Mapping[str, Any]]) -> None:
    grouped: Dict[str, List[UnitRow]] = {}
    for entry in units:
        code = product_code(entry)
        if code is None or code not in index:
            continue
        grouped.setdefault(code, []).append(
            UnitRow(item_code=code, uom_code=resolve(entry, "uom_code"), weight=resolve(entry, "weight"))
        )

    for code, rows in grouped.items():
        chosen = select_unit_row(rows)
        if chosen is None or chosen.weight is None:
            continue
        record = index[code]
        if is_numeric(chosen.weight):
            kilograms = float(chosen.weight)
            record.weight = kilograms
            record.weight_grams = kg_to_grams(chosen.weight)
        else:
            record.weight = chosen.weight
