"""Field-name aliases used by the upstream API.

The supplier is not consistent about naming: the same logical value may come
back as ``itemCode``, ``sku`` or ``codigo`` depending on the endpoint.  Every
alias lives in :data:`FIELD_ALIASES` and is resolved through :func:`resolve`
so the lookup order is defined in one place.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "item_code": ("itemCode", "itemcode", "item_code", "sku", "codigo", "reference"),
    "product_name": ("productName", "product_name", "name", "nombre", "title"),
    "manufacturer": ("manufacturer", "manufacturerName", "brand", "marca", "fabricante"),
    "category": ("category", "categoryName", "categoria", "familia"),
    "description": ("description", "descripcion", "longDescription"),
    "images": ("images", "imagenes", "image"),
    "stock": ("stock", "quantity", "qty", "existencias"),
    "price": ("pvp", "PVP", "price", "precio"),
    "uom_code": ("uomCode", "uom", "unitCode", "unidad"),
    "weight": ("weight", "peso", "weightKg"),
    # matched case-insensitively against CSV headers
    "wholesale_key": ("itemcode", "sku", "codigo", "reference"),
    "wholesale_value": ("pvp", "price_wholesale", "wholesale"),
}

# catalog fields that get a dedicated MergedRecord attribute
DESCRIPTIVE_FIELDS = ("item_code", "product_name", "manufacturer", "category", "description", "images")


def resolve(record: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Return the value of the first alias of ``name`` present in ``record``."""

    for alias in FIELD_ALIASES[name]:
        if alias in record:
            return record[alias]
    return default


def resolve_ci(record: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Case-insensitive variant of :func:`resolve`."""

    lowered = {str(key).strip().lower(): value for key, value in record.items()}
    for alias in FIELD_ALIASES[name]:
        key = alias.lower()
        if key in lowered:
            return lowered[key]
    return default


def alias_keys(name: str) -> Tuple[str, ...]:
    return FIELD_ALIASES[name]


def product_code(record: Mapping[str, Any], *, case_insensitive: bool = False) -> Optional[str]:
    """Return the stripped product code of ``record`` or ``None`` when absent."""

    lookup = resolve_ci if case_insensitive else resolve
    value = lookup(record, "wholesale_key" if case_insensitive else "item_code")
    if value is None or isinstance(value, (list, dict)):
        return None
    code = str(value).strip()
    return code or None
