"""Shared constants for the catalog runner."""

from __future__ import annotations

from typing import Tuple

DEFAULT_BASE_URL = "https://api.naturalsystems.es/api"
DEFAULT_LANG = 2

# (connect, read) in seconds
DEFAULT_TIMEOUT: Tuple[float, float] = (20.0, 60.0)

LOGIN_PATH = "login"
CATALOG_PATH = "producto/getCatalogo"
STOCK_PATH = "producto/getStock"
UNITS_PATH = "producto/getUnidadMedida"
PRICES_PATH = "producto/getPrecio"
WHOLESALE_CSV_PATH = "producto/getCsv"

TOKEN_VALIDITY_HOURS = 24
TOKEN_SAFETY_MARGIN_HOURS = 1

CATALOG_BACKOFF_SECONDS: Tuple[float, ...] = (0.5, 1.0, 2.0)
CATALOG_MAX_ATTEMPTS = 3

PREFERRED_UNIT_CODE = "Unidad"

DEFAULT_MANUFACTURERS: Tuple[str, ...] = ("Milwaukee", "Garden HighPro", "Qnubu", "Zerum")

EXPORT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("item_code", "SKU"),
    ("product_name", "Title"),
    ("stock", "Stock"),
    ("price_wholesale", "PriceWholesale"),
    ("price", "Price"),
    ("weight_grams", "Weight"),
)

FULL_EXPORT_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("item_code", "SKU"),
    ("product_name", "Title"),
    ("manufacturer", "Manufacturer"),
    ("category", "Category"),
    ("description", "Description"),
    ("images", "Images"),
    ("stock", "Stock"),
    ("price_wholesale", "PriceWholesale"),
    ("price", "Price"),
    ("weight", "WeightKg"),
    ("weight_grams", "Weight"),
    ("attributes", "Attributes"),
)
