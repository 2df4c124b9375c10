"""Data models used by the catalog runner."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class AuthToken:
    """Bearer token together with the moment it stops being reusable."""

    token: str
    expires_at: datetime

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return bool(self.token) and now < self.expires_at

    def to_dict(self) -> Dict[str, str]:
        return {"token": self.token, "expires_at": self.expires_at.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuthToken":
        token = data.get("token")
        expires_raw = data.get("expires_at")
        if not isinstance(token, str) or not token or not isinstance(expires_raw, str):
            raise ValueError("token cache record is incomplete")
        expires_at = datetime.fromisoformat(expires_raw)
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(token=token, expires_at=expires_at)


@dataclass(slots=True)
class UnitRow:
    """One packaging option returned by the unit-of-measure endpoint."""

    item_code: str
    uom_code: Optional[str] = None
    weight: Any = None


@dataclass(slots=True)
class RawDatasets:
    """The datasets fetched from the API for a single run."""

    catalog: List[Dict[str, Any]] = field(default_factory=list)
    stock: List[Dict[str, Any]] = field(default_factory=list)
    units: List[Dict[str, Any]] = field(default_factory=list)
    prices: List[Dict[str, Any]] = field(default_factory=list)
    wholesale: List[Dict[str, Any]] = field(default_factory=list)

    def counts(self) -> Dict[str, int]:
        return {
            "catalog": len(self.catalog),
            "stock": len(self.stock),
            "units": len(self.units),
            "prices": len(self.prices),
            "wholesale": len(self.wholesale),
        }


@dataclass(slots=True)
class MergedRecord:
    """A catalog product joined with its stock, prices and weight.

    Attributes
    ----------
    item_code:
        Product code used to join every dataset.  Never empty.
    product_name:
        Display title taken from the catalog.
    manufacturer:
        Brand name as the catalog reports it.  Used to split the export into
        one file per manufacturer.
    category:
        Catalog category, when present.
    description:
        Long description from the catalog, when present.
    images:
        Image references joined with ``|`` when the catalog returns a list.
    attributes:
        Every other catalog field, in the order the API returned them.
    stock:
        Quantity from the stock endpoint, passed through as received.
    price:
        Retail price (``pvp``) from the price endpoint.
    price_wholesale:
        Wholesale price from the CSV endpoint after decimal normalization.
    weight:
        Weight in kilograms of the selected unit of measure.
    weight_grams:
        ``weight`` converted to whole grams.
    """

    item_code: str
    product_name: Optional[str] = None
    manufacturer: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    images: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    stock: Any = None
    price: Any = None
    price_wholesale: Any = None
    weight: Any = None
    weight_grams: Optional[int] = None

    def as_flat_dict(self) -> Dict[str, Any]:
        """Return a flattened dictionary representation suitable for CSV export."""

        from .utils import slugify_key

        base: Dict[str, Any] = {
            "item_code": self.item_code,
            "product_name": self.product_name,
            "manufacturer": self.manufacturer,
            "category": self.category,
            "description": self.description,
            "images": self.images,
            "stock": self.stock,
            "price": self.price,
            "price_wholesale": self.price_wholesale,
            "weight": self.weight,
            "weight_grams": self.weight_grams,
        }
        for key, value in self.attributes.items():
            if isinstance(value, (list, dict)):
                value = json.dumps(value, ensure_ascii=False)
            base[f"attr_{slugify_key(key)}"] = value
        return base
