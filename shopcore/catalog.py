"""
Catalog types for order validation.

A stored product document becomes one of two shapes:

  SimpleProduct   : sold directly; owns its stock and price tiers
  VariatedProduct : sold through its variants; product-level stock is the
                     aggregate of active + paused variant stock

Documents use the catalog's camelCase keys, and stock may arrive as a
numeric string.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union


class ProductStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"

    @classmethod
    def parse(cls, value: Any) -> "ProductStatus":
        # Unknown statuses behave as archived: not orderable, not counted.
        try:
            return cls(value)
        except ValueError:
            return cls.ARCHIVED


# Variant statuses that count toward the product's aggregate stock.
STOCKED_STATUSES = (ProductStatus.ACTIVE, ProductStatus.PAUSED)


@dataclass(frozen=True)
class DynamicPriceRange:
    min_quantity: int
    price: float

    def to_record(self) -> Dict[str, Any]:
        return {"minQuantity": self.min_quantity, "price": self.price}


@dataclass(frozen=True)
class Variant:
    id: str
    name: str
    price: float
    stock: int
    status: ProductStatus
    sku: Optional[str] = None
    color_hex: Optional[str] = None
    has_dynamic_pricing: bool = False
    dynamic_prices: Tuple[DynamicPriceRange, ...] = ()
    # Stored document, kept so a stock write preserves every other field.
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_orderable(self) -> bool:
        return self.status is ProductStatus.ACTIVE

    def to_record(self) -> Dict[str, Any]:
        record = dict(self.raw)
        record.update({
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "stock": self.stock,
            "status": self.status.value,
        })
        return record


@dataclass(frozen=True)
class SimpleProduct:
    id: str
    name: str
    price: float
    stock: int
    status: ProductStatus
    sku: Optional[str] = None
    category_id: Optional[str] = None
    has_dynamic_pricing: bool = False
    dynamic_prices: Tuple[DynamicPriceRange, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.status is ProductStatus.ACTIVE


@dataclass(frozen=True)
class VariatedProduct:
    id: str
    name: str
    price: float
    stock: int
    status: ProductStatus
    variants: Tuple[Variant, ...]
    sku: Optional[str] = None
    category_id: Optional[str] = None
    has_dynamic_pricing: bool = False
    dynamic_prices: Tuple[DynamicPriceRange, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.status is ProductStatus.ACTIVE

    def find_variant(self, variant_id: Optional[str]) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    def with_variant_stock(self, variant_id: str, new_stock: int) -> "VariatedProduct":
        """Return a copy with one variant's stock replaced and the aggregate recomputed."""
        variants = tuple(
            replace(v, stock=new_stock) if v.id == variant_id else v
            for v in self.variants
        )
        return replace(self, variants=variants, stock=aggregate_stock(variants))


Product = Union[SimpleProduct, VariatedProduct]


def aggregate_stock(variants: Iterable[Variant]) -> int:
    """Sum stock over active and paused variants; archived variants are excluded."""
    return sum(v.stock for v in variants if v.status in STOCKED_STATUSES)


# ─── Parsing stored documents ────────────────────────────────────────────────

def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _to_float(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def parse_price_ranges(records: Any) -> Tuple[DynamicPriceRange, ...]:
    """Parse stored tiers; storage order is not meaningful and is kept as-is."""
    if not isinstance(records, list):
        return ()
    ranges: List[DynamicPriceRange] = []
    for record in records:
        if not isinstance(record, Mapping):
            continue
        ranges.append(DynamicPriceRange(
            min_quantity=_to_int(record.get("minQuantity")),
            price=_to_float(record.get("price")),
        ))
    return tuple(ranges)


def parse_variant(record: Mapping[str, Any]) -> Variant:
    return Variant(
        id=str(record.get("id", "")),
        name=str(record.get("name", "")),
        price=_to_float(record.get("price")),
        stock=_to_int(record.get("stock")),
        status=ProductStatus.parse(record.get("status")),
        sku=record.get("sku"),
        color_hex=record.get("colorHex"),
        has_dynamic_pricing=record.get("hasDynamicPricing") is True,
        dynamic_prices=parse_price_ranges(record.get("dynamicPrices")),
        raw=dict(record),
    )


def parse_product(product_id: str, record: Mapping[str, Any]) -> Product:
    """Build the catalog shape for a stored product document."""
    common = dict(
        id=product_id,
        name=str(record.get("name", "")),
        price=_to_float(record.get("price")),
        stock=_to_int(record.get("stock")),
        status=ProductStatus.parse(record.get("status")),
        sku=record.get("sku"),
        category_id=record.get("categoryId"),
        has_dynamic_pricing=record.get("hasDynamicPricing") is True,
        dynamic_prices=parse_price_ranges(record.get("dynamicPrices")),
    )
    variants = record.get("variants") or []
    if isinstance(variants, list) and variants:
        parsed = tuple(parse_variant(v) for v in variants if isinstance(v, Mapping))
        if parsed:
            return VariatedProduct(variants=parsed, **common)
    return SimpleProduct(**common)
