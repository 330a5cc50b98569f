"""
Order submission types shared by the validator and the service layer.

A submission is attacker-controlled input: every numeric field in it is
re-derived from catalog data before anything is trusted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldError:
    """One correctable problem with a submitted order."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int
    unit_price: float
    total_price: float
    product_name: str
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    variant_color_hex: Optional[str] = None
    product_image: Optional[str] = None


@dataclass(frozen=True)
class SubmittedTotals:
    subtotal: float
    tax_amount: float
    tax_percentage: float
    shipping_cost: float
    total: float
    item_count: int


@dataclass(frozen=True)
class OrderSubmission:
    user_id: str
    items: List[LineItem]
    delivery_method: str
    payment_method: str
    totals: SubmittedTotals
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None

    @property
    def product_ids(self) -> List[str]:
        """Referenced product ids, first-seen order, without duplicates."""
        seen: Dict[str, None] = {}
        for item in self.items:
            seen.setdefault(item.product_id, None)
        return list(seen)


@dataclass
class PricedItem:
    """A line item re-priced with authoritative catalog data."""
    product_id: str
    product_name: str
    quantity: int
    unit_price: float
    total_price: float
    sku: Optional[str] = None
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    variant_color_hex: Optional[str] = None
    product_image: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "totalPrice": self.total_price,
            "sku": self.sku,
        }
        optional = {
            "variantId": self.variant_id,
            "variantName": self.variant_name,
            "variantColorHex": self.variant_color_hex,
            "productImage": self.product_image,
        }
        record.update({k: v for k, v in optional.items() if v is not None})
        return record
