"""
Stock and price resolution for a single line item.

Given the current catalog state of a product and a requested line item,
compute the authoritative unit price, the stock available to the order, and
the exact write needed to take the items out of stock. Nothing here touches
storage; the committer applies the returned mutation inside its transaction.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Union

from shopcore.catalog import Product, SimpleProduct, Variant, VariatedProduct
from shopcore.orders import FieldError, LineItem
from shopcore.pricing import apply_dynamic_pricing


@dataclass(frozen=True)
class StockMutation:
    """Write applied to one product document when the order commits."""
    product_id: str
    stock: int
    variants: Optional[List[Dict[str, Any]]] = None  # full replacement array

    def as_update(self) -> Dict[str, Any]:
        update: Dict[str, Any] = {"stock": self.stock}
        if self.variants is not None:
            update["variants"] = self.variants
        return update


@dataclass(frozen=True)
class StockResolution:
    available_stock: int
    correct_price: float
    mutation: StockMutation
    product: Product              # product state once the mutation is applied
    sku: Optional[str] = None
    variant: Optional[Variant] = None


Resolution = Union[StockResolution, FieldError]


def resolve_variant_stock(product: Product, item: LineItem, prefix: str = "item") -> Resolution:
    """Resolve a line item that selects a variant."""
    variant = product.find_variant(item.variant_id) if isinstance(product, VariatedProduct) else None
    if variant is None:
        return FieldError(
            field=f"{prefix}.variantId",
            message=f"The selected variant of '{item.product_name}' does not exist",
        )
    if not variant.is_orderable:
        return FieldError(
            field=f"{prefix}.variantId",
            message=f"Variant '{item.variant_name or 'selected'}' of '{item.product_name}' is not available",
        )

    available = variant.stock
    price = apply_dynamic_pricing(
        variant.price, variant.has_dynamic_pricing, variant.dynamic_prices, item.quantity
    )
    updated = product.with_variant_stock(variant.id, available - item.quantity)
    mutation = StockMutation(
        product_id=product.id,
        stock=updated.stock,
        variants=[v.to_record() for v in updated.variants],
    )
    return StockResolution(
        available_stock=available,
        correct_price=price,
        mutation=mutation,
        product=updated,
        sku=variant.sku or product.sku,
        variant=variant,
    )


def resolve_simple_stock(product: SimpleProduct, item: LineItem) -> StockResolution:
    """Resolve a line item for a product without variants."""
    available = product.stock
    price = apply_dynamic_pricing(
        product.price, product.has_dynamic_pricing, product.dynamic_prices, item.quantity
    )
    remaining = available - item.quantity
    return StockResolution(
        available_stock=available,
        correct_price=price,
        mutation=StockMutation(product_id=product.id, stock=remaining),
        product=replace(product, stock=remaining),
        sku=product.sku,
    )


def resolve_stock(product: Product, item: LineItem, prefix: str = "item") -> Resolution:
    """Dispatch on the product shape."""
    if isinstance(product, VariatedProduct):
        if not item.variant_id:
            return FieldError(
                field=f"{prefix}.variantId",
                message=f"'{item.product_name}' requires a variant selection",
            )
        return resolve_variant_stock(product, item, prefix)

    if item.variant_id:
        # Simple products have no variants to select.
        return resolve_variant_stock(product, item, prefix)
    return resolve_simple_stock(product, item)
