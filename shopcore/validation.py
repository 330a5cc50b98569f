"""
Order validation against authoritative catalog and policy data.

The validator runs once per order attempt, inside the committer's
transaction, and collects every problem as a FieldError instead of stopping
at the first one, so the client can correct the whole order in one round
trip. A clean outcome carries the stock writes to commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from shopcore.catalog import Product
from shopcore.orders import FieldError, OrderSubmission, PricedItem
from shopcore.policy import SettingsSnapshot, validate_delivery_method, validate_tax_amount
from shopcore.pricing import DEFAULT_TOLERANCE, money_differs, round_money
from shopcore.stock import StockMutation, resolve_stock
from shopcore.utils.logger import get_logger

logger = get_logger("validation")


@dataclass
class ValidationOutcome:
    errors: List[FieldError] = field(default_factory=list)
    mutations: List[StockMutation] = field(default_factory=list)
    items: List[PricedItem] = field(default_factory=list)
    calculated_subtotal: float = 0.0
    item_count: int = 0
    expected_tax_amount: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors


class OrderValidator:
    """
    Cross-checks a submitted order against current products and settings.

    Per line item, in order (the first failure skips the rest of that item):
      1. product exists
      2. product is active
      3. stock/price resolution (variant vs simple)
      4. quantity <= available stock
      5. unit price matches the authoritative price
      6. item total matches price x quantity
    Then: subtotal, delivery method, tax, grand total, item count.

    Line items that touch the same product see the stock left by the
    previous ones, and produce a single write per product.
    """

    def __init__(
        self,
        settings: SettingsSnapshot,
        tolerance: float = DEFAULT_TOLERANCE,
        tax_fail_open: bool = False,
    ):
        self.settings = settings
        self.tolerance = tolerance
        self.tax_fail_open = tax_fail_open

    def validate(
        self,
        submission: OrderSubmission,
        products: Mapping[str, Optional[Product]],
    ) -> ValidationOutcome:
        outcome = ValidationOutcome()
        working: Dict[str, Optional[Product]] = dict(products)
        pending: Dict[str, StockMutation] = {}
        subtotal = 0.0

        for index, item in enumerate(submission.items):
            prefix = f"items[{index}]"
            product = working.get(item.product_id)

            if product is None:
                outcome.errors.append(FieldError(
                    f"{prefix}.productId", f"Product '{item.product_name}' does not exist"
                ))
                continue

            if not product.is_active:
                outcome.errors.append(FieldError(
                    f"{prefix}.productId", f"Product '{item.product_name}' is not available for purchase"
                ))
                continue

            resolution = resolve_stock(product, item, prefix)
            if isinstance(resolution, FieldError):
                outcome.errors.append(resolution)
                continue

            if item.quantity > resolution.available_stock:
                outcome.errors.append(FieldError(
                    f"{prefix}.quantity",
                    f"Insufficient stock for '{item.product_name}'. "
                    f"Available: {resolution.available_stock}, requested: {item.quantity}",
                ))
                continue

            price = resolution.correct_price
            if money_differs(item.unit_price, price, self.tolerance):
                outcome.errors.append(FieldError(
                    f"{prefix}.unitPrice",
                    f"The price of '{item.product_name}' has changed. "
                    f"Current price: ${price:.2f}, sent price: ${item.unit_price:.2f}",
                ))
                continue

            item_total = price * item.quantity
            if money_differs(item.total_price, item_total, self.tolerance):
                outcome.errors.append(FieldError(
                    f"{prefix}.totalPrice",
                    f"The total for '{item.product_name}' is incorrect. "
                    f"Expected: ${item_total:.2f}, received: ${item.total_price:.2f}",
                ))
                continue

            subtotal += item_total
            working[item.product_id] = resolution.product
            pending[item.product_id] = resolution.mutation
            outcome.items.append(PricedItem(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=price,
                total_price=round_money(item_total),
                sku=resolution.sku,
                variant_id=item.variant_id,
                variant_name=item.variant_name,
                variant_color_hex=item.variant_color_hex,
                product_image=item.product_image,
            ))

        totals = submission.totals
        outcome.calculated_subtotal = round_money(subtotal)
        outcome.mutations = list(pending.values())
        outcome.item_count = sum(item.quantity for item in submission.items)

        if money_differs(totals.subtotal, subtotal, self.tolerance):
            outcome.errors.append(FieldError(
                "totals.subtotal",
                f"The subtotal is incorrect. Expected: ${subtotal:.2f}, received: ${totals.subtotal:.2f}",
            ))

        delivery = validate_delivery_method(submission.delivery_method, self.settings.delivery)
        if not delivery.is_valid:
            outcome.errors.append(FieldError("deliveryMethod", delivery.error))

        tax = validate_tax_amount(
            subtotal,
            totals.tax_amount,
            totals.tax_percentage,
            self.settings.tax,
            tolerance=self.tolerance,
            fail_open=self.tax_fail_open,
        )
        outcome.expected_tax_amount = tax.expected_tax_amount
        if not tax.is_valid:
            outcome.errors.append(FieldError(tax.field, tax.error))

        expected_total = subtotal + totals.tax_amount + totals.shipping_cost
        if money_differs(totals.total, expected_total, self.tolerance):
            outcome.errors.append(FieldError(
                "totals.total",
                f"The total is incorrect. Expected: ${expected_total:.2f}, received: ${totals.total:.2f}",
            ))

        if totals.item_count != outcome.item_count:
            outcome.errors.append(FieldError(
                "totals.itemCount",
                f"The item count is incorrect. Expected: {outcome.item_count}, received: {totals.item_count}",
            ))

        if outcome.errors:
            logger.info(
                "order validation failed user_id=%s error_count=%d fields=%s",
                submission.user_id, len(outcome.errors), [e.field for e in outcome.errors],
            )
        return outcome
