"""
Whole-order validation against catalog and policy snapshots (no database).
"""

from shopcore.catalog import parse_product
from shopcore.orders import LineItem, OrderSubmission, SubmittedTotals
from shopcore.policy import DeliverySettings, SettingsSnapshot, TaxSettings
from shopcore.stock import StockMutation
from shopcore.validation import OrderValidator

SETTINGS = SettingsSnapshot(
    tax=TaxSettings(16.0),
    delivery=DeliverySettings(store_enabled=True, pickup_enabled=True, shipping_enabled=True),
)


def lamp(stock=10, price=25.0, status="active"):
    return parse_product("lamp", {"name": "Lamp", "price": price, "stock": stock, "status": status, "sku": "L-1"})


def line(quantity=2, unit_price=25.0, product_id="lamp", total_price=None, **kwargs):
    return LineItem(
        product_id=product_id,
        quantity=quantity,
        unit_price=unit_price,
        total_price=unit_price * quantity if total_price is None else total_price,
        product_name=kwargs.pop("product_name", "Lamp"),
        **kwargs,
    )


def submission(items, delivery_method="pickup", **totals):
    subtotal = round(sum(i.total_price for i in items), 2)
    tax = round(subtotal * 0.16, 2)
    values = dict(
        subtotal=subtotal,
        tax_amount=tax,
        tax_percentage=16.0,
        shipping_cost=0.0,
        total=round(subtotal + tax, 2),
        item_count=sum(i.quantity for i in items),
    )
    values.update(totals)
    return OrderSubmission(
        user_id="user-1",
        items=items,
        delivery_method=delivery_method,
        payment_method="cash",
        totals=SubmittedTotals(**values),
    )


def fields(outcome):
    return [e.field for e in outcome.errors]


class TestHappyPath:
    def test_valid_order(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line()]), {"lamp": lamp()})

        assert outcome.ok
        assert outcome.calculated_subtotal == 50.0
        assert outcome.expected_tax_amount == 8.0
        assert outcome.item_count == 2
        assert outcome.mutations == [StockMutation(product_id="lamp", stock=8)]

    def test_priced_items_carry_sku_and_authoritative_price(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line(unit_price=25.004)]), {"lamp": lamp()})

        assert outcome.ok
        record = outcome.items[0].to_record()
        assert record["sku"] == "L-1"
        assert record["unitPrice"] == 25.0
        assert record["totalPrice"] == 50.0
        assert "variantId" not in record

    def test_priced_record_has_only_known_keys(self):
        outcome = OrderValidator(SETTINGS).validate(
            submission([line(variant_name="White", product_image="lamp.jpg")]), {"lamp": lamp()}
        )
        assert set(outcome.items[0].to_record()) == {
            "productId", "productName", "quantity", "unitPrice", "totalPrice", "sku",
            "variantName", "productImage",
        }


class TestItemChecks:
    def test_missing_product(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line()]), {"lamp": None})
        assert fields(outcome)[0] == "items[0].productId"
        assert "does not exist" in outcome.errors[0].message

    def test_inactive_product(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line()]), {"lamp": lamp(status="paused")})
        assert fields(outcome)[0] == "items[0].productId"
        assert "not available" in outcome.errors[0].message

    def test_insufficient_stock_names_both_numbers(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line(quantity=5)]), {"lamp": lamp(stock=3)})
        assert fields(outcome)[0] == "items[0].quantity"
        assert "Available: 3, requested: 5" in outcome.errors[0].message
        assert outcome.mutations == []

    def test_changed_price(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line(unit_price=20.0)]), {"lamp": lamp()})
        assert fields(outcome)[0] == "items[0].unitPrice"
        assert "$25.00" in outcome.errors[0].message

    def test_wrong_item_total(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line(total_price=49.0)]), {"lamp": lamp()})
        assert fields(outcome)[0] == "items[0].totalPrice"
        assert "Expected: $50.00, received: $49.00" in outcome.errors[0].message

    def test_first_failure_skips_remaining_item_checks(self):
        # wrong price and wrong total on an out-of-stock item: only the stock error is reported
        bad = line(quantity=5, unit_price=1.0, total_price=1.0)
        outcome = OrderValidator(SETTINGS).validate(submission([bad]), {"lamp": lamp(stock=3)})
        item_errors = [f for f in fields(outcome) if f.startswith("items[0]")]
        assert item_errors == ["items[0].quantity"]


class TestSameProductLines:
    def test_later_lines_see_remaining_stock(self):
        outcome = OrderValidator(SETTINGS).validate(
            submission([line(quantity=3), line(quantity=3)]), {"lamp": lamp(stock=5)}
        )
        assert "items[1].quantity" in fields(outcome)
        assert "Available: 2, requested: 3" in outcome.errors[0].message

    def test_one_write_per_product(self):
        outcome = OrderValidator(SETTINGS).validate(
            submission([line(quantity=3), line(quantity=2)]), {"lamp": lamp(stock=5)}
        )
        assert outcome.ok
        assert outcome.mutations == [StockMutation(product_id="lamp", stock=0)]


class TestOrderTotals:
    def test_item_count_must_match(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line()], item_count=3), {"lamp": lamp()})
        assert fields(outcome) == ["totals.itemCount"]

    def test_total_uses_sent_tax_and_shipping(self):
        sub = submission([line()], shipping_cost=5.0, total=63.0)
        assert OrderValidator(SETTINGS).validate(sub, {"lamp": lamp()}).ok

    def test_total_mismatch(self):
        outcome = OrderValidator(SETTINGS).validate(submission([line()], total=60.0), {"lamp": lamp()})
        assert fields(outcome) == ["totals.total"]

    def test_disabled_delivery_method(self):
        outcome = OrderValidator(SETTINGS).validate(
            submission([line()], delivery_method="homeDelivery"), {"lamp": lamp()}
        )
        assert fields(outcome) == ["deliveryMethod"]

    def test_missing_settings_reject_delivery_and_tax(self):
        snapshot = SettingsSnapshot(tax=None, delivery=None)
        outcome = OrderValidator(snapshot).validate(submission([line()]), {"lamp": lamp()})
        assert fields(outcome) == ["deliveryMethod", "totals.taxAmount"]

    def test_missing_tax_settings_accepted_when_fail_open(self):
        snapshot = SettingsSnapshot(tax=None, delivery=SETTINGS.delivery)
        outcome = OrderValidator(snapshot, tax_fail_open=True).validate(submission([line()]), {"lamp": lamp()})
        assert outcome.ok

    def test_errors_are_accumulated(self):
        sub = submission([line(unit_price=20.0)], delivery_method="homeDelivery", item_count=9, tax_amount=1.0)
        outcome = OrderValidator(SETTINGS).validate(sub, {"lamp": lamp()})
        assert fields(outcome) == [
            "items[0].unitPrice",
            "totals.subtotal",
            "deliveryMethod",
            "totals.taxAmount",
            "totals.total",
            "totals.itemCount",
        ]
