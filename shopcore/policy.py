"""
Store-wide tax and delivery policy.

Settings come from a single store document:

  storeEnabled    : global on/off switch for checkout
  taxPercentage   : e.g. 16 for 16%
  taxEnabled      : defaults to true when absent
  deliveryMethods : {pickupEnabled, homeDeliveryEnabled,
                      shippingEnabled, arrangeWithSellerEnabled}

Parsers return None for a missing or malformed document; callers treat None
as "configuration unavailable". The settings are read once per order attempt
and passed around as a value snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional

from shopcore.pricing import DEFAULT_TOLERANCE, calculate_tax_amount, money_differs
from shopcore.utils.logger import get_logger

logger = get_logger("policy")


class DeliveryMethod(str, Enum):
    ARRANGE_WITH_SELLER = "arrangeWithSeller"
    HOME_DELIVERY = "homeDelivery"
    PICKUP = "pickup"
    SHIPPING = "shipping"


# Methods that never need a shipping address.
ADDRESSLESS_METHODS = frozenset({DeliveryMethod.PICKUP.value, DeliveryMethod.ARRANGE_WITH_SELLER.value})

_METHOD_FLAGS = {
    DeliveryMethod.ARRANGE_WITH_SELLER.value: "arrangeWithSellerEnabled",
    DeliveryMethod.HOME_DELIVERY.value: "homeDeliveryEnabled",
    DeliveryMethod.PICKUP.value: "pickupEnabled",
    DeliveryMethod.SHIPPING.value: "shippingEnabled",
}


@dataclass(frozen=True)
class TaxSettings:
    tax_percentage: float
    enabled: bool = True


@dataclass(frozen=True)
class DeliverySettings:
    store_enabled: bool
    arrange_with_seller_enabled: bool = False
    home_delivery_enabled: bool = False
    pickup_enabled: bool = False
    shipping_enabled: bool = False

    def is_enabled(self, method: str) -> bool:
        flag = _METHOD_FLAGS.get(method)
        if flag is None:
            return False
        return {
            "arrangeWithSellerEnabled": self.arrange_with_seller_enabled,
            "homeDeliveryEnabled": self.home_delivery_enabled,
            "pickupEnabled": self.pickup_enabled,
            "shippingEnabled": self.shipping_enabled,
        }[flag]

    def enabled_methods(self) -> List[str]:
        return [method for method in _METHOD_FLAGS if self.is_enabled(method)]


@dataclass(frozen=True)
class SettingsSnapshot:
    """Policy values read once for one order attempt."""
    tax: Optional[TaxSettings]
    delivery: Optional[DeliverySettings]


@dataclass(frozen=True)
class DeliveryCheck:
    is_valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class TaxCheck:
    is_valid: bool
    expected_tax_amount: float
    error: Optional[str] = None
    field: str = "totals.taxAmount"


# ─── Parsing ─────────────────────────────────────────────────────────────────

def parse_tax_settings(record: Optional[Mapping[str, Any]]) -> Optional[TaxSettings]:
    if record is None:
        logger.warning("Store settings document does not exist")
        return None
    percentage = record.get("taxPercentage")
    if isinstance(percentage, bool) or not isinstance(percentage, (int, float)):
        logger.warning("Store settings does not have a valid taxPercentage")
        return None
    enabled = record.get("taxEnabled")
    return TaxSettings(
        tax_percentage=float(percentage),
        enabled=True if enabled is None else enabled is True,
    )


def parse_delivery_settings(record: Optional[Mapping[str, Any]]) -> Optional[DeliverySettings]:
    if record is None:
        logger.warning("Store settings document does not exist")
        return None
    methods = record.get("deliveryMethods")
    if not isinstance(methods, Mapping):
        logger.warning("Store settings does not have a valid deliveryMethods object")
        return None
    return DeliverySettings(
        store_enabled=record.get("storeEnabled") is True,
        arrange_with_seller_enabled=methods.get("arrangeWithSellerEnabled") is True,
        home_delivery_enabled=methods.get("homeDeliveryEnabled") is True,
        pickup_enabled=methods.get("pickupEnabled") is True,
        shipping_enabled=methods.get("shippingEnabled") is True,
    )


def snapshot_from_record(record: Optional[Mapping[str, Any]]) -> SettingsSnapshot:
    return SettingsSnapshot(tax=parse_tax_settings(record), delivery=parse_delivery_settings(record))


# ─── Validation ──────────────────────────────────────────────────────────────

def validate_delivery_method(method: str, settings: Optional[DeliverySettings]) -> DeliveryCheck:
    """Fail closed: anything other than an explicitly enabled method is rejected."""
    if settings is None:
        logger.error("No delivery settings available, rejecting order")
        return DeliveryCheck(
            is_valid=False,
            error="Delivery settings are unavailable. Please contact the store administrator.",
        )

    if not settings.store_enabled:
        logger.warning("Store is globally disabled (storeEnabled: false)")
        return DeliveryCheck(
            is_valid=False,
            error="The store is temporarily closed. Please try again later.",
        )

    if settings.is_enabled(method):
        return DeliveryCheck(is_valid=True)

    available = settings.enabled_methods()
    if not available:
        return DeliveryCheck(
            is_valid=False,
            error="No delivery methods are enabled at the moment. Please contact the store administrator.",
        )
    reason = "is not valid" if method not in _METHOD_FLAGS else "is not available"
    return DeliveryCheck(
        is_valid=False,
        error=f"Delivery method '{method}' {reason}. Available methods: {', '.join(available)}",
    )


def validate_tax_amount(
    subtotal: float,
    tax_amount_sent: float,
    tax_percentage_sent: float,
    settings: Optional[TaxSettings],
    tolerance: float = DEFAULT_TOLERANCE,
    fail_open: bool = False,
) -> TaxCheck:
    """Check the submitted tax percentage and amount against store settings."""
    if settings is None:
        if fail_open:
            logger.warning("No tax settings found, allowing any tax percentage")
            return TaxCheck(is_valid=True, expected_tax_amount=tax_amount_sent)
        return TaxCheck(
            is_valid=False,
            expected_tax_amount=tax_amount_sent,
            error="Tax settings are unavailable. Please contact the store administrator.",
        )

    if money_differs(tax_percentage_sent, settings.tax_percentage, tolerance):
        return TaxCheck(
            is_valid=False,
            expected_tax_amount=tax_amount_sent,
            error=(
                f"The tax percentage is incorrect. Expected: {settings.tax_percentage:g}%, "
                f"received: {tax_percentage_sent:g}%"
            ),
            field="totals.taxPercentage",
        )

    if not settings.enabled:
        is_valid = not money_differs(tax_amount_sent, 0.0, tolerance)
        return TaxCheck(
            is_valid=is_valid,
            expected_tax_amount=0.0,
            error=None if is_valid else (
                f"Taxes are disabled. The amount must be $0.00. Received: ${tax_amount_sent:.2f}"
            ),
        )

    expected = calculate_tax_amount(subtotal, settings.tax_percentage)
    is_valid = not money_differs(tax_amount_sent, expected, tolerance)
    return TaxCheck(
        is_valid=is_valid,
        expected_tax_amount=expected,
        error=None if is_valid else (
            f"The tax amount is incorrect. Expected: ${expected:.2f} "
            f"({settings.tax_percentage:g}% of ${subtotal:.2f}). Received: ${tax_amount_sent:.2f}"
        ),
    )
