"""
Pydantic v2 schemas for strict request/response validation.

All request schemas use extra="forbid" to reject unknown fields and accept
the storefront's camelCase keys. Schema errors are answered with a 400
before any database work happens.
"""

from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from shopcore.orders import LineItem, OrderSubmission, SubmittedTotals
from shopcore.policy import ADDRESSLESS_METHODS, DeliveryMethod

MAX_MONEY = 9_999_999.99
MAX_ITEMS = 100
MAX_QUANTITY = 1000


def _two_decimals(value: float) -> float:
    if Decimal(str(value)).as_tuple().exponent < -2:
        raise ValueError("must have at most 2 decimal places")
    return value


Money = Annotated[float, Field(ge=0, le=MAX_MONEY), AfterValidator(_two_decimals)]


class CamelModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


#
# Request
#

class Address(BaseModel):
    """Customer address as stored on the user profile."""
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: Optional[str] = None
    name: str = Field(..., min_length=2, max_length=100)
    address_1: str = Field(..., min_length=5, max_length=200)
    address_2: Optional[str] = None
    description: Optional[str] = None
    municipality: Optional[str] = Field(None, min_length=2, max_length=100)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    postal_code: str = Field(..., alias="postalCode", min_length=3, max_length=20)
    country: str = Field(..., min_length=2, max_length=100)
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    is_default: Optional[bool] = Field(None, alias="isDefault")


class OrderItemIn(CamelModel):
    product_id: str = Field(..., min_length=1)
    variant_id: Optional[str] = Field(None, min_length=1)
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY)
    unit_price: Money
    total_price: Money
    product_name: str = Field(..., min_length=1, max_length=200)
    variant_name: Optional[str] = None
    variant_color_hex: Optional[str] = None
    product_image: Optional[str] = None


class OrderTotalsIn(CamelModel):
    subtotal: Money
    tax_amount: Money
    tax_percentage: float = Field(..., ge=0, le=100)
    shipping_cost: Money
    total: Money
    item_count: int = Field(..., ge=1)


class CreateOrderRequest(CamelModel):
    """Body of POST /orders/createOrder."""
    user_id: str = Field(..., min_length=1, max_length=128)
    items: List[OrderItemIn] = Field(..., min_length=1, max_length=MAX_ITEMS)
    delivery_method: DeliveryMethod
    shipping_address: Optional[Address] = Field(None, validate_default=True)
    billing_address: Optional[Address] = None
    payment_method: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)
    totals: OrderTotalsIn

    @field_validator("shipping_address")
    @classmethod
    def address_required_for_delivery(cls, value: Optional[Address], info: ValidationInfo):
        method = info.data.get("delivery_method")
        if value is None and method is not None and method.value not in ADDRESSLESS_METHODS:
            raise ValueError(f"shippingAddress is required for delivery method '{method.value}'")
        return value

    def to_submission(self) -> OrderSubmission:
        """Convert to the domain type consumed by the validator."""
        return OrderSubmission(
            user_id=self.user_id,
            items=[
                LineItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                    product_name=item.product_name,
                    variant_id=item.variant_id,
                    variant_name=item.variant_name,
                    variant_color_hex=item.variant_color_hex,
                    product_image=item.product_image,
                )
                for item in self.items
            ],
            delivery_method=self.delivery_method.value,
            payment_method=self.payment_method,
            totals=SubmittedTotals(
                subtotal=self.totals.subtotal,
                tax_amount=self.totals.tax_amount,
                tax_percentage=self.totals.tax_percentage,
                shipping_cost=self.totals.shipping_cost,
                total=self.totals.total,
                item_count=self.totals.item_count,
            ),
            shipping_address=_address_record(self.shipping_address),
            billing_address=_address_record(self.billing_address),
            notes=self.notes,
        )


def _address_record(address: Optional[Address]):
    if address is None:
        return None
    return address.model_dump(by_alias=True, exclude_none=True)


#
# Response
#

class FieldErrorOut(BaseModel):
    field: str
    message: str


class CreateOrderResponse(BaseModel):
    """Standard envelope for order creation."""
    success: bool
    message: str
    orderId: Optional[str] = None
    errors: Optional[List[FieldErrorOut]] = None


class DispatchResponse(BaseModel):
    success: bool
    processed: int
    results: dict = Field(default_factory=dict)
