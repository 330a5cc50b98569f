"""
SQLAlchemy database models.
These are the authoritative source of truth for order-path data.

The database is authoritative for:
- Products (prices, price tiers, stock, variants)
- Users (customer profile used for the order snapshot)
- Store settings (tax and delivery policy singleton)
- Orders
- Metadata counters and the post-commit outbox
"""

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String, Text, Index
from sqlalchemy.sql import func
from app.database import Base

STORE_SETTINGS_ID = "settings"


class Product(Base):
    """
    Product catalog. `version` is the optimistic-concurrency counter: every
    UPDATE is issued as `... WHERE id = :id AND version = :seen` and bumps it,
    so a concurrent stock write is detected at flush time (StaleDataError).
    """
    __tablename__ = "products"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(Text, nullable=False)
    sku = Column(String(100), nullable=True)
    category_id = Column(String(64), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="active")  # active | paused | archived

    price = Column(Float, nullable=False, default=0.0)
    stock = Column(Integer, nullable=False, default=0)  # aggregate when variants exist

    has_dynamic_pricing = Column(Boolean, nullable=False, default=False)
    dynamic_prices = Column(JSON, nullable=True)  # [{minQuantity, price}]
    variants = Column(JSON, nullable=True)        # [{id, name, sku, colorHex, price, stock, status, ...}]

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def to_record(self) -> dict:
        """Catalog document shape consumed by shopcore.catalog.parse_product."""
        return {
            "name": self.name,
            "sku": self.sku,
            "categoryId": self.category_id,
            "status": self.status,
            "price": self.price,
            "stock": self.stock,
            "hasDynamicPricing": bool(self.has_dynamic_pricing),
            "dynamicPrices": list(self.dynamic_prices or []),
            "variants": list(self.variants or []),
        }


class User(Base):
    """Customer profile. `purchases` is maintained by post-commit side effects."""
    __tablename__ = "users"

    id = Column(String(128), primary_key=True, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    purchases = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class StoreSettings(Base):
    """Store policy singleton (id = 'settings'). Read-only from the order path."""
    __tablename__ = "store_settings"

    id = Column(String(32), primary_key=True, default=STORE_SETTINGS_ID)
    store_enabled = Column(Boolean, nullable=True)
    tax_percentage = Column(Float, nullable=True)
    tax_enabled = Column(Boolean, nullable=True)
    delivery_methods = Column(JSON, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_record(self) -> dict:
        record = {
            "storeEnabled": self.store_enabled,
            "taxPercentage": self.tax_percentage,
            "deliveryMethods": self.delivery_methods,
        }
        if self.tax_enabled is not None:
            record["taxEnabled"] = self.tax_enabled
        return record


class Order(Base):
    """
    A committed order. `user_data` is a write-time copy of the customer
    profile; later profile edits never change historical orders.
    """
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
    )

    id = Column(String(32), primary_key=True)
    user_id = Column(String(128), nullable=False)
    user_data = Column(JSON, nullable=False)   # {uid, firstName, lastName, email}
    items = Column(JSON, nullable=False)
    totals = Column(JSON, nullable=False)      # {subtotal, taxAmount, taxPercentage, shippingCost, total, itemCount}
    status = Column(String(32), nullable=False, default="pending")
    delivery_method = Column(String(32), nullable=False)
    shipping_address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)
    payment_method = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def to_record(self) -> dict:
        record = {
            "id": self.id,
            "userId": self.user_id,
            "userData": self.user_data,
            "items": self.items,
            "totals": self.totals,
            "status": self.status,
            "deliveryMethod": self.delivery_method,
            "paymentMethod": self.payment_method,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        for key, value in (
            ("shippingAddress", self.shipping_address),
            ("billingAddress", self.billing_address),
            ("notes", self.notes),
        ):
            if value is not None:
                record[key] = value
        return record


class Counter(Base):
    """Metadata counters, e.g. 'orders', 'sales.total', 'sales.byDeliveryMethod.pickup'."""
    __tablename__ = "counters"

    key = Column(String(100), primary_key=True)
    value = Column(Integer, nullable=False, default=0)


class OutboxTask(Base):
    """
    Post-commit side effect, written in the same transaction as its order.
    status: pending -> running -> done | skipped | failed (or back to pending)
    """
    __tablename__ = "outbox_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(32), nullable=False, index=True)
    kind = Column(String(50), nullable=False)
    payload = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)
