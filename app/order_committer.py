"""
Transactional order committer.

One attempt is one database transaction:

  read user -> check profile -> read settings -> read products (locked)
  -> validate -> insert order + write stock + enqueue side effects -> commit

Products carry a version counter (SQLAlchemy version_id_col). If another
checkout changes a product between our read and our write, the UPDATE
matches no row, the flush raises StaleDataError and the whole attempt is
retried from a fresh read. Attempts are bounded; exhaustion raises
TransactionConflictError.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging
import random
import time
import uuid

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.metrics import metrics_collector
from app.models import Order, OutboxTask, Product, User
from app.store_settings import load_settings_snapshot
from shopcore.catalog import parse_product
from shopcore.core.config import ShopConfig, get_config
from shopcore.errors import TransactionConflictError
from shopcore.orders import FieldError, OrderSubmission
from shopcore.pricing import round_money
from shopcore.validation import OrderValidator, ValidationOutcome

logger = logging.getLogger("shop.orders")

# Side effects enqueued with every committed order.
ORDER_COUNTERS = "order_counters"
USER_PURCHASES = "user_purchases"
SEARCH_INDEX = "search_index"
CONFIRMATION_EMAIL = "confirmation_email"
ORDER_TASK_KINDS = (ORDER_COUNTERS, USER_PURCHASES, SEARCH_INDEX, CONFIRMATION_EMAIL)

# Postgres SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}
_CONFLICT_MARKERS = ("database is locked", "deadlock", "could not serialize")


@dataclass
class CommitResult:
    status: str  # committed | rejected | not_found
    order_id: Optional[str] = None
    errors: List[FieldError] = field(default_factory=list)
    attempts: int = 1

    @property
    def committed(self) -> bool:
        return self.status == "committed"


def is_conflict(exc: Exception) -> bool:
    """True for errors caused by a concurrent writer, which a retry can resolve."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        if getattr(exc.orig, "pgcode", None) in _CONFLICT_SQLSTATES:
            return True
        message = str(exc.orig).lower()
        return any(marker in message for marker in _CONFLICT_MARKERS)
    return False


def check_user_data(user: User) -> List[FieldError]:
    """First name, last name and email must be present to snapshot the customer."""
    errors = []
    for attr, field_name, label in (
        ("first_name", "userData.firstName", "first name"),
        ("last_name", "userData.lastName", "last name"),
        ("email", "userData.email", "email"),
    ):
        value = getattr(user, attr)
        if not value or not str(value).strip():
            errors.append(FieldError(field_name, f"The customer profile is missing a {label}"))
    return errors


class OrderCommitter:
    """
    Validates and commits one order with optimistic retry.

    The session is owned by the caller; each attempt ends in a commit or a
    rollback on it.
    """

    def __init__(
        self,
        db: Session,
        config: Optional[ShopConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.config = config or get_config()
        self.sleep = sleep

    def create_order(self, submission: OrderSubmission) -> CommitResult:
        max_attempts = max(1, self.config.order_max_attempts)
        now = datetime.now(timezone.utc)
        last_error = None

        for attempt in range(1, max_attempts + 1):
            try:
                result = self._attempt(submission, now)
            except (StaleDataError, DBAPIError) as exc:
                self.db.rollback()
                if not is_conflict(exc):
                    raise
                last_error = str(exc)
                metrics_collector.record_retry()
                logger.warning(
                    "orders: method=create_order user_id=%s conflict attempt=%d/%d error=%s",
                    submission.user_id, attempt, max_attempts, exc.__class__.__name__,
                )
                if attempt < max_attempts:
                    self.sleep(self._backoff_seconds(attempt))
                continue

            result.attempts = attempt
            logger.info(
                "orders: method=create_order user_id=%s status=%s order_id=%s attempts=%d",
                submission.user_id, result.status, result.order_id, attempt,
            )
            return result

        logger.error(
            "orders: method=create_order user_id=%s status=conflict attempts=%d",
            submission.user_id, max_attempts,
        )
        raise TransactionConflictError(max_attempts, last_error)

    def _backoff_seconds(self, attempt: int) -> float:
        base = self.config.order_retry_backoff_ms * (2 ** (attempt - 1))
        return base * random.uniform(0.5, 1.5) / 1000.0

    def _attempt(self, submission: OrderSubmission, now: datetime) -> CommitResult:
        db = self.db
        try:
            user = db.get(User, submission.user_id)
            if user is None:
                db.rollback()
                return CommitResult(status="not_found")

            user_errors = check_user_data(user)
            if user_errors:
                db.rollback()
                return CommitResult(status="rejected", errors=user_errors)

            snapshot = load_settings_snapshot(db)
            rows = self._lock_products(submission.product_ids)
            products = {pid: parse_product(pid, row.to_record()) for pid, row in rows.items()}

            validator = OrderValidator(
                snapshot,
                tolerance=self.config.money_tolerance,
                tax_fail_open=self.config.tax_fail_open,
            )
            outcome = validator.validate(submission, products)
            if not outcome.ok:
                db.rollback()
                return CommitResult(status="rejected", errors=outcome.errors)

            order = self._build_order(submission, user, outcome, now)
            db.add(order)

            for mutation in outcome.mutations:
                row = rows[mutation.product_id]
                row.stock = mutation.stock
                if mutation.variants is not None:
                    row.variants = mutation.variants

            for kind in ORDER_TASK_KINDS:
                db.add(OutboxTask(order_id=order.id, kind=kind, payload=_task_payload(kind, order)))

            db.commit()
            return CommitResult(status="committed", order_id=order.id)
        except Exception:
            db.rollback()
            raise

    def _lock_products(self, product_ids: List[str]) -> Dict[str, Product]:
        """Read every referenced product; FOR UPDATE where the dialect supports it."""
        if not product_ids:
            return {}
        rows = (
            self.db.query(Product)
            .filter(Product.id.in_(product_ids))
            .with_for_update()
            .all()
        )
        return {row.id: row for row in rows}

    def _build_order(
        self,
        submission: OrderSubmission,
        user: User,
        outcome: ValidationOutcome,
        now: datetime,
    ) -> Order:
        sent = submission.totals
        tax_amount = round_money(outcome.expected_tax_amount)
        subtotal = outcome.calculated_subtotal
        return Order(
            id=uuid.uuid4().hex,
            user_id=submission.user_id,
            user_data={
                "uid": user.id,
                "firstName": user.first_name,
                "lastName": user.last_name,
                "email": user.email,
            },
            items=[item.to_record() for item in outcome.items],
            totals={
                "subtotal": subtotal,
                "taxAmount": tax_amount,
                "taxPercentage": sent.tax_percentage,
                "shippingCost": sent.shipping_cost,
                "total": round_money(subtotal + tax_amount + sent.shipping_cost),
                "itemCount": outcome.item_count,
            },
            status="pending",
            delivery_method=submission.delivery_method,
            shipping_address=submission.shipping_address,
            billing_address=submission.billing_address,
            payment_method=submission.payment_method,
            notes=submission.notes,
            created_at=now,
            updated_at=now,
        )


def _task_payload(kind: str, order: Order) -> Optional[dict]:
    if kind == ORDER_COUNTERS:
        return {"deliveryMethod": order.delivery_method, "delta": 1}
    if kind == USER_PURCHASES:
        return {"userId": order.user_id, "delta": 1}
    return None
