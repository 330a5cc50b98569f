"""
Post-commit side effects (transactional outbox).

The committer writes one outbox_tasks row per side effect in the same
transaction as the order. The dispatcher runs them afterwards, each in its
own transaction:

  pending --claim--> running (one dispatcher only)
  running --ok--> done
  running --collaborator not configured--> skipped
  running --error--> pending (attempts += 1) ... --> failed after max attempts

A failing task is logged and recorded on its row; it never affects the
committed order or the other tasks.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.email_service import EmailSender
from app.metrics import metrics_collector
from app.models import Counter, Order, OutboxTask, User
from app.order_committer import (
    CONFIRMATION_EMAIL,
    ORDER_COUNTERS,
    SEARCH_INDEX,
    USER_PURCHASES,
)
from app.search_index import SearchIndexClient
from shopcore.core.config import ShopConfig, get_config
from shopcore.errors import ConfigurationError, SideEffectError
from shopcore.policy import DeliveryMethod

logger = logging.getLogger("shop.side_effects")

# Enqueued when an order is deleted.
REVERT_ORDER_COUNTERS = "revert_order_counters"
SEARCH_REMOVE = "search_remove"

PENDING, RUNNING, DONE, SKIPPED, FAILED = "pending", "running", "done", "skipped", "failed"

_DELIVERY_METHODS = {m.value for m in DeliveryMethod}


def increment_counter(db: Session, key: str, delta: int) -> None:
    row = db.get(Counter, key)
    if row is None:
        db.add(Counter(key=key, value=delta))
        db.flush()
    else:
        row.value = Counter.value + delta


def read_counters(db: Session) -> Dict[str, int]:
    return {row.key: row.value for row in db.query(Counter).all()}


def apply_order_counters(db: Session, order_id: str, delivery_method: Optional[str], delta: int) -> None:
    """orders, sales.total and sales.byDeliveryMethod.<method> move by delta."""
    increment_counter(db, "orders", delta)
    if not delivery_method:
        logger.warning("side_effects: order_id=%s has no delivery method, skipping sales counters", order_id)
        return
    increment_counter(db, "sales.total", delta)
    if delivery_method in _DELIVERY_METHODS:
        increment_counter(db, f"sales.byDeliveryMethod.{delivery_method}", delta)
    else:
        logger.warning("side_effects: order_id=%s unknown delivery method %r", order_id, delivery_method)


def delete_order(db: Session, order_id: str) -> bool:
    """
    Delete an order and enqueue the tasks that undo its side effects.
    The caller commits.
    """
    order = db.get(Order, order_id)
    if order is None:
        return False
    payload = {
        "deliveryMethod": order.delivery_method,
        "userId": (order.user_data or {}).get("uid") or order.user_id,
        "delta": -1,
    }
    db.add(OutboxTask(order_id=order_id, kind=REVERT_ORDER_COUNTERS, payload=payload))
    db.add(OutboxTask(order_id=order_id, kind=SEARCH_REMOVE))
    db.delete(order)
    logger.info("side_effects: method=delete_order order_id=%s", order_id)
    return True


class OutboxDispatcher:
    """Runs pending outbox tasks with per-task fault isolation."""

    def __init__(
        self,
        session_factory: sessionmaker,
        search_client: Optional[SearchIndexClient] = None,
        email_sender: Optional[EmailSender] = None,
        config: Optional[ShopConfig] = None,
    ):
        self.session_factory = session_factory
        self.config = config or get_config()
        self.search_client = search_client or SearchIndexClient(self.config)
        self.email_sender = email_sender or EmailSender(self.config)
        self._handlers: Dict[str, Callable[[Session, OutboxTask], None]] = {
            ORDER_COUNTERS: self._order_counters,
            USER_PURCHASES: self._user_purchases,
            SEARCH_INDEX: self._search_index,
            CONFIRMATION_EMAIL: self._confirmation_email,
            REVERT_ORDER_COUNTERS: self._revert_order_counters,
            SEARCH_REMOVE: self._search_remove,
        }

    # ─── Entry points ────────────────────────────────────────────────────────

    def dispatch_order(self, order_id: str) -> Dict[str, str]:
        """Run every pending task of one order. Returns {kind: status}."""
        try:
            with self.session_factory() as db:
                tasks = (
                    db.query(OutboxTask.id, OutboxTask.kind)
                    .filter(OutboxTask.order_id == order_id, OutboxTask.status == PENDING)
                    .order_by(OutboxTask.id)
                    .all()
                )
        except SQLAlchemyError:
            logger.exception("side_effects: could not load tasks for order_id=%s", order_id)
            return {}
        return {kind: self.run_task(task_id) for task_id, kind in tasks}

    def dispatch_pending(self, limit: Optional[int] = None) -> Dict[int, str]:
        """Run the oldest pending tasks across all orders. Returns {task_id: status}."""
        limit = limit or self.config.outbox_batch_size
        with self.session_factory() as db:
            task_ids: List[int] = [
                row.id
                for row in db.query(OutboxTask.id)
                .filter(OutboxTask.status == PENDING)
                .order_by(OutboxTask.id)
                .limit(limit)
                .all()
            ]
        return {task_id: self.run_task(task_id) for task_id in task_ids}

    def run_task(self, task_id: int) -> str:
        """
        Claim one task, run it, and record the result on its row.

        The claim (pending -> running) is a conditional UPDATE committed before
        the handler runs, so a task is executed by at most one dispatcher.
        Returns the task's current status when it was not ours to claim.
        """
        db = self.session_factory()
        try:
            claimed = (
                db.query(OutboxTask)
                .filter(OutboxTask.id == task_id, OutboxTask.status == PENDING)
                .update({OutboxTask.status: RUNNING}, synchronize_session=False)
            )
            db.commit()
            task = db.get(OutboxTask, task_id)
            if task is None:
                return "missing"
            if claimed != 1:
                logger.info("side_effects: task_id=%s not claimed, status=%s", task_id, task.status)
                return task.status

            kind, order_id = task.kind, task.order_id
            handler = self._handlers.get(kind)
            try:
                if handler is None:
                    raise SideEffectError(kind, order_id, "unknown task kind")
                handler(db, task)
                status, error = DONE, None
            except ConfigurationError as exc:
                db.rollback()
                status, error = SKIPPED, str(exc)
                logger.warning("side_effects: task_id=%s kind=%s order_id=%s skipped: %s", task_id, kind, order_id, exc)
            except Exception as exc:
                db.rollback()
                status, error = PENDING, f"{exc.__class__.__name__}: {exc}"
                logger.error(
                    "side_effects: task_id=%s kind=%s order_id=%s failed: %s",
                    task_id, kind, order_id, error, exc_info=True,
                )

            task = db.get(OutboxTask, task_id)
            task.attempts = (task.attempts or 0) + 1
            task.last_error = error
            if status == PENDING and task.attempts >= self.config.outbox_max_attempts:
                status = FAILED
            task.status = status
            if status != PENDING:
                task.processed_at = datetime.now(timezone.utc)
            db.commit()

            metrics_collector.record_side_effect(kind, status)
            logger.info("side_effects: task_id=%s kind=%s order_id=%s status=%s", task_id, kind, order_id, status)
            return status
        except SQLAlchemyError:
            db.rollback()
            logger.exception("side_effects: task_id=%s could not record result", task_id)
            return "error"
        finally:
            db.close()

    # ─── Handlers ────────────────────────────────────────────────────────────

    def _load_order(self, db: Session, task: OutboxTask) -> Order:
        order = db.get(Order, task.order_id)
        if order is None:
            raise SideEffectError(task.kind, task.order_id, "order not found")
        return order

    def _order_counters(self, db: Session, task: OutboxTask) -> None:
        payload = task.payload or {}
        apply_order_counters(db, task.order_id, payload.get("deliveryMethod"), int(payload.get("delta", 1)))

    def _adjust_purchases(self, db: Session, task: OutboxTask, user_id: Optional[str], delta: int) -> None:
        if not user_id:
            logger.warning("side_effects: order_id=%s has no user id, skipping purchase counter", task.order_id)
            return
        user = db.get(User, user_id)
        if user is None:
            raise SideEffectError(task.kind, task.order_id, f"user {user_id} not found")
        user.purchases = User.purchases + delta

    def _user_purchases(self, db: Session, task: OutboxTask) -> None:
        payload = task.payload or {}
        self._adjust_purchases(db, task, payload.get("userId"), int(payload.get("delta", 1)))

    def _revert_order_counters(self, db: Session, task: OutboxTask) -> None:
        payload = task.payload or {}
        apply_order_counters(db, task.order_id, payload.get("deliveryMethod"), -1)
        self._adjust_purchases(db, task, payload.get("userId"), -1)

    def _search_index(self, db: Session, task: OutboxTask) -> None:
        order = self._load_order(db, task)
        self.search_client.sync_order(order.id, order.to_record())

    def _search_remove(self, db: Session, task: OutboxTask) -> None:
        self.search_client.remove_order(task.order_id)

    def _confirmation_email(self, db: Session, task: OutboxTask) -> None:
        order = self._load_order(db, task)
        self.email_sender.send_order_confirmation(order.to_record())
