"""
Order endpoints.

- POST /orders/createOrder: validate and commit an order, then schedule its
  side effects as a background task
- POST /admin/outbox/dispatch: re-run pending side effects
- DELETE /admin/orders/{order_id}: delete an order and revert its counters
"""

from typing import Optional
import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from app.database import get_db, get_session_factory
from app.metrics import metrics_collector, record_request_metrics
from app.order_committer import OrderCommitter
from app.schemas import CreateOrderRequest, CreateOrderResponse, DispatchResponse
from app.side_effects import OutboxDispatcher, delete_order
from shopcore.core.config import get_config
from shopcore.errors import TransactionConflictError

logger = logging.getLogger("shop.orders_api")

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])

MSG_CREATED = "Order created successfully"
MSG_REJECTED = "The order contains validation errors"
MSG_USER_NOT_FOUND = "User not found"
MSG_INTERNAL = "Internal server error while creating the order"


def get_dispatcher(session_factory: sessionmaker = Depends(get_session_factory)) -> OutboxDispatcher:
    return OutboxDispatcher(session_factory)


def verify_admin_api_key(api_key: Optional[str] = Header(None, alias="X-Admin-API-Key")):
    """
    Verify admin API key from configuration (ADMIN_API_KEY).
    Do not hardcode; set in .env and do not commit .env.
    """
    expected_key = get_config().admin_api_key
    if not expected_key or not expected_key.strip():
        raise HTTPException(status_code=503, detail="Admin API key not configured (set ADMIN_API_KEY in .env)")
    if api_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid admin API key")
    return api_key


def _envelope(status_code: int, message: str, errors=None) -> JSONResponse:
    body = CreateOrderResponse(success=False, message=message, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post(
    "/createOrder",
    status_code=201,
    response_model=CreateOrderResponse,
    response_model_exclude_none=True,
)
def create_order(
    request: CreateOrderRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher),
):
    """
    Create an order.

    201 {success, orderId, message}
    400 {success: false, message, errors: [{field, message}]}
    404 {success: false, message} when the user does not exist
    500 {success: false, message}
    """
    t0 = time.perf_counter()
    submission = request.to_submission()
    try:
        result = OrderCommitter(db, get_config()).create_order(submission)
    except TransactionConflictError as exc:
        metrics_collector.record_order_outcome("conflict")
        record_request_metrics("create_order", (time.perf_counter() - t0) * 1000, is_error=True)
        logger.error("orders_api: create_order user_id=%s gave up: %s", submission.user_id, exc)
        return _envelope(500, MSG_INTERNAL)
    except Exception:
        metrics_collector.record_order_outcome("error")
        record_request_metrics("create_order", (time.perf_counter() - t0) * 1000, is_error=True)
        raise

    metrics_collector.record_order_outcome(result.status)
    record_request_metrics("create_order", (time.perf_counter() - t0) * 1000)

    if result.status == "not_found":
        return _envelope(404, MSG_USER_NOT_FOUND)
    if result.status == "rejected":
        return _envelope(400, MSG_REJECTED, [e.to_dict() for e in result.errors])

    background_tasks.add_task(dispatcher.dispatch_order, result.order_id)
    return CreateOrderResponse(success=True, orderId=result.order_id, message=MSG_CREATED)


@admin_router.post("/outbox/dispatch", response_model=DispatchResponse)
def dispatch_outbox(
    limit: Optional[int] = None,
    dispatcher: OutboxDispatcher = Depends(get_dispatcher),
    api_key: str = Depends(verify_admin_api_key),
):
    """Run pending side-effect tasks (oldest first)."""
    results = dispatcher.dispatch_pending(limit)
    logger.info("orders_api: dispatch_outbox processed=%d", len(results))
    return DispatchResponse(success=True, processed=len(results), results={str(k): v for k, v in results.items()})


@admin_router.delete("/orders/{order_id}")
def remove_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher),
    api_key: str = Depends(verify_admin_api_key),
):
    """Delete an order; its counters and search entry are reverted afterwards."""
    try:
        deleted = delete_order(db, order_id)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
        db.commit()
    except HTTPException:
        raise
    except Exception:
        db.rollback()
        raise
    background_tasks.add_task(dispatcher.dispatch_order, order_id)
    return {"success": True, "orderId": order_id}
