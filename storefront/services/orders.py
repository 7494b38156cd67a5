# storefront/services/orders.py
# История заказов пользователя: список с фильтрами, детали, отмена и возврат.
import json
import logging
import math
import time
from datetime import datetime, timedelta

from sqlalchemy.orm import Session, selectinload

from storefront.core.config import settings
from storefront.core.errors import NotFoundError, ValidationFailedError
from storefront.db.session import commit_or_raise
from storefront.models.order import (
    CANCELLABLE_ORDER_STATUSES,
    Order,
    OrderPayment,
    OrderStatus,
    OrderStatusHistory,
    PaymentProviderStatus,
    PaymentStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def add_status_history(db: Session, order: Order, status: OrderStatus, notes: str, changed_by: str | None) -> OrderStatusHistory:
    entry = OrderStatusHistory(order_id=order.id, status=status, notes=notes, changed_by=changed_by)
    db.add(entry)
    return entry


def get_owned_order(db: Session, user_id: str, order_id: str, with_details: bool = False) -> Order:
    """Чужой заказ неотличим от несуществующего: оба дают 404."""
    q = db.query(Order)
    if with_details:
        q = q.options(
            selectinload(Order.items),
            selectinload(Order.status_history),
            selectinload(Order.payments),
            selectinload(Order.shipping_address),
            selectinload(Order.billing_address),
        )
    order = q.filter(Order.id == order_id, Order.user_id == user_id).first()
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def _parse_date(value: str | None, label: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValidationFailedError(errors=[f"{label} must be an ISO-8601 date"])


def list_orders(
    db: Session,
    user_id: str,
    *,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    status: str | None = None,
    payment_status: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> dict:
    """Краткие сводки заказов, новые сверху; {data, total, page, per_page, total_pages}."""
    page = page if page and page > 0 else 1
    limit = min(limit if limit and limit > 0 else DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE)

    q = db.query(Order).filter(Order.user_id == user_id)
    if status:
        try:
            q = q.filter(Order.order_status == OrderStatus(status))
        except ValueError:
            raise ValidationFailedError(errors=[f"Unknown order status: {status}"])
    if payment_status:
        try:
            q = q.filter(Order.payment_status == PaymentStatus(payment_status))
        except ValueError:
            raise ValidationFailedError(errors=[f"Unknown payment status: {payment_status}"])
    start = _parse_date(date_from, "date_from")
    end = _parse_date(date_to, "date_to")
    if start is not None:
        q = q.filter(Order.created_at >= start)
    if end is not None:
        q = q.filter(Order.created_at <= end)

    total = q.count()
    orders = (
        q.options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    summaries = [
        {
            "id": o.id,
            "order_number": o.order_number,
            "created_at": o.created_at.isoformat() if o.created_at else None,
            "total_amount": float(o.total_amount),
            "order_status": o.order_status.value,
            "payment_status": o.payment_status.value,
            "item_count": len(o.items),
        }
        for o in orders
    ]
    return {
        "data": summaries,
        "total": total,
        "page": page,
        "per_page": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


def _within_return_window(order: Order) -> bool:
    if order.created_at is None:
        return False
    return datetime.utcnow() - order.created_at <= timedelta(days=settings.RETURN_WINDOW_DAYS)


def get_order_detail(db: Session, user_id: str, order_id: str) -> dict:
    order = get_owned_order(db, user_id, order_id, with_details=True)
    data = order.to_detail_dict(with_history=True)
    data["can_cancel"] = order.order_status in CANCELLABLE_ORDER_STATUSES
    data["can_return"] = order.order_status == OrderStatus.delivered and _within_return_window(order)
    data["return_window_days"] = settings.RETURN_WINDOW_DAYS
    return data


def cancel_order(db: Session, user_id: str, order_id: str, reason: str | None) -> Order:
    """Отмена возможна только в pending/confirmed; оплаченный заказ помечается к возврату денег."""
    if not reason or not reason.strip():
        raise ValidationFailedError(errors=["Cancellation reason is required"])
    order = get_owned_order(db, user_id, order_id)
    if order.order_status not in CANCELLABLE_ORDER_STATUSES:
        raise ValidationFailedError("This order cannot be cancelled")

    order.order_status = OrderStatus.cancelled
    add_status_history(db, order, OrderStatus.cancelled, f"Cancelled by user: {reason.strip()}", user_id)

    if order.payment_status == PaymentStatus.completed:
        # TODO: вызывать Razorpay Refunds API, сейчас возврат отмечается только в БД
        captured = (
            db.query(OrderPayment)
            .filter(OrderPayment.order_id == order.id, OrderPayment.status == PaymentProviderStatus.captured)
            .all()
        )
        for payment in captured:
            payment.status = PaymentProviderStatus.refunded
        order.payment_status = PaymentStatus.refunded
        logger.info(f"Order {order.id}: {len(captured)} captured payments marked refunded")

    commit_or_raise(db, "Failed to cancel order")
    db.refresh(order)
    logger.info(f"Order {order.id} cancelled by user {user_id}")
    return order


def request_return(db: Session, user_id: str, order_id: str, reason: str | None, items: list[dict] | None) -> dict:
    if not reason or not reason.strip():
        raise ValidationFailedError(errors=["Return reason is required"])
    if not items:
        raise ValidationFailedError(errors=["At least one item must be selected for return"])

    order = get_owned_order(db, user_id, order_id, with_details=True)
    if order.order_status != OrderStatus.delivered:
        raise ValidationFailedError("Only delivered orders can be returned")
    if not _within_return_window(order):
        raise ValidationFailedError(f"Return window has expired ({settings.RETURN_WINDOW_DAYS} days)")

    ordered = {i.id: i.quantity for i in order.items}
    for item in items:
        item_id = item.get("order_item_id")
        if item_id not in ordered:
            raise ValidationFailedError("Invalid order item ID")
        if int(item.get("quantity") or 0) < 1:
            raise ValidationFailedError("Return quantity must be at least 1")
        if int(item["quantity"]) > ordered[item_id]:
            raise ValidationFailedError("Return quantity exceeds ordered quantity")

    order.order_status = OrderStatus.returned
    order.notes = f"Return requested: {reason.strip()}. Items: {json.dumps(items)}"
    add_status_history(db, order, OrderStatus.returned, f"Return requested by user: {reason.strip()}", user_id)
    commit_or_raise(db, "Failed to process return request")

    return_id = f"ret_{int(time.time() * 1000)}"
    logger.info(f"Return {return_id} requested for order {order.id}")
    return {"message": "Return request submitted successfully", "return_id": return_id}
