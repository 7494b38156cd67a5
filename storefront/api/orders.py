# storefront/api/orders.py
# Роуты истории заказов: список, детали, отмена, возврат.
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services import orders as order_service

router = APIRouter()


class CancelIn(BaseModel):
    reason: str | None = None


class ReturnItemIn(BaseModel):
    order_item_id: str
    quantity: int


class ReturnIn(BaseModel):
    reason: str | None = None
    items: list[ReturnItemIn] = Field(default_factory=list)


@router.get("")
def list_orders(
    page: int = 1,
    limit: int = order_service.DEFAULT_PAGE_SIZE,
    status: str | None = None,
    payment_status: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    data = order_service.list_orders(
        db, user_id,
        page=page, limit=limit, status=status, payment_status=payment_status,
        date_from=date_from, date_to=date_to,
    )
    return {"success": True, "data": data}


@router.get("/{order_id}")
def get_order(order_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return {"success": True, "data": order_service.get_order_detail(db, user_id, order_id)}


@router.post("/{order_id}/cancel")
def cancel_order(order_id: str, body: CancelIn, user_id: str = Depends(get_current_user_id),
                 db: Session = Depends(get_db)):
    order = order_service.cancel_order(db, user_id, order_id, body.reason)
    return {
        "success": True,
        "data": {"message": "Order cancelled successfully", "order": order.to_dict()},
        "message": "Order has been cancelled and refund initiated if applicable",
    }


@router.post("/{order_id}/return")
def request_return(order_id: str, body: ReturnIn, user_id: str = Depends(get_current_user_id),
                   db: Session = Depends(get_db)):
    data = order_service.request_return(db, user_id, order_id, body.reason, [i.model_dump() for i in body.items])
    return {
        "success": True,
        "data": data,
        "message": "Return request has been submitted. Our team will contact you soon.",
    }
