# storefront/api/checkout.py
# Роут оформления заказа из корзины.
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services.checkout import CheckoutOrchestrator

router = APIRouter()


class CheckoutIn(BaseModel):
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    payment_method: str | None = None
    notes: str | None = None


@router.post("", status_code=status.HTTP_201_CREATED)
def checkout(body: CheckoutIn, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    """Создаёт заказ из позиций корзины; для razorpay клиент затем вызывает /api/payments/{id}/initiate."""
    return CheckoutOrchestrator(db).checkout(user_id, body.model_dump())
