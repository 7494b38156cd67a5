# storefront/api/payments.py
# Роуты оплаты заказа: Razorpay (инициация, повтор, колбэки успеха/неудачи) и COD.
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services.gateway import RazorpayGateway, get_gateway
from storefront.services.payments import PaymentInitiator, available_payment_methods

router = APIRouter()


class CustomerIn(BaseModel):
    name: str | None = None
    email: str | None = None
    contact: str | None = None


class InitiateIn(BaseModel):
    amount: float | None = None
    currency: str | None = None
    customer: CustomerIn | None = None


class RetryIn(BaseModel):
    customer: CustomerIn | None = None


class SuccessIn(BaseModel):
    payment_id: str
    razorpay_payment_id: str | None = None
    razorpay_order_id: str | None = None
    razorpay_signature: str | None = None


class FailureIn(BaseModel):
    payment_id: str
    reason: str | None = None


def _customer(body) -> dict | None:
    return body.customer.model_dump() if body is not None and body.customer else None


@router.get("/methods")
def payment_methods():
    return {"methods": available_payment_methods()}


@router.post("/{order_id}/initiate")
def initiate_payment(order_id: str, body: InitiateIn | None = None, user_id: str = Depends(get_current_user_id),
                     db: Session = Depends(get_db), gateway: RazorpayGateway = Depends(get_gateway)):
    body = body or InitiateIn()
    amount = str(body.amount) if body.amount is not None else None
    return PaymentInitiator(db, gateway).initialize_gateway_payment(
        user_id, order_id, amount=amount, currency=body.currency, customer=_customer(body)
    )


@router.post("/{order_id}/retry")
def retry_payment(order_id: str, body: RetryIn | None = None, user_id: str = Depends(get_current_user_id),
                  db: Session = Depends(get_db), gateway: RazorpayGateway = Depends(get_gateway)):
    return PaymentInitiator(db, gateway).retry_payment(user_id, order_id, customer=_customer(body))


@router.post("/{order_id}/success")
def payment_success(order_id: str, body: SuccessIn, user_id: str = Depends(get_current_user_id),
                    db: Session = Depends(get_db)):
    order = PaymentInitiator(db).handle_payment_success(
        user_id, order_id, body.payment_id,
        provider_payment_id=body.razorpay_payment_id,
        provider_order_id=body.razorpay_order_id,
        provider_signature=body.razorpay_signature,
    )
    return {"message": "Payment completed successfully", "order": order.to_dict()}


@router.post("/{order_id}/failure")
def payment_failure(order_id: str, body: FailureIn, user_id: str = Depends(get_current_user_id),
                    db: Session = Depends(get_db)):
    order = PaymentInitiator(db).handle_payment_failure(user_id, order_id, body.payment_id, body.reason)
    return {"message": "Payment failure recorded", "order": order.to_dict()}


@router.post("/{order_id}/cod")
def cash_on_delivery(order_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    confirmed = PaymentInitiator(db).handle_cash_on_delivery_order(user_id, order_id)
    return {"success": confirmed, "message": "COD order confirmed. Payment pending on delivery."}


@router.get("/{order_id}")
def payment_details(order_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    payments = PaymentInitiator(db).get_payment_details(user_id, order_id)
    return {"payments": [p.to_dict() for p in payments]}
