# storefront/api/cart.py
# Роуты корзины: просмотр, добавление, изменение количества, перенос в "отложенные", слияние гостевой корзины.
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services import cart as cart_service

router = APIRouter()


class CartItemIn(BaseModel):
    product_variant_id: str | None = None
    quantity: int = 1
    item_type: str = "cart"


class QuantityIn(BaseModel):
    quantity: int


class MoveIn(BaseModel):
    item_type: str


class GuestItemIn(BaseModel):
    product_variant_id: str | None = None
    quantity: int = 1


class GuestCartIn(BaseModel):
    guest_items: list[GuestItemIn] = Field(default_factory=list)


@router.get("")
def get_cart(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return cart_service.cart_summary(cart_service.get_cart(db, user_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def add_to_cart(body: CartItemIn, response: Response, user_id: str = Depends(get_current_user_id),
                db: Session = Depends(get_db)):
    item, created = cart_service.add_item(db, user_id, body.product_variant_id, body.quantity, body.item_type)
    if not created:
        response.status_code = status.HTTP_200_OK
        return {"message": "Cart item quantity updated", "cartItem": item.to_dict()}
    return {"message": "Item added to cart successfully", "cartItem": item.to_dict()}


@router.post("/merge-guest")
def merge_guest_cart(body: GuestCartIn, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    result = cart_service.merge_guest_items(db, user_id, [i.model_dump() for i in body.guest_items])
    return {"message": "Guest cart merged", **result}


@router.put("/{item_id}")
def update_cart_item(item_id: str, body: QuantityIn, user_id: str = Depends(get_current_user_id),
                     db: Session = Depends(get_db)):
    item = cart_service.update_item_quantity(db, user_id, item_id, body.quantity)
    return {"message": "Cart item updated successfully", "cartItem": item.to_dict()}


@router.patch("/{item_id}/move")
def move_cart_item(item_id: str, body: MoveIn, user_id: str = Depends(get_current_user_id),
                   db: Session = Depends(get_db)):
    item = cart_service.move_item(db, user_id, item_id, body.item_type)
    return {"message": "Cart item moved successfully", "cartItem": item.to_dict()}


@router.delete("/{item_id}")
def delete_cart_item(item_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    cart_service.remove_item(db, user_id, item_id)
    return {"message": "Cart item deleted successfully"}
