# storefront/api/wishlist.py
# Роуты списка желаний.
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services import wishlist as wishlist_service

router = APIRouter()


class WishlistItemIn(BaseModel):
    product_variant_id: str | None = None


@router.get("")
def get_wishlist(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return wishlist_service.get_wishlist(db, user_id)


@router.post("", status_code=status.HTTP_201_CREATED)
def add_to_wishlist(body: WishlistItemIn, response: Response, user_id: str = Depends(get_current_user_id),
                    db: Session = Depends(get_db)):
    item, created = wishlist_service.add_to_wishlist(db, user_id, body.product_variant_id)
    if not created:
        response.status_code = status.HTTP_200_OK
        return {"message": "Item already in wishlist", "wishlistItem": item.to_dict()}
    return {"message": "Item added to wishlist successfully", "wishlistItem": item.to_dict()}


@router.delete("/{item_id}")
def remove_from_wishlist(item_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    wishlist_service.remove_from_wishlist(db, user_id, item_id)
    return {"message": "Item removed from wishlist successfully"}
