# storefront/api/assets.py
# Роут инициализации корзины и списка желаний после входа пользователя.
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from storefront.core.errors import ForbiddenError
from storefront.core.security import get_current_user_id
from storefront.db.session import get_db
from storefront.services.assets import initialize_user_assets

router = APIRouter()


class AssetsIn(BaseModel):
    user_id: str | None = None


@router.post("/initialize-assets")
def initialize_assets(body: AssetsIn | None = None, user_id: str = Depends(get_current_user_id),
                      db: Session = Depends(get_db)):
    """Идемпотентно: повторный вызов возвращает те же cart_id и wishlist_id."""
    if body is not None and body.user_id and body.user_id != user_id:
        raise ForbiddenError("User ID mismatch")
    return initialize_user_assets(db, user_id)
