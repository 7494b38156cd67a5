# storefront/services/assets.py
# Идемпотентная инициализация корзины и списка желаний пользователя.
# Уникальный user_id в carts/wishlists: серверная гарантия "ровно одна коллекция",
# повторные и параллельные вызовы получают уже существующие записи.
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.db.session import commit_or_raise
from storefront.models.cart import Cart, Wishlist

logger = logging.getLogger(__name__)


def get_or_create_for_user(db: Session, model, user_id: str):
    """
    SELECT, а если записи нет, INSERT в savepoint.
    Проигравший гонку получает IntegrityError и перечитывает запись победителя.
    """
    existing = db.query(model).filter(model.user_id == user_id).first()
    if existing is not None:
        return existing
    try:
        with db.begin_nested():
            record = model(user_id=user_id)
            db.add(record)
        return record
    except IntegrityError:
        logger.info(f"{model.__tablename__}: concurrent create for user {user_id}, re-reading")
        return db.query(model).filter(model.user_id == user_id).one()


def initialize_user_assets(db: Session, user_id: str) -> dict:
    cart = get_or_create_for_user(db, Cart, user_id)
    wishlist = get_or_create_for_user(db, Wishlist, user_id)
    commit_or_raise(db, "Failed to initialize user assets")
    result = {
        "cart_id": cart.id,
        "wishlist_id": wishlist.id,
        "user_id": user_id,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }
    logger.info(f"Initialized assets for user {user_id}: cart={cart.id} wishlist={wishlist.id}")
    return result
