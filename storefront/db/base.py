# storefront/db/base.py
# Общая declarative база для SQLAlchemy.
# Этот модуль должен быть максимально простым и не импортировать модели,
# чтобы избежать циклических импортов. Модели должны импортировать Base отсюда.

import uuid

from sqlalchemy.orm import declarative_base

# Единственная точка определения Base для всех моделей
Base = declarative_base()


def new_id() -> str:
    """UUID в виде строки, первичный ключ для всех таблиц магазина."""
    return str(uuid.uuid4())


def money_to_float(value) -> float | None:
    """Numeric -> float для JSON-ответов; None остаётся None."""
    return float(value) if value is not None else None


def iso(value) -> str | None:
    return value.isoformat() if value is not None else None
