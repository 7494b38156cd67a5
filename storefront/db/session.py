# storefront/db/session.py
# Инициализация SQLAlchemy engine и фабрики сессий.
# Поддерживает как Postgres, так и SQLite (для тестов/локального использования).

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from storefront.core.config import settings
from storefront.core.errors import ConflictError, DependencyFailureError

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL


def enable_sqlite_savepoints(target: Engine) -> None:
    """
    pysqlite сам открывает транзакцию только перед DML, поэтому SAVEPOINT
    оказывается внешней транзакцией и RELEASE её коммитит.
    Берём управление BEGIN на себя, чтобы begin_nested() работал как в Postgres.
    """

    @event.listens_for(target, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(target, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


# Для sqlite требуется connect_args; для Postgres — пустой dict
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# pool_pre_ping полезен для долгоживущих соединений с Postgres
engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True
)
if DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Зависимость для получения сессии БД в эндпоинтах."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def commit_or_raise(db: Session, message: str) -> None:
    """Коммитит сессию; при ошибке хранилища откатывает и бросает DependencyFailureError."""
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError("Order was modified concurrently, please retry")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{message}: {e}")
        raise DependencyFailureError(message)
