# scripts/check_db.py
# Проверяет подключение к DATABASE_URL и наличие таблиц магазина.
from sqlalchemy import create_engine, inspect, text

from storefront.core.config import settings
from storefront.db.base import Base

import storefront.models.address
import storefront.models.profile
import storefront.models.product
import storefront.models.cart
import storefront.models.order


def main():
    url = settings.DATABASE_URL
    print('Trying to connect to:', url)
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, connect_args=connect_args)
    try:
        with engine.connect() as conn:
            print('Connection OK, SELECT 1 ->', conn.execute(text("SELECT 1")).scalar())
            existing = set(inspect(conn).get_table_names())
    except Exception as e:
        print('Connection failed:', e)
        return

    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        print('Missing tables:', ', '.join(missing))
    else:
        print('All', len(Base.metadata.tables), 'tables present')


if __name__ == '__main__':
    main()
