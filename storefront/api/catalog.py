# storefront/api/catalog.py
# Публичные роуты каталога: категории, товары, подсказки поиска. Авторизация не требуется.
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.services import catalog

router = APIRouter()


def _split(value: str | None) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    return {"categories": [c.to_dict() for c in catalog.list_categories(db)]}


@router.get("/categories/tree")
def category_tree(db: Session = Depends(get_db)):
    return {"categories": catalog.category_tree(db)}


@router.get("/categories/{slug}")
def get_category(slug: str, db: Session = Depends(get_db)):
    return {"category": catalog.get_category_by_slug(db, slug).to_dict()}


@router.get("/products")
def list_products(
    category_id: str | None = None,
    category: str | None = Query(None, description="Slug категории"),
    q: str | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    sizes: str | None = Query(None, description="Через запятую: S,M,L"),
    colors: str | None = None,
    in_stock: bool = False,
    sort_by: str = "created_at",
    order: str = "desc",
    page: int = 1,
    page_size: int = 24,
    db: Session = Depends(get_db),
):
    filters = catalog.ProductFilters(
        category_id=category_id,
        category_slug=category,
        query=q,
        min_price=min_price,
        max_price=max_price,
        sizes=[s.upper() for s in _split(sizes)],
        colors=_split(colors),
        in_stock=in_stock,
    )
    return catalog.list_products(db, filters, sort_by=sort_by, order=order, page=page, page_size=page_size)


@router.get("/products/slug/{slug}")
def get_product_by_slug(slug: str, db: Session = Depends(get_db)):
    return {"product": catalog.get_product_by_slug(db, slug).to_detail_dict()}


@router.get("/products/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    return {"product": catalog.get_product(db, product_id).to_detail_dict()}


@router.get("/search/suggestions")
def search_suggestions(q: str = "", limit: int = Query(5, ge=1, le=20), db: Session = Depends(get_db)):
    return {"suggestions": catalog.search_suggestions(db, q, limit)}
