# storefront/services/catalog.py
# Чтение каталога: товары с вариантами, картинками и категорией; фильтры и сортировка -> SQL.
from dataclasses import dataclass, field
from decimal import Decimal
import math

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from storefront.core.errors import NotFoundError, ValidationFailedError
from storefront.models.product import Category, Product, ProductSize, ProductVariant

SORT_FIELDS = {
    "price": Product.base_price,
    "name": Product.name,
    "created_at": Product.created_at,
}
MAX_PAGE_SIZE = 100


@dataclass
class ProductFilters:
    category_id: str | None = None
    category_slug: str | None = None
    query: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    sizes: list[str] = field(default_factory=list)
    colors: list[str] = field(default_factory=list)
    in_stock: bool = False


def normalize_paging(page: int, page_size: int, max_page_size: int = MAX_PAGE_SIZE) -> tuple[int, int]:
    p = page if page and page > 0 else 1
    ps = page_size if page_size and page_size > 0 else 20
    ps = min(ps, max_page_size)
    return p, ps


def _with_details(q):
    return q.options(
        selectinload(Product.category),
        selectinload(Product.variants).selectinload(ProductVariant.images),
        selectinload(Product.images),
    )


def list_products(
    db: Session,
    filters: ProductFilters | None = None,
    *,
    sort_by: str = "created_at",
    order: str = "desc",
    page: int = 1,
    page_size: int = 24,
) -> dict:
    """Возвращает {items, total, page, per_page, total_pages}."""
    filters = filters or ProductFilters()
    if sort_by not in SORT_FIELDS:
        raise ValidationFailedError(errors=[f"sort_by must be one of: {', '.join(SORT_FIELDS)}"])
    if order not in ("asc", "desc"):
        raise ValidationFailedError(errors=["order must be asc or desc"])
    bad_sizes = [s for s in filters.sizes if s not in ProductSize.__members__]
    if bad_sizes:
        raise ValidationFailedError(errors=[f"Unknown size: {s}" for s in bad_sizes])

    p, ps = normalize_paging(page, page_size)

    q = db.query(Product).filter(Product.is_active.is_(True))
    if filters.category_id:
        q = q.filter(Product.category_id == filters.category_id)
    if filters.category_slug:
        q = q.join(Category, Category.id == Product.category_id).filter(Category.slug == filters.category_slug)
    if filters.query:
        like = f"%{filters.query.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if filters.min_price is not None:
        q = q.filter(Product.base_price >= filters.min_price)
    if filters.max_price is not None:
        q = q.filter(Product.base_price <= filters.max_price)

    # Фильтры по вариантам: товар подходит, если есть хотя бы один такой вариант
    if filters.sizes or filters.colors or filters.in_stock:
        vq = select(ProductVariant.product_id).where(ProductVariant.is_available.is_(True))
        if filters.sizes:
            vq = vq.where(ProductVariant.size.in_([ProductSize[s] for s in filters.sizes]))
        if filters.colors:
            vq = vq.where(func.lower(ProductVariant.color).in_([c.lower() for c in filters.colors]))
        if filters.in_stock:
            vq = vq.where(ProductVariant.stock_quantity > 0)
        q = q.filter(Product.id.in_(vq))

    total = q.count()
    column = SORT_FIELDS[sort_by]
    rows = (
        _with_details(q)
        .order_by(column.asc() if order == "asc" else column.desc(), Product.id)
        .offset((p - 1) * ps)
        .limit(ps)
        .all()
    )
    return {
        "items": [r.to_detail_dict() for r in rows],
        "total": total,
        "page": p,
        "per_page": ps,
        "total_pages": math.ceil(total / ps) if total else 0,
    }


def get_product(db: Session, product_id: str) -> Product:
    product = (
        _with_details(db.query(Product))
        .filter(Product.id == product_id, Product.is_active.is_(True))
        .first()
    )
    if product is None:
        raise NotFoundError("Product", product_id)
    return product


def get_product_by_slug(db: Session, slug: str) -> Product:
    product = (
        _with_details(db.query(Product))
        .filter(Product.slug == slug, Product.is_active.is_(True))
        .first()
    )
    if product is None:
        raise NotFoundError("Product", slug)
    return product


def get_variant(db: Session, variant_id: str, available_only: bool = True) -> ProductVariant:
    q = db.query(ProductVariant).options(selectinload(ProductVariant.product)).filter(ProductVariant.id == variant_id)
    if available_only:
        q = q.filter(ProductVariant.is_available.is_(True))
    variant = q.first()
    if variant is None:
        raise NotFoundError("Product variant", variant_id)
    return variant


def list_categories(db: Session, active_only: bool = True) -> list[Category]:
    q = db.query(Category)
    if active_only:
        q = q.filter(Category.is_active.is_(True))
    return q.order_by(Category.name).all()


def get_category_by_slug(db: Session, slug: str) -> Category:
    category = db.query(Category).filter(Category.slug == slug).first()
    if category is None:
        raise NotFoundError("Category", slug)
    return category


def category_tree(db: Session) -> list[dict]:
    """Дерево активных категорий; потомки неактивных родителей не попадают в корень."""
    categories = list_categories(db)
    nodes = {c.id: {**c.to_dict(), "children": []} for c in categories}
    roots = []
    for c in categories:
        node = nodes[c.id]
        if c.parent_category_id and c.parent_category_id in nodes:
            nodes[c.parent_category_id]["children"].append(node)
        elif not c.parent_category_id:
            roots.append(node)
    return roots


def search_suggestions(db: Session, partial_query: str, limit: int = 5) -> list[str]:
    """Имена товаров по префиксу/подстроке; короче 2 символов: пустой список."""
    if not partial_query or len(partial_query.strip()) < 2:
        return []
    like = f"%{partial_query.strip()}%"
    rows = (
        db.query(Product.name)
        .filter(Product.is_active.is_(True), Product.name.ilike(like))
        .order_by(Product.name)
        .limit(limit)
        .all()
    )
    return [r[0] for r in rows]
