from typing import Any, Dict
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from servicecommon.cache import CacheGateway
from servicecommon.errors import NotFoundError
from servicecommon.logging import get_logger
from servicecommon.pagination import LIKE_ESCAPE, Page, contains_pattern, offset_for
from productservice.db.models import Product, ProductRelation
from productservice.repositories.keys import product_key, product_list_key, relation_key
from productservice.schemas import ProductListQuery, ProductRead, RelationQuery, RelationType

DEFAULT_TTL = 3600

SORT_COLUMNS = {
    'average_rating': Product.average_rating,
    'name': Product.name,
    'price': Product.price,
    'created_at': Product.created_at,
}


def _count(db: Session, stmt) -> int:
    return db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()


class ProductRepository:
    def __init__(self, db: Session, cache: CacheGateway, ttl: int = DEFAULT_TTL):
        self.db = db
        self.cache = cache
        self.ttl = ttl
        self.logger = get_logger('productservice.repositories.products')

    def get_list(self, q: ProductListQuery) -> Page[ProductRead]:
        key = product_list_key(q)
        cached = self.cache.get_model(key, Page[ProductRead])
        if cached is not None:
            return cached

        stmt = select(Product).where(Product.deleted_at.is_(None))
        if q.search:
            stmt = stmt.where(Product.search_name.like(contains_pattern(q.search), escape=LIKE_ESCAPE))
        if q.category_ids:
            stmt = stmt.where(Product.category_id.in_(q.category_ids))
        if q.min_price > 0:
            stmt = stmt.where(Product.price >= q.min_price)
        if q.max_price > 0:
            stmt = stmt.where(Product.price <= q.max_price)
        if q.min_rate > 0:
            stmt = stmt.where(Product.average_rating >= q.min_rate)
        if q.max_rate > 0:
            stmt = stmt.where(Product.average_rating <= q.max_rate)

        total = _count(self.db, stmt)
        column = SORT_COLUMNS[q.sort]
        ordering = column.asc() if q.order == 'ASC' else column.desc()
        rows = self.db.execute(
            stmt.order_by(ordering, Product.id).offset(offset_for(q.page, q.limit)).limit(q.limit)
        ).scalars().unique().all()

        result = Page[ProductRead](
            total=total,
            data=[ProductRead.model_validate(p) for p in rows],
            filter=q.model_dump(mode='json'),
        )
        self.cache.set_model(key, result, self.ttl)
        return result

    def get_by_id(self, product_id: uuid.UUID) -> ProductRead:
        key = product_key(product_id)
        cached = self.cache.get_model(key, ProductRead)
        if cached is not None:
            return cached

        product = self.db.execute(
            select(Product).where(Product.id == product_id, Product.deleted_at.is_(None))
        ).unique().scalar_one_or_none()
        if product is None:
            raise NotFoundError()
        result = ProductRead.model_validate(product)
        self.cache.set_model(key, result, self.ttl)
        return result

    def get_relations(self, product_id: uuid.UUID, relation: RelationType, page: int, limit: int) -> Page[ProductRead]:
        key = relation_key(product_id, relation, page, limit)
        cached = self.cache.get_model(key, Page[ProductRead])
        if cached is not None:
            return cached

        stmt = (
            select(Product)
            .join(ProductRelation, ProductRelation.related_id == Product.id)
            .where(
                ProductRelation.product_id == product_id,
                ProductRelation.relation_type == relation.value,
                Product.deleted_at.is_(None),
            )
        )
        total = _count(self.db, stmt)
        filters: Dict[str, Any] = RelationQuery(page=page, limit=limit).model_dump()
        if total == 0:
            rows = []
        else:
            rows = self.db.execute(
                stmt.order_by(Product.average_rating.desc(), Product.created_at.desc())
                .offset(offset_for(page, limit)).limit(limit)
            ).scalars().unique().all()

        result = Page[ProductRead](total=total, data=[ProductRead.model_validate(p) for p in rows], filter=filters)
        self.cache.set_model(key, result, self.ttl)
        return result
