from typing import List, Optional
import uuid

from servicecommon.errors import InvalidInputError, NotFoundError
from servicecommon.pagination import Page, clamp_limit, normalize_page
from productservice.repositories.products import SORT_COLUMNS, ProductRepository
from productservice.schemas import ProductListQuery, ProductRead, RelationType
from productservice.utils.search import normalize_search_text

LIST_LIMIT_DEFAULT = 20
RELATION_LIMIT_MIN = 5
RELATION_LIMIT_MAX = 20

INVALID_SORT = 'sort field is invalid'
INVALID_ORDER = 'order must be ASC or DESC'
INVALID_PRICE_RANGE = 'min_price must not exceed max_price'
INVALID_RATE_RANGE = 'min_rate must not exceed max_rate'


def _rate_bound(value: Optional[int]) -> int:
    if value is None or value < 0 or value > 5:
        return 0
    return value


class ProductService:
    def __init__(self, products: ProductRepository):
        self.products = products

    def get_list(self, page: Optional[int] = None, limit: Optional[int] = None, search: str = '',
                 sort: str = '', order: str = '', category_ids: Optional[List[uuid.UUID]] = None,
                 min_price: Optional[int] = None, max_price: Optional[int] = None,
                 min_rate: Optional[int] = None, max_rate: Optional[int] = None) -> Page[ProductRead]:
        sort = sort or 'created_at'
        if sort not in SORT_COLUMNS:
            raise InvalidInputError(INVALID_SORT)
        order = (order or 'DESC').upper()
        if order not in ('ASC', 'DESC'):
            raise InvalidInputError(INVALID_ORDER)

        min_price = max(min_price or 0, 0)
        max_price = max(max_price or 0, 0)
        if min_price > 0 and max_price > 0 and min_price > max_price:
            raise InvalidInputError(INVALID_PRICE_RANGE)
        min_rate, max_rate = _rate_bound(min_rate), _rate_bound(max_rate)
        if min_rate > 0 and max_rate > 0 and min_rate > max_rate:
            raise InvalidInputError(INVALID_RATE_RANGE)

        q = ProductListQuery(
            page=normalize_page(page),
            limit=clamp_limit(limit, 1, 100, LIST_LIMIT_DEFAULT),
            search=normalize_search_text(search or ''),
            sort=sort,
            order=order,
            category_ids=sorted(set(category_ids or []), key=str),
            min_price=min_price,
            max_price=max_price,
            min_rate=min_rate,
            max_rate=max_rate,
        )
        return self.products.get_list(q)

    def get_by_id(self, product_id: uuid.UUID) -> ProductRead:
        if product_id.int == 0:
            raise NotFoundError()
        return self.products.get_by_id(product_id)

    def get_relations(self, product_id: uuid.UUID, relation: RelationType,
                      page: Optional[int] = None, limit: Optional[int] = None) -> Page[ProductRead]:
        if product_id.int == 0:
            raise NotFoundError()
        return self.products.get_relations(
            product_id,
            relation,
            normalize_page(page),
            clamp_limit(limit, RELATION_LIMIT_MIN, RELATION_LIMIT_MAX, RELATION_LIMIT_MIN),
        )
