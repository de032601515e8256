from fastapi import APIRouter, Depends, Path, Query
from typing import List, Optional
import uuid

from servicecommon.pagination import Page
from productservice.api.deps import get_product_service
from productservice.schemas import ProductRead, RelationType
from productservice.services.products import ProductService

router = APIRouter()  # main.py mounts at /products


def parse_category_ids(raw: str) -> List[uuid.UUID]:
    """Comma-separated ids; unparseable entries are skipped."""
    ids = []
    for part in raw.split(','):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(uuid.UUID(part))
        except ValueError:
            continue
    return ids


@router.get('/list', response_model=Page[ProductRead])
def list_products(page: Optional[int] = Query(default=1), limit: Optional[int] = Query(default=20),
                  search: str = '', sort: str = '', order: str = '', category_ids: str = '',
                  min_price: int = 0, max_price: int = 0, min_rate: int = 0, max_rate: int = 0,
                  products: ProductService = Depends(get_product_service)):
    return products.get_list(
        page=page, limit=limit, search=search, sort=sort, order=order,
        category_ids=parse_category_ids(category_ids),
        min_price=min_price, max_price=max_price, min_rate=min_rate, max_rate=max_rate,
    )


@router.get('/product/{productId}', response_model=ProductRead)
def get_product(product_id: uuid.UUID = Path(alias='productId'),
                products: ProductService = Depends(get_product_service)):
    return products.get_by_id(product_id)


@router.get('/product/{productId}/similar', response_model=Page[ProductRead])
def similar_products(product_id: uuid.UUID = Path(alias='productId'), page: Optional[int] = Query(default=1),
                     limit: Optional[int] = Query(default=5), products: ProductService = Depends(get_product_service)):
    return products.get_relations(product_id, RelationType.SIMILAR, page, limit)


@router.get('/product/{productId}/related', response_model=Page[ProductRead])
def related_products(product_id: uuid.UUID = Path(alias='productId'), page: Optional[int] = Query(default=1),
                     limit: Optional[int] = Query(default=5), products: ProductService = Depends(get_product_service)):
    return products.get_relations(product_id, RelationType.RELATED, page, limit)
