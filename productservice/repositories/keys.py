"""
Cache key builders. Every parameter that changes a result is part of its key;
prefixes double as invalidation patterns.
"""

import uuid

from productservice.schemas import MyRatingsQuery, ProductListQuery, RatingListQuery, RelationType

PRODUCT_LIST_PATTERN = 'productlist:*'
PRODUCT_SIMILAR_PATTERN = 'productsimilar:*'
PRODUCT_RELATED_PATTERN = 'productrelated:*'


def product_key(product_id: uuid.UUID) -> str:
    return f'product:{product_id}'


def product_list_key(q: ProductListQuery) -> str:
    cats = ','.join(sorted(str(c) for c in q.category_ids))
    return (
        f'productlist:page:{q.page}:limit:{q.limit}:search:{q.search}'
        f':sort:{q.sort}:{q.order}:cats:{cats}'
        f':price:{q.min_price}-{q.max_price}:rate:{q.min_rate}-{q.max_rate}'
    )


def relation_key(product_id: uuid.UUID, relation: RelationType, page: int, limit: int) -> str:
    return f'product{relation.value}:{product_id}:page:{page}:limit:{limit}'


def product_ratings_key(q: RatingListQuery) -> str:
    return f'rateofproduct:{q.product_id}:page:{q.page}:limit:{q.limit}:star:{q.stars}:sort:{q.sort.value}'


def product_ratings_pattern(product_id: uuid.UUID) -> str:
    return f'rateofproduct:{product_id}:*'


def user_ratings_key(user_id: uuid.UUID, q: MyRatingsQuery) -> str:
    return f'rateofuser:{user_id}:page:{q.page}:limit:{q.limit}:sort:{q.sort.value}'


def user_ratings_pattern(user_id: uuid.UUID) -> str:
    return f'rateofuser:{user_id}:*'


def rating_statistic_key(product_id: uuid.UUID) -> str:
    return f'ratestatistic:{product_id}'
