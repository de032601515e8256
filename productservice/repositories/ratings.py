"""
Ratings persistence.

Reads are cache-aside. Writes recompute the product's denormalized
``average_rating``/``total_ratings`` inside the same transaction, then drop
every cached view the write could have made stale.
"""

import math
from typing import Optional
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from servicecommon.cache import CacheGateway
from servicecommon.errors import ConflictError, NotFoundError
from servicecommon.logging import get_logger
from servicecommon.pagination import Page, offset_for
from productservice.db.models import Product, Rating, now_utc
from productservice.repositories.keys import (
    PRODUCT_LIST_PATTERN,
    PRODUCT_RELATED_PATTERN,
    PRODUCT_SIMILAR_PATTERN,
    product_key,
    product_ratings_key,
    product_ratings_pattern,
    rating_statistic_key,
    user_ratings_key,
    user_ratings_pattern,
)
from productservice.schemas import (
    DistributionChart,
    MyRating,
    MyRatingSummary,
    MyRatingsPage,
    MyRatingsQuery,
    RatedProduct,
    RatingListQuery,
    RatingRead,
    RatingSort,
    RatingStatistic,
    RatingSummary,
    StarDetail,
)

DEFAULT_TTL = 3600

ALREADY_RATED = 'product already rated'

SORT_ORDER = {
    RatingSort.NEWEST: (Rating.created_at.desc(),),
    RatingSort.OLDEST: (Rating.created_at.asc(),),
    RatingSort.HIGHEST: (Rating.rating.desc(), Rating.created_at.desc()),
    RatingSort.LOWEST: (Rating.rating.asc(), Rating.created_at.desc()),
}


def truncate2(value: float) -> float:
    """Truncate (not round) to two decimals."""
    return math.floor(round(value * 100, 6)) / 100


def _active(stmt):
    return stmt.where(Rating.deleted_at.is_(None))


class RatingRepository:
    def __init__(self, db: Session, cache: CacheGateway, ttl: int = DEFAULT_TTL):
        self.db = db
        self.cache = cache
        self.ttl = ttl
        self.logger = get_logger('productservice.repositories.ratings')

    # -- lookups used by the write path (always from the store) --

    def get_product(self, product_id: uuid.UUID) -> Product:
        product = self.db.execute(
            select(Product).where(Product.id == product_id, Product.deleted_at.is_(None))
        ).unique().scalar_one_or_none()
        if product is None:
            raise NotFoundError()
        return product

    def find_rating(self, rating_id: uuid.UUID) -> Rating:
        rating = self.db.execute(
            _active(select(Rating).options(joinedload(Rating.product)).where(Rating.id == rating_id))
        ).unique().scalar_one_or_none()
        if rating is None:
            raise NotFoundError()
        return rating

    def find_user_rating(self, user_id: uuid.UUID, product_id: uuid.UUID) -> Optional[Rating]:
        return self.db.execute(
            _active(select(Rating).where(Rating.user_id == user_id, Rating.product_id == product_id)).limit(1)
        ).scalar_one_or_none()

    # -- writes --

    def _recompute(self, product: Product) -> None:
        self.db.flush()
        count, avg = self.db.execute(
            _active(select(func.count(Rating.id), func.avg(Rating.rating)).where(Rating.product_id == product.id))
        ).one()
        product.total_ratings = count
        product.average_rating = truncate2(float(avg)) if count else 0.0
        self.db.add(product)

    def _invalidate(self, product_id: uuid.UUID, user_id: uuid.UUID) -> None:
        self.cache.invalidate(
            keys=[product_key(product_id), rating_statistic_key(product_id)],
            patterns=[
                product_ratings_pattern(product_id),
                user_ratings_pattern(user_id),
                PRODUCT_LIST_PATTERN,
                PRODUCT_SIMILAR_PATTERN,
                PRODUCT_RELATED_PATTERN,
            ],
        )

    def create(self, product: Product, user_id: uuid.UUID, user_name: str, stars: int,
               comment: Optional[str]) -> Rating:
        rating = Rating(product_id=product.id, user_id=user_id, user_name=user_name, rating=stars, comment=comment)
        rating.product = product
        self.db.add(rating)
        try:
            self._recompute(product)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(ALREADY_RATED)
        self._invalidate(product.id, user_id)
        self.logger.info('Rating created', rating_id=str(rating.id), product_id=str(product.id))
        return rating

    def update(self, rating: Rating, stars: int, comment: Optional[str], user_name: Optional[str] = None) -> Rating:
        rating.rating = stars
        rating.comment = comment
        if user_name:
            rating.user_name = user_name
        rating.updated_at = now_utc()
        self.db.add(rating)
        self._recompute(rating.product)
        self.db.commit()
        self._invalidate(rating.product_id, rating.user_id)
        return rating

    def delete(self, rating: Rating) -> None:
        rating.deleted_at = now_utc()
        self.db.add(rating)
        self._recompute(rating.product)
        self.db.commit()
        self._invalidate(rating.product_id, rating.user_id)
        self.logger.info('Rating deleted', rating_id=str(rating.id))

    # -- cached reads --

    def list_for_product(self, q: RatingListQuery) -> Page[RatingRead]:
        key = product_ratings_key(q)
        cached = self.cache.get_model(key, Page[RatingRead])
        if cached is not None:
            return cached

        stmt = _active(select(Rating).where(Rating.product_id == q.product_id))
        if 1 <= q.stars <= 5:
            stmt = stmt.where(Rating.rating == q.stars)
        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = self.db.execute(
            stmt.order_by(*SORT_ORDER[q.sort]).offset(offset_for(q.page, q.limit)).limit(q.limit)
        ).scalars().all()

        result = Page[RatingRead](
            total=total,
            data=[RatingRead.model_validate(r) for r in rows],
            filter=q.model_dump(mode='json'),
        )
        self.cache.set_model(key, result, self.ttl)
        return result

    def statistic(self, product_id: uuid.UUID) -> RatingStatistic:
        key = rating_statistic_key(product_id)
        cached = self.cache.get_model(key, RatingStatistic)
        if cached is not None:
            return cached

        self.get_product(product_id)
        counts = dict(self.db.execute(
            _active(select(Rating.rating, func.count()).where(Rating.product_id == product_id)).group_by(Rating.rating)
        ).all())
        total = sum(counts.values())

        if total == 0:
            result = RatingStatistic(product_id=str(product_id), summary=RatingSummary())
        else:
            stars_sum = sum(star * count for star, count in counts.items())
            distribution = {}
            chart = []
            for star in range(5, 0, -1):
                count = counts.get(star, 0)
                percentage = truncate2(count / total * 100)
                distribution[str(star)] = StarDetail(count=count, percentage=percentage)
                chart.append(DistributionChart(stars=star, count=count, percentage=percentage))
            result = RatingStatistic(
                product_id=str(product_id),
                summary=RatingSummary(avg_rating=truncate2(stars_sum / total), total_ratings=total),
                distribution=distribution,
                distribution_chart=chart,
            )

        self.cache.set_model(key, result, self.ttl)
        return result

    def list_for_user(self, user_id: uuid.UUID, q: MyRatingsQuery) -> MyRatingsPage:
        key = user_ratings_key(user_id, q)
        cached = self.cache.get_model(key, MyRatingsPage)
        if cached is not None:
            return cached

        base = _active(select(Rating).where(Rating.user_id == user_id))
        total, stars_sum = self.db.execute(
            _active(select(func.count(Rating.id), func.coalesce(func.sum(Rating.rating), 0))
                    .where(Rating.user_id == user_id))
        ).one()

        data = []
        if total:
            rows = self.db.execute(
                base.options(joinedload(Rating.product))
                .order_by(*SORT_ORDER[q.sort]).offset(offset_for(q.page, q.limit)).limit(q.limit)
            ).unique().scalars().all()
            data = [
                MyRating(
                    id=r.id,
                    product=RatedProduct(id=r.product.id, name=r.product.name),
                    stars=r.rating,
                    comment=r.comment,
                    created_at=r.created_at,
                    updated_at=r.updated_at,
                )
                for r in rows
            ]

        result = MyRatingsPage(
            total=total,
            data=data,
            pagination=q,
            summary=MyRatingSummary(
                total_ratings=total,
                avg_stars_given=truncate2(int(stars_sum) / total) if total else 0.0,
            ),
        )
        self.cache.set_model(key, result, self.ttl)
        return result
