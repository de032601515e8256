from typing import Optional
import uuid

from servicecommon.auth import Principal
from servicecommon.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from servicecommon.pagination import Page, clamp_limit, normalize_page
from productservice.clients.auth_client import AuthClient
from productservice.db.models import Rating
from productservice.repositories.ratings import ALREADY_RATED, RatingRepository
from productservice.schemas import (
    MyRatingsPage,
    MyRatingsQuery,
    ProductOfRating,
    RaterRead,
    RatingListQuery,
    RatingRead,
    RatingResponse,
    RatingSort,
    RatingStatistic,
)

INVALID_STARS = 'stars must be between 1 and 5'

PRODUCT_RATINGS_LIMIT_DEFAULT = 10
MY_RATINGS_LIMIT_MIN = 5
MY_RATINGS_LIMIT_MAX = 20


def _check_stars(stars: int) -> None:
    if stars < 1 or stars > 5:
        raise InvalidInputError(INVALID_STARS)


def _sort(value: Optional[str]) -> RatingSort:
    try:
        return RatingSort((value or '').lower())
    except ValueError:
        return RatingSort.NEWEST


def _response(rating: Rating, rater_name: str) -> RatingResponse:
    return RatingResponse(
        id=rating.id,
        user=RaterRead(id=rating.user_id, name=rater_name),
        product=ProductOfRating.model_validate(rating.product),
        stars=rating.rating,
        comment=rating.comment,
        created_at=rating.created_at,
        updated_at=rating.updated_at,
    )


class RatingService:
    def __init__(self, ratings: RatingRepository, auth: AuthClient):
        self.ratings = ratings
        self.auth = auth

    def rate_product(self, principal: Principal, product_id: uuid.UUID, stars: int,
                     comment: Optional[str] = None) -> RatingResponse:
        _check_stars(stars)
        if product_id.int == 0:
            raise NotFoundError()

        product = self.ratings.get_product(product_id)
        if self.ratings.find_user_rating(principal.user_id, product_id) is not None:
            raise ConflictError(ALREADY_RATED)

        rater = self.auth.get_current_user_info(principal.token)
        rating = self.ratings.create(product, principal.user_id, rater.name, stars, comment)
        return _response(rating, rater.name)

    def update_rating(self, principal: Principal, rating_id: uuid.UUID, stars: int,
                      comment: Optional[str] = None) -> RatingResponse:
        _check_stars(stars)
        if rating_id.int == 0:
            raise NotFoundError()

        rating = self.ratings.find_rating(rating_id)
        if rating.user_id != principal.user_id:
            raise ForbiddenError()

        rater = self.auth.get_current_user_info(principal.token)
        rating = self.ratings.update(rating, stars, comment, user_name=rater.name)
        return _response(rating, rater.name)

    def delete_rating(self, principal: Principal, rating_id: uuid.UUID) -> None:
        if rating_id.int == 0:
            raise NotFoundError()
        rating = self.ratings.find_rating(rating_id)
        if rating.user_id != principal.user_id:
            raise ForbiddenError()
        self.ratings.delete(rating)

    def list_for_product(self, product_id: uuid.UUID, page: Optional[int] = None, limit: Optional[int] = None,
                         stars: Optional[int] = None, sort: Optional[str] = None,
                         principal: Optional[Principal] = None) -> Page[RatingRead]:
        if product_id.int == 0:
            raise NotFoundError()
        q = RatingListQuery(
            product_id=product_id,
            page=normalize_page(page),
            limit=clamp_limit(limit, 1, 100, PRODUCT_RATINGS_LIMIT_DEFAULT),
            stars=stars if stars and 1 <= stars <= 5 else 0,
            sort=_sort(sort),
        )
        result = self.ratings.list_for_product(q)
        if principal is None:
            return result
        # ownership is per caller, so it is applied after the shared cache read
        data = [r.model_copy(update={'mine': r.user_id == principal.user_id}) for r in result.data]
        return result.model_copy(update={'data': data})

    def statistic(self, product_id: uuid.UUID) -> RatingStatistic:
        if product_id.int == 0:
            raise NotFoundError()
        return self.ratings.statistic(product_id)

    def my_ratings(self, principal: Principal, page: Optional[int] = None, limit: Optional[int] = None,
                   sort: Optional[str] = None) -> MyRatingsPage:
        q = MyRatingsQuery(
            page=normalize_page(page),
            limit=clamp_limit(limit, MY_RATINGS_LIMIT_MIN, MY_RATINGS_LIMIT_MAX, MY_RATINGS_LIMIT_MIN),
            sort=_sort(sort),
        )
        return self.ratings.list_for_user(principal.user_id, q)
