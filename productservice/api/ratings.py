from fastapi import APIRouter, Depends, Path, Query
from typing import Optional
import uuid

from servicecommon.auth import Principal
from servicecommon.pagination import Page
from productservice.api.deps import get_principal, get_rating_service, optional_principal
from productservice.schemas import MyRatingsPage, RatePayload, RatingRead, RatingResponse, RatingStatistic
from productservice.services.ratings import RatingService

router = APIRouter()


@router.get('/products/ratings/statistic/{productId}', response_model=RatingStatistic)
def rating_statistic(product_id: uuid.UUID = Path(alias='productId'),
                     ratings: RatingService = Depends(get_rating_service)):
    return ratings.statistic(product_id)


@router.get('/products/ratings/{productId}', response_model=Page[RatingRead])
def product_ratings(product_id: uuid.UUID = Path(alias='productId'), page: Optional[int] = Query(default=1),
                    limit: Optional[int] = Query(default=10), stars: Optional[int] = None,
                    sort: str = 'newest', principal: Optional[Principal] = Depends(optional_principal),
                    ratings: RatingService = Depends(get_rating_service)):
    return ratings.list_for_product(product_id, page, limit, stars, sort, principal=principal)


@router.post('/products/{productId}/ratings', response_model=RatingResponse, status_code=201)
def rate_product(payload: RatePayload, product_id: uuid.UUID = Path(alias='productId'),
                 principal: Principal = Depends(get_principal),
                 ratings: RatingService = Depends(get_rating_service)):
    return ratings.rate_product(principal, product_id, payload.stars, payload.comment)


@router.put('/products/ratings/{ratingId}', response_model=RatingResponse)
def update_rating(payload: RatePayload, rating_id: uuid.UUID = Path(alias='ratingId'),
                  principal: Principal = Depends(get_principal),
                  ratings: RatingService = Depends(get_rating_service)):
    return ratings.update_rating(principal, rating_id, payload.stars, payload.comment)


@router.delete('/products/ratings/{ratingId}')
def delete_rating(rating_id: uuid.UUID = Path(alias='ratingId'), principal: Principal = Depends(get_principal),
                  ratings: RatingService = Depends(get_rating_service)):
    ratings.delete_rating(principal, rating_id)
    return {'status': 'ok'}


@router.get('/ratings/me', response_model=MyRatingsPage)
def my_ratings(page: Optional[int] = Query(default=1), limit: Optional[int] = Query(default=5),
               sort: str = 'newest', principal: Principal = Depends(get_principal),
               ratings: RatingService = Depends(get_rating_service)):
    return ratings.my_ratings(principal, page, limit, sort)
