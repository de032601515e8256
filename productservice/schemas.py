from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict
import uuid


class RelationType(str, Enum):
    SIMILAR = 'similar'
    RELATED = 'related'


class RatingSort(str, Enum):
    NEWEST = 'newest'
    OLDEST = 'oldest'
    HIGHEST = 'highest'
    LOWEST = 'lowest'


# Normalized query shapes; echoed back as the page ``filter``.

class ProductListQuery(BaseModel):
    page: int = 1
    limit: int = 20
    search: str = ''
    sort: str = 'created_at'
    order: str = 'DESC'
    category_ids: List[uuid.UUID] = []
    min_price: int = 0
    max_price: int = 0
    min_rate: int = 0
    max_rate: int = 0

class RelationQuery(BaseModel):
    page: int = 1
    limit: int = 5

class RatingListQuery(BaseModel):
    product_id: uuid.UUID
    page: int = 1
    limit: int = 10
    stars: int = 0
    sort: RatingSort = RatingSort.NEWEST

class MyRatingsQuery(BaseModel):
    page: int = 1
    limit: int = 5
    sort: RatingSort = RatingSort.NEWEST


class CategoryRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    class Config: from_attributes = True

class ProductRead(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: float
    category_id: uuid.UUID
    category: Optional[CategoryRead] = None
    average_rating: float = 0
    total_ratings: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None
    class Config: from_attributes = True


class RatingRead(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str = ''
    stars: int = Field(validation_alias='rating')
    comment: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    mine: bool = False
    class Config:
        from_attributes = True
        populate_by_name = True


class RaterRead(BaseModel):
    id: uuid.UUID
    name: str

class ProductOfRating(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: float
    average_rating: float = 0
    total_ratings: int = 0
    class Config: from_attributes = True

class RatingResponse(BaseModel):
    id: uuid.UUID
    user: RaterRead
    product: ProductOfRating
    stars: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class RatingSummary(BaseModel):
    avg_rating: float = 0
    total_ratings: int = 0

class StarDetail(BaseModel):
    count: int
    percentage: float

class DistributionChart(BaseModel):
    stars: int
    count: int
    percentage: float

class RatingStatistic(BaseModel):
    product_id: str
    summary: RatingSummary
    distribution: Dict[str, StarDetail] = {}
    distribution_chart: List[DistributionChart] = []


class RatedProduct(BaseModel):
    id: uuid.UUID
    name: str

class MyRating(BaseModel):
    id: uuid.UUID
    product: RatedProduct
    stars: int
    comment: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

class MyRatingSummary(BaseModel):
    total_ratings: int = 0
    avg_stars_given: float = 0

class MyRatingsPage(BaseModel):
    total: int
    data: List[MyRating] = []
    pagination: MyRatingsQuery
    summary: MyRatingSummary


class RatePayload(BaseModel):
    stars: int
    comment: Optional[str] = Field(default=None, max_length=2000)
