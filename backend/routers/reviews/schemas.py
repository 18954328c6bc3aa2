from utils.response_helpers import CamelModel
from routers.users.schemas import UserSummary
from typing import Optional, List
from datetime import datetime


class ReviewCreate(CamelModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


class ReviewUpdate(CamelModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


class ReviewedProduct(CamelModel):
    id: str
    product_name: Optional[str] = None
    product_cat: Optional[str] = None
    image_url: Optional[str] = None


class ReviewResponse(CamelModel):
    id: str
    user_id: str
    prod_id: str
    order_id: str
    rating: int
    comment: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[UserSummary] = None
    product: Optional[ReviewedProduct] = None


class ReviewDetailResponse(CamelModel):
    review: ReviewResponse


class ReviewPage(CamelModel):
    count: int
    rows: List[ReviewResponse]


class ReviewListResponse(CamelModel):
    message: Optional[str] = None
    reviews: ReviewPage
