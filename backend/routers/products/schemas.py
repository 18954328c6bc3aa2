from utils.response_helpers import CamelModel
from routers.users.schemas import UserSummary
from typing import Optional, List
from datetime import datetime


class ProductReview(CamelModel):
    id: str
    comment: str
    rating: int
    created_at: Optional[datetime] = None
    user: Optional[UserSummary] = None


class ProductResponse(CamelModel):
    id: str
    user_id: str
    product_name: Optional[str] = None
    product_cat: Optional[str] = None
    price_type: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    whole_sale: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductWithDetailsResponse(ProductResponse):
    user: Optional[UserSummary] = None
    reviews: List[ProductReview] = []


class ProductPage(CamelModel):
    count: int
    rows: List[ProductWithDetailsResponse]


class ProductListResponse(CamelModel):
    products: ProductPage


class ProductDetailResponse(CamelModel):
    product: ProductWithDetailsResponse


class ProductCreateResponse(CamelModel):
    message: str
    product: ProductResponse


class ProductSearchResponse(CamelModel):
    message: Optional[str] = None
    query_result: ProductPage


class ProductSearchParams(CamelModel):
    """Raw query string values; parsed and range checked by the search helper"""
    product_name: Optional[str] = None
    product_cat: str = "All"
    min_price: Optional[str] = None
    max_price: Optional[str] = None
    product_rating: Optional[str] = None
    whole_sale: Optional[str] = None
    page: str = "1"
    limit: str = "10"
