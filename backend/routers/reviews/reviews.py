from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_review_read, require_review_write, require_review_delete
from utils.errors import AppError
from utils.response_helpers import safe_model_validate
from routers.users.schemas import MessageResponse
from .schemas import (
    ReviewCreate,
    ReviewUpdate,
    ReviewResponse,
    ReviewDetailResponse,
    ReviewListResponse,
)
from .helpers import review_helpers
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["Reviews"])


@router.get("/order/{order_id}", response_model=ReviewDetailResponse)
async def get_order_review(
    order_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_review_read),
    db: AsyncSession = Depends(get_db)
):
    try:
        review = await review_helpers.get_review_by_order(db, order_id)
        return ReviewDetailResponse(review=safe_model_validate(ReviewResponse, review))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting review for order {order_id}: {str(e)}")
        raise AppError(str(e) or "Error getting review", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/product/{product_id}", response_model=ReviewListResponse, response_model_exclude_none=True)
async def get_product_reviews(
    product_id: str,
    rating: Optional[str] = Query(None),
    current_user = Depends(get_current_user),
    _: bool = Depends(require_review_read),
    db: AsyncSession = Depends(get_db)
):
    try:
        result = await review_helpers.get_reviews_by_product(db, product_id, rating)
        reviews = {
            "count": result["count"],
            "rows": [safe_model_validate(ReviewResponse, row) for row in result["rows"]],
        }
        if not result["count"]:
            return ReviewListResponse(message="No reviews found for this product", reviews=reviews)
        return ReviewListResponse(reviews=reviews)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting reviews for product {product_id}: {str(e)}")
        raise AppError(str(e) or "Error getting reviews", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/{product_id}/{order_id}/add", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_review(
    product_id: str,
    order_id: str,
    review_data: ReviewCreate,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_review_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await review_helpers.create_review(
            db, product_id, order_id, current_user["user_id"],
            review_data.rating, review_data.comment
        )
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating review for order {order_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error creating review", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{review_id}/update", response_model=MessageResponse)
async def update_review(
    review_id: str,
    review_data: ReviewUpdate,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_review_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await review_helpers.update_review(
            db, review_id, current_user["user_id"],
            rating=review_data.rating, comment=review_data.comment
        )
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error updating review {review_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error updating review", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.delete("/{review_id}/remove", status_code=status.HTTP_204_NO_CONTENT)
async def delete_review(
    review_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_review_delete),
    db: AsyncSession = Depends(get_db)
):
    try:
        await review_helpers.delete_review(db, review_id, current_user["user_id"])
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error deleting review {review_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error deleting review", status.HTTP_500_INTERNAL_SERVER_ERROR)
