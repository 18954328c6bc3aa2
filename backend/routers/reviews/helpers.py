from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from models import BuyerReview, Order
from routers.orders.state import is_reviewable
from utils.errors import AppError
from utils.notifications import notify_user
from utils.response_helpers import to_uuid
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def _check_rating(rating) -> None:
    if rating is None or rating < 1 or rating > 5:
        raise AppError("Rating must be between 1 and 5", status.HTTP_400_BAD_REQUEST)


class ReviewHelpers:
    """Buyer reviews of delivered orders"""

    def _with_details(self, query):
        return query.options(
            selectinload(BuyerReview.user),
            selectinload(BuyerReview.product),
        )

    async def get_review_by_order(self, db: AsyncSession, order_id) -> BuyerReview:
        result = await db.execute(
            self._with_details(select(BuyerReview))
            .where(BuyerReview.order_id == to_uuid(order_id, "order id"))
        )
        review = result.scalar_one_or_none()
        if not review:
            raise AppError("Review not found for this order", status.HTTP_404_NOT_FOUND)
        return review

    async def get_reviews_by_product(self, db: AsyncSession, product_id, rating: Optional[str] = None) -> dict:
        filters = [BuyerReview.prod_id == to_uuid(product_id, "product id")]

        if rating and rating.strip():
            try:
                rating_value = float(rating)
            except ValueError:
                rating_value = None
            if rating_value is None or rating_value < 1 or rating_value > 5:
                raise AppError("Invalid rating value. Must be between 1 and 5", status.HTTP_400_BAD_REQUEST)
            filters.append(BuyerReview.rating == rating_value)

        count_result = await db.execute(select(func.count(BuyerReview.id)).where(*filters))
        result = await db.execute(
            self._with_details(select(BuyerReview))
            .where(*filters)
            .order_by(BuyerReview.created_at.desc())
        )
        return {"count": count_result.scalar_one(), "rows": result.scalars().all()}

    async def create_review(self, db: AsyncSession, product_id, order_id, user_id,
                            rating: Optional[int], comment: Optional[str]) -> dict:
        _check_rating(rating)

        if not comment or not comment.strip():
            raise AppError("Comment is required", status.HTTP_400_BAD_REQUEST)

        order = await db.get(Order, to_uuid(order_id, "order id"))
        if not order:
            raise AppError("Order not found", status.HTTP_404_NOT_FOUND)

        if not is_reviewable(order):
            raise AppError(
                "The order is still in processing or pending state. You cannot review yet",
                status.HTTP_401_UNAUTHORIZED
            )

        existing = await db.execute(select(BuyerReview.id).where(BuyerReview.order_id == order.id))
        if existing.scalar_one_or_none():
            raise AppError("This order has already been reviewed", status.HTTP_409_CONFLICT)

        review = BuyerReview(
            prod_id=to_uuid(product_id, "product id"),
            user_id=to_uuid(user_id, "user id"),
            order_id=order.id,
            rating=rating,
            comment=comment
        )
        db.add(review)
        order.review = {"rating": rating, "comment": comment}
        await db.commit()
        logger.info(f"Review {review.id} added for order {order.id}")

        await notify_user(db, order.seller_id, "Order Reviewed", "You got a review on your order from the buyer")

        return {"message": "Review added successfully"}

    async def _get_review(self, db: AsyncSession, review_id) -> BuyerReview:
        review = await db.get(BuyerReview, to_uuid(review_id, "review id"))
        if not review:
            raise AppError("Review not found", status.HTTP_404_NOT_FOUND)
        return review

    async def update_review(self, db: AsyncSession, review_id, user_id,
                            rating: Optional[int] = None, comment: Optional[str] = None) -> dict:
        if rating is not None:
            _check_rating(rating)

        if comment is not None and not comment.strip():
            raise AppError("Comment cannot be empty", status.HTTP_400_BAD_REQUEST)

        review = await self._get_review(db, review_id)
        if str(review.user_id) != str(user_id):
            raise AppError("You are not authorized to update this review", status.HTTP_403_FORBIDDEN)

        if rating is not None:
            review.rating = rating
        if comment is not None:
            review.comment = comment

        # keep the snapshot on the order in sync
        order = await db.get(Order, review.order_id)
        if order:
            order.review = {"rating": review.rating, "comment": review.comment}

        await db.commit()
        return {"message": "Review updated successfully"}

    async def delete_review(self, db: AsyncSession, review_id, user_id):
        review = await self._get_review(db, review_id)
        if str(review.user_id) != str(user_id):
            raise AppError("You are not authorized to delete this review", status.HTTP_403_FORBIDDEN)

        order = await db.get(Order, review.order_id)
        if order:
            order.review = None

        await db.delete(review)
        await db.commit()
        logger.info(f"Review {review_id} deleted by {user_id}")


review_helpers = ReviewHelpers()
