from fastapi import status, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from models import Product, BuyerReview
from utils.errors import AppError
from utils.response_helpers import to_uuid
from utils.storage import image_storage
from .schemas import ProductSearchParams
from typing import Optional
import logging

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ["product_name", "product_cat", "price_type", "price", "description", "whole_sale"]
REQUIRED_PRODUCT_FIELDS = ["product_name", "description", "price", "product_cat"]


def _parse_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _parse_float(value: Optional[str]) -> Optional[float]:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


class ProductHelpers:
    """Product listing, search and owner-checked writes"""

    def _with_details(self, query, review_rating: Optional[int] = None):
        reviews = Product.reviews
        if review_rating is not None:
            reviews = Product.reviews.and_(BuyerReview.rating == review_rating)
        return query.options(
            selectinload(Product.user),
            selectinload(reviews).selectinload(BuyerReview.user),
        )

    async def get_all_products(self, db: AsyncSession) -> dict:
        result = await db.execute(
            self._with_details(select(Product)).order_by(Product.created_at.desc())
        )
        rows = result.scalars().all()
        return {"count": len(rows), "rows": rows}

    async def get_product(self, db: AsyncSession, product_id, with_details: bool = False) -> Product:
        query = select(Product).where(Product.id == to_uuid(product_id, "product id"))
        if with_details:
            query = self._with_details(query)
        result = await db.execute(query)
        product = result.scalar_one_or_none()
        if not product:
            raise AppError("Product not found", status.HTTP_404_NOT_FOUND)
        return product

    async def get_products_by_user(self, db: AsyncSession, user_id) -> dict:
        result = await db.execute(
            select(Product)
            .where(Product.user_id == to_uuid(user_id, "user id"))
            .order_by(Product.created_at.desc())
        )
        rows = result.scalars().all()
        return {"count": len(rows), "rows": rows}

    async def search_products(self, db: AsyncSession, params: ProductSearchParams) -> dict:
        page = _parse_int(params.page)
        limit = _parse_int(params.limit)
        if page is None or page < 1:
            raise AppError("Invalid page number", status.HTTP_400_BAD_REQUEST)
        if limit is None or limit < 1 or limit > 100:
            raise AppError("Invalid limit value. Must be between 1 and 100", status.HTTP_400_BAD_REQUEST)

        filters = []

        if params.product_name and params.product_name.strip():
            filters.append(Product.product_name.like(f"%{params.product_name}%"))

        if params.product_cat and params.product_cat != "All":
            filters.append(Product.product_cat.like(f"%{params.product_cat}%"))

        if params.min_price and params.max_price:
            min_price = _parse_float(params.min_price)
            max_price = _parse_float(params.max_price)
            if min_price is None or max_price is None:
                raise AppError("Invalid price range values", status.HTTP_400_BAD_REQUEST)
            if min_price > max_price:
                raise AppError("Minimum price cannot be greater than maximum price", status.HTTP_400_BAD_REQUEST)
            filters.append(Product.price.between(min_price, max_price))

        if params.whole_sale == "true":
            filters.append(Product.whole_sale.is_(True))

        rating = _parse_int(params.product_rating) if params.product_rating else 5
        if rating is None or rating < 1 or rating > 5:
            raise AppError("Invalid rating value. Must be between 1 and 5", status.HTTP_400_BAD_REQUEST)

        count_result = await db.execute(select(func.count(Product.id)).where(*filters))
        count = count_result.scalar_one()

        result = await db.execute(
            self._with_details(select(Product).where(*filters), review_rating=rating)
            .order_by(Product.created_at.desc(), Product.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return {"count": count, "rows": result.scalars().all()}

    async def create_product(self, db: AsyncSession, user_id, data: dict,
                             image: Optional[UploadFile] = None) -> Product:
        if any(data.get(field) in (None, "") for field in REQUIRED_PRODUCT_FIELDS):
            raise AppError("Missing required fields", status.HTTP_400_BAD_REQUEST)

        product = Product(
            user_id=to_uuid(user_id, "user id"),
            **{field: data[field] for field in PRODUCT_FIELDS if data.get(field) is not None}
        )

        if image is not None and image.filename:
            product.image_url = await image_storage.upload_image("products", str(user_id), image)

        db.add(product)
        await db.commit()
        await db.refresh(product)
        logger.info(f"Product {product.id} created by {user_id}")
        return product

    async def _owned_product(self, db: AsyncSession, product_id, user_id) -> Product:
        product = await self.get_product(db, product_id)
        if str(product.user_id) != str(user_id):
            raise AppError("You are not authorized to modify this product", status.HTTP_403_FORBIDDEN)
        return product

    async def update_product(self, db: AsyncSession, product_id, user_id, data: dict,
                             image: Optional[UploadFile] = None) -> Product:
        product = await self._owned_product(db, product_id, user_id)

        for field in PRODUCT_FIELDS:
            if data.get(field) is not None:
                setattr(product, field, data[field])

        if image is not None and image.filename:
            old_image = product.image_url
            product.image_url = await image_storage.upload_image("products", str(user_id), image)
            if old_image:
                await image_storage.delete_image(old_image)

        await db.commit()
        return product

    async def delete_product(self, db: AsyncSession, product_id, user_id):
        product = await self._owned_product(db, product_id, user_id)
        image_url = product.image_url
        await db.delete(product)
        await db.commit()
        if image_url:
            await image_storage.delete_image(image_url)
        logger.info(f"Product {product_id} deleted by {user_id}")


product_helpers = ProductHelpers()
