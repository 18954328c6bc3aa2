from fastapi import APIRouter, Depends, status, UploadFile, File, Form, Query
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_product_write, require_product_delete
from utils.errors import AppError
from utils.response_helpers import safe_model_validate
from routers.users.schemas import MessageResponse
from .schemas import (
    ProductResponse,
    ProductWithDetailsResponse,
    ProductListResponse,
    ProductDetailResponse,
    ProductCreateResponse,
    ProductSearchResponse,
    ProductSearchParams,
)
from .helpers import product_helpers
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


def _page(result: dict) -> dict:
    return {
        "count": result["count"],
        "rows": [safe_model_validate(ProductWithDetailsResponse, row) for row in result["rows"]],
    }


@router.get("", response_model=ProductSearchResponse, response_model_exclude_none=True)
async def search_products(
    product_name: Optional[str] = Query(None, alias="productName"),
    product_cat: str = Query("All", alias="productCat"),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    product_rating: Optional[str] = Query(None, alias="productRating"),
    whole_sale: Optional[str] = Query(None, alias="wholeSale"),
    page: str = Query("1"),
    limit: str = Query("10"),
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Search products by name, category, price range and wholesale flag.
    Reviews of the requested rating (default 5) are attached to each product.
    """
    try:
        params = ProductSearchParams(
            product_name=product_name,
            product_cat=product_cat,
            min_price=min_price,
            max_price=max_price,
            product_rating=product_rating,
            whole_sale=whole_sale,
            page=page,
            limit=limit
        )
        result = await product_helpers.search_products(db, params)
        query_result = _page(result)
        if not result["count"]:
            return ProductSearchResponse(
                message="No products found matching the search criteria",
                query_result=query_result
            )
        return ProductSearchResponse(query_result=query_result)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error searching products: {str(e)}")
        raise AppError(str(e) or "Error searching products", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/all", response_model=ProductListResponse)
async def get_all_products(
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        result = await product_helpers.get_all_products(db)
        return ProductListResponse(products=_page(result))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting products: {str(e)}")
        raise AppError(str(e) or "Error getting products", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/add", response_model=ProductCreateResponse, status_code=status.HTTP_201_CREATED)
async def add_product(
    product_name: Optional[str] = Form(None, alias="productName"),
    product_cat: Optional[str] = Form(None, alias="productCat"),
    price_type: Optional[str] = Form(None, alias="priceType"),
    price: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    whole_sale: Optional[bool] = Form(None, alias="wholeSale"),
    product_image: Optional[UploadFile] = File(None, alias="productImage", description="Product image (JPEG, PNG, GIF, or WebP, max 5MB)"),
    current_user = Depends(get_current_user),
    _: bool = Depends(require_product_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        product = await product_helpers.create_product(
            db,
            current_user["user_id"],
            {
                "product_name": product_name,
                "product_cat": product_cat,
                "price_type": price_type,
                "price": price,
                "description": description,
                "whole_sale": whole_sale,
            },
            image=product_image
        )
        return ProductCreateResponse(
            message="Product created successfully",
            product=safe_model_validate(ProductResponse, product)
        )
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error creating product: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error creating product", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{user_id}/products", response_model=ProductListResponse)
async def get_user_products(
    user_id: str,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        result = await product_helpers.get_products_by_user(db, user_id)
        return ProductListResponse(products=_page(result))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting products of user {user_id}: {str(e)}")
        raise AppError(str(e) or "Error getting user products", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{product_id}", response_model=ProductDetailResponse)
async def get_product(
    product_id: str,
    current_user = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        product = await product_helpers.get_product(db, product_id, with_details=True)
        return ProductDetailResponse(product=safe_model_validate(ProductWithDetailsResponse, product))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting product {product_id}: {str(e)}")
        raise AppError(str(e) or "Error getting product", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{product_id}", response_model=MessageResponse)
async def update_product(
    product_id: str,
    product_name: Optional[str] = Form(None, alias="productName"),
    product_cat: Optional[str] = Form(None, alias="productCat"),
    price_type: Optional[str] = Form(None, alias="priceType"),
    price: Optional[float] = Form(None),
    description: Optional[str] = Form(None),
    whole_sale: Optional[bool] = Form(None, alias="wholeSale"),
    product_image: Optional[UploadFile] = File(None, alias="productImage"),
    current_user = Depends(get_current_user),
    _: bool = Depends(require_product_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        await product_helpers.update_product(
            db,
            product_id,
            current_user["user_id"],
            {
                "product_name": product_name,
                "product_cat": product_cat,
                "price_type": price_type,
                "price": price,
                "description": description,
                "whole_sale": whole_sale,
            },
            image=product_image
        )
        return MessageResponse(message="Product updated successfully")
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error updating product {product_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error updating product", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_product_delete),
    db: AsyncSession = Depends(get_db)
):
    try:
        await product_helpers.delete_product(db, product_id, current_user["user_id"])
        return MessageResponse(message="Product has been deleted successfully")
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting product {product_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error deleting product", status.HTTP_500_INTERNAL_SERVER_ERROR)
