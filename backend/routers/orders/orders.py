from fastapi import APIRouter, Depends, status, Query, UploadFile, File, Form
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_order_read, require_order_write, require_dispatch
from utils.errors import AppError
from utils.response_helpers import safe_model_validate
from routers.users.schemas import MessageResponse
from .schemas import (
    OrderCreate,
    OrderWithDetailsResponse,
    OrderCreateResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderTransactionResponse,
    TransactionResponse,
)
from .helpers import order_helpers
from typing import Optional
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])

ORDER_CREATED_MESSAGE = (
    "Order created successfully. Please proceed toward payment else order can not be processed further"
)


def _orders_data(result: dict) -> dict:
    return {
        "count": result["count"],
        "rows": [safe_model_validate(OrderWithDetailsResponse, row) for row in result["rows"]],
    }


@router.get("/buyer/{buyer_id}", response_model=OrderListResponse)
async def get_buyer_orders(
    buyer_id: str,
    order_status: Optional[str] = Query(None, alias="orderStatus"),
    current_user = Depends(get_current_user),
    _: bool = Depends(require_order_read),
    db: AsyncSession = Depends(get_db)
):
    try:
        result = await order_helpers.get_buyer_orders(db, buyer_id, order_status)
        return OrderListResponse(orders_data=_orders_data(result))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting orders of buyer {buyer_id}: {str(e)}")
        raise AppError(str(e) or "Error getting buyer orders", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/seller/{seller_id}", response_model=OrderListResponse)
async def get_seller_orders(
    seller_id: str,
    order_status: Optional[str] = Query(None, alias="orderStatus"),
    product_name: Optional[str] = Query(None, alias="productName"),
    current_user = Depends(get_current_user),
    _: bool = Depends(require_order_read),
    db: AsyncSession = Depends(get_db)
):
    try:
        result = await order_helpers.get_seller_orders(db, seller_id, order_status, product_name)
        return OrderListResponse(orders_data=_orders_data(result))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting orders of seller {seller_id}: {str(e)}")
        raise AppError(str(e) or "Error getting seller orders", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/new/{product_id}", response_model=OrderCreateResponse)
async def create_order(
    product_id: str,
    order_data: OrderCreate,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_order_write),
    db: AsyncSession = Depends(get_db)
):
    """
    Place an order for a product. The order and its pending transaction are
    created together; payment is collected through /transactions afterwards.
    """
    try:
        order_details = await order_helpers.create_order(db, product_id, order_data, current_user["user_id"])
        return OrderCreateResponse(message=ORDER_CREATED_MESSAGE, order_details=order_details)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating order for product {product_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error creating order", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_order_read),
    db: AsyncSession = Depends(get_db)
):
    try:
        order = await order_helpers.get_order(db, order_id, with_details=True)
        return OrderDetailResponse(order=safe_model_validate(OrderWithDetailsResponse, order))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting order {order_id}: {str(e)}")
        raise AppError(str(e) or "Error getting order", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{order_id}/complete", response_model=MessageResponse)
async def complete_order(
    order_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_order_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await order_helpers.complete_order(db, order_id, current_user["user_id"])
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error completing order {order_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error completing order", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{order_id}/dispatch", response_model=MessageResponse)
async def dispatch_order(
    order_id: str,
    method: Optional[str] = Form(None),
    date: Optional[datetime] = Form(None),
    dispatch_image: Optional[UploadFile] = File(None, alias="dispatchImage", description="Proof of dispatch (JPEG, PNG, GIF, or WebP, max 5MB)"),
    current_user = Depends(get_current_user),
    _: bool = Depends(require_dispatch),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await order_helpers.update_dispatch_details(
            db, order_id, current_user["user_id"], method, date, image=dispatch_image
        )
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error dispatching order {order_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error updating dispatch details", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.put("/{order_id}/deliver")
async def confirm_delivery(
    order_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_order_write),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await order_helpers.confirm_delivery(db, order_id, current_user["user_id"])
    except AppError:
        await db.rollback()
        raise
    except Exception as e:
        logger.error(f"Error confirming delivery of order {order_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error confirming delivery", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{order_id}/transaction", response_model=OrderTransactionResponse)
async def get_order_transaction(
    order_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_order_read),
    db: AsyncSession = Depends(get_db)
):
    try:
        transaction = await order_helpers.get_transaction_by_order_id(db, order_id)
        return OrderTransactionResponse(transaction=safe_model_validate(TransactionResponse, transaction))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting transaction of order {order_id}: {str(e)}")
        raise AppError(str(e) or "Error getting transaction", status.HTTP_500_INTERNAL_SERVER_ERROR)
