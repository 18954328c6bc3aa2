from fastapi import status, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from models import Order, Product, Transaction, User
from utils.errors import AppError
from utils.notifications import notify_user
from utils.response_helpers import to_uuid, safe_model_validate
from utils.storage import image_storage
from .state import apply_transition, PENDING, TX_PENDING, TX_COMPLETED
from .schemas import OrderResponse
from datetime import datetime, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class OrderHelpers:
    """Order lifecycle: creation, buyer completion, dispatch and delivery"""

    def _with_details(self, query, include_buyer: bool = True, include_seller: bool = True):
        options = [
            selectinload(Order.product).selectinload(Product.user),
            selectinload(Order.product).selectinload(Product.reviews),
        ]
        if include_buyer:
            options.append(selectinload(Order.buyer))
        if include_seller:
            options.append(selectinload(Order.seller))
        return query.options(*options)

    async def get_order(self, db: AsyncSession, order_id, with_details: bool = False) -> Order:
        query = select(Order).where(Order.id == to_uuid(order_id, "order id"))
        if with_details:
            query = self._with_details(query)
        result = await db.execute(query)
        order = result.scalar_one_or_none()
        if not order:
            raise AppError("Order not found", status.HTTP_404_NOT_FOUND)
        return order

    async def _list_orders(self, db: AsyncSession, filters: list, join_product: bool = False, **detail_flags) -> dict:
        count_query = select(func.count(Order.id)).where(*filters)
        query = self._with_details(select(Order), **detail_flags).where(*filters)
        if join_product:
            count_query = count_query.join(Product, Order.prod_id == Product.id)
            query = query.join(Product, Order.prod_id == Product.id)

        count_result = await db.execute(count_query)
        result = await db.execute(query.order_by(Order.created_at.desc()))
        return {"count": count_result.scalar_one(), "rows": result.scalars().all()}

    async def get_buyer_orders(self, db: AsyncSession, buyer_id, order_status: Optional[str] = None) -> dict:
        filters = [Order.buyer_id == to_uuid(buyer_id, "buyer id")]
        if order_status and order_status.strip():
            filters.append(Order.status == order_status.strip())
        return await self._list_orders(db, filters, include_buyer=False)

    async def get_seller_orders(self, db: AsyncSession, seller_id, order_status: Optional[str] = None,
                                product_name: Optional[str] = None) -> dict:
        filters = [Order.seller_id == to_uuid(seller_id, "seller id")]
        if order_status and order_status.strip():
            filters.append(Order.status == order_status.strip())

        join_product = False
        if product_name and product_name.strip():
            filters.append(Product.product_name.like(f"%{product_name.strip()}%"))
            join_product = True

        return await self._list_orders(db, filters, join_product=join_product, include_seller=False)

    async def create_order(self, db: AsyncSession, product_id, data, buyer_id) -> OrderResponse:
        if not data.amount or not data.ship_address or not data.weight or not data.seller_id:
            raise AppError("Missing required fields", status.HTTP_400_BAD_REQUEST)

        seller = await db.get(User, to_uuid(data.seller_id, "seller id"))
        if not seller:
            raise AppError("Invalid sellerId: Seller does not exist", status.HTTP_400_BAD_REQUEST)

        product_uuid = to_uuid(product_id, "product id")
        if not await db.get(Product, product_uuid):
            raise AppError("Product not found", status.HTTP_404_NOT_FOUND)

        try:
            order = Order(
                amount=float(data.amount),
                ship_address=data.ship_address,
                weight=str(data.weight),
                seller_id=seller.id,
                prod_id=product_uuid,
                buyer_id=to_uuid(buyer_id, "buyer id"),
                status=PENDING,
                dispatched=False
            )
            db.add(order)
            await db.flush()

            db.add(Transaction(
                amount=order.amount,
                order_id=order.id,
                status=TX_PENDING
            ))
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(order)
        order_details = safe_model_validate(OrderResponse, order)
        logger.info(f"Order {order.id} created by buyer {buyer_id} for product {product_id}")

        await notify_user(db, order.seller_id, "New Order Placed", "You have received a new order awaiting payment")
        return order_details

    async def get_transaction(self, db: AsyncSession, order_id) -> Optional[Transaction]:
        result = await db.execute(
            select(Transaction).where(Transaction.order_id == to_uuid(order_id, "order id"))
        )
        return result.scalar_one_or_none()

    async def get_transaction_by_order_id(self, db: AsyncSession, order_id) -> Transaction:
        transaction = await self.get_transaction(db, order_id)
        if not transaction:
            raise AppError("Transaction not found", status.HTTP_404_NOT_FOUND)
        return transaction

    async def complete_order(self, db: AsyncSession, order_id, user_id) -> dict:
        """
        Buyer confirms the order once it has been paid for
        """
        transaction = await self.get_transaction(db, order_id)
        if not transaction:
            raise AppError("Transaction not found for this order", status.HTTP_404_NOT_FOUND)

        if transaction.status != TX_COMPLETED:
            raise AppError(
                "This Order is not in Transaction. Please make payment first",
                status.HTTP_403_FORBIDDEN
            )

        order = await self.get_order(db, order_id)
        if str(order.buyer_id) != str(user_id):
            raise AppError("You are not authorized to complete this order", status.HTTP_403_FORBIDDEN)

        apply_transition(order, "complete")
        seller_id, buyer_id = order.seller_id, order.buyer_id
        await db.commit()

        await notify_user(db, seller_id, "Order Completed", "Congratulations! Your Order has been marked as completed")
        await notify_user(db, buyer_id, "Order Completion", "You have marked your order as completed")

        return {"message": "Order Completed Successfully!"}

    async def update_dispatch_details(self, db: AsyncSession, order_id, seller_id, method: Optional[str],
                                      date: Optional[datetime], image: Optional[UploadFile] = None) -> dict:
        if not method or not date:
            raise AppError("Method and date are required", status.HTTP_400_BAD_REQUEST)

        order = await self.get_order(db, order_id)
        if str(order.seller_id) != str(seller_id):
            raise AppError("Only the seller of this order can dispatch it", status.HTTP_403_FORBIDDEN)

        apply_transition(order, "dispatch")

        dispatch_details = {
            "dispatchedAt": datetime.now(timezone.utc).isoformat(),
            "method": method,
        }
        if image is not None and image.filename:
            dispatch_details["imageUrl"] = await image_storage.upload_image("dispatches", str(order.id), image)

        order.dispatched = True
        order.dispatch_details = dispatch_details
        order.delivery_date = date
        await db.commit()
        logger.info(f"Order {order.id} dispatched via {method}")

        await notify_user(db, order.buyer_id, "Order Dispatched", f"Your order has been dispatched via {method}")

        return {"message": "Dispatch details updated successfully"}

    async def confirm_delivery(self, db: AsyncSession, order_id, buyer_id) -> dict:
        order = await self.get_order(db, order_id)
        if str(order.buyer_id) != str(buyer_id):
            raise AppError("Only the buyer of this order can confirm delivery", status.HTTP_403_FORBIDDEN)

        new_status = apply_transition(order, "deliver")
        seller_id = order.seller_id
        await db.commit()

        await notify_user(db, seller_id, "Order Delivered", "The buyer has confirmed delivery of the order")

        return {"message": "Order marked as delivered", "status": new_status}


order_helpers = OrderHelpers()
