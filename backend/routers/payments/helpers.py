from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models import Order, Transaction
from payment import (
    PaymentRequestPayload,
    SUCCESS_STATUS,
    build_order_number,
    parse_order_number,
    get_payment_provider,
    is_registered_provider,
    verify_payment_signature,
)
from routers.orders.state import apply_transition, complete_transaction, PENDING, PROCESSING, TX_COMPLETED
from utils.errors import AppError
from utils.notifications import notify_user
from .poller import payment_poller
from .schemas import PaymentCollectionRequest, AdwaWebhookPayload, ExternalPaymentConfirmation
from datetime import datetime, timezone
from typing import Optional, Tuple
import config
import logging
import uuid

logger = logging.getLogger(__name__)

PAYMENT_VALIDATION_FAILED = "Payment validation failed"
EXTERNAL_PAYMENT_METHOD = "MASTERCARD"
PENDING_PAYMENT_MESSAGE = "Payment request sent. Approve it on your phone, the order is updated once the payment is confirmed"


def _parse_amount(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise AppError("Invalid amount", status.HTTP_400_BAD_REQUEST)


class PaymentHelpers:
    """Payment collection: initiation, webhook and external confirmation"""

    async def _find_order(self, db: AsyncSession, order_id) -> Optional[Order]:
        try:
            order_uuid = uuid.UUID(str(order_id))
        except (ValueError, TypeError):
            return None
        return await db.get(Order, order_uuid)

    async def _get_transaction(self, db: AsyncSession, order_id, lock: bool = False) -> Transaction:
        query = select(Transaction).where(Transaction.order_id == order_id)
        if lock:
            query = query.with_for_update()
        result = await db.execute(query)
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise AppError("Transaction not found for this order", status.HTTP_404_NOT_FOUND)
        return transaction

    async def initiate_payment(self, db: AsyncSession, order_id, data: PaymentCollectionRequest) -> Tuple[dict, bool]:
        """
        Ask the provider to collect payment for an order.
        Returns the response body and whether confirmation is still pending.
        """
        order = await self._find_order(db, order_id)
        if not order:
            raise AppError("Order not found or not created", status.HTTP_404_NOT_FOUND)

        transaction = await self._get_transaction(db, order.id)
        if transaction.status == TX_COMPLETED:
            raise AppError("Payment has already been completed for this order", status.HTTP_409_CONFLICT)

        provider = get_payment_provider()
        payload = PaymentRequestPayload(
            mean_code=data.mean_code,
            amount=str(data.amount),
            currency=data.currency,
            order_number=build_order_number(order.id),
            payment_number=data.payment_number,
            fees_amount=data.fees_amount,
        )
        result = await provider.initiate_payment(payload, str(order.id))

        if not provider.requires_polling_after_initiate(data.mean_code):
            logger.info(f"Card payment for order {order.id} started, redirecting customer")
            return {"message": result.raw, "redirect_url": result.redirect_url}, False

        if not result.footprint:
            raise AppError("Payment request failed: no footprint in response", status.HTTP_502_BAD_GATEWAY)

        if config.PAYMENT_BACKGROUND_POLLING:
            payment_poller.start(str(order.id), result.footprint, payload, provider)
            logger.info(f"Mobile payment for order {order.id} started with footprint {result.footprint}")
        else:
            logger.info(f"Mobile payment for order {order.id} started with footprint {result.footprint}, awaiting webhook")
        return {
            "status": "pending",
            "order_id": str(order.id),
            "footprint": result.footprint,
            "message": PENDING_PAYMENT_MESSAGE,
        }, True

    async def get_poll_status(self, db: AsyncSession, order_id) -> dict:
        order = await self._find_order(db, order_id)
        if not order:
            raise AppError("Order not found", status.HTTP_404_NOT_FOUND)

        result = await db.execute(select(Transaction.status).where(Transaction.order_id == order.id))
        return {
            "order_id": str(order.id),
            "poll_state": payment_poller.state(order.id),
            "transaction_status": result.scalar_one_or_none(),
        }

    async def _confirm_payment(self, db: AsyncSession, order: Order, amount: float, method: Optional[str],
                               currency: Optional[str], details: dict) -> bool:
        """
        Complete the order's transaction and move the order to processing in
        one commit. Returns False when the payment had already been recorded.
        """
        try:
            # reload under a row lock so concurrent confirmations see each other's status
            await db.refresh(order, with_for_update=True)
            transaction = await self._get_transaction(db, order.id, lock=True)
            previous_status = order.status

            transaction_changed = complete_transaction(
                transaction, amount=amount, method=method, currency=currency, details=details
            )
            if transaction_changed or previous_status == PENDING:
                apply_transition(order, "confirm_payment")

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        confirmed = transaction_changed or previous_status == PENDING
        if not confirmed:
            logger.info(f"Payment for order {order.id} was already confirmed")
        return confirmed

    async def _notify_payment_success(self, db: AsyncSession, seller_id, buyer_id):
        await notify_user(db, seller_id, "New Order", "Congratulations! You have received a New Order.")
        await notify_user(db, buyer_id, "Payment Done", "Your Payment has been Successfully Made and Your order has started")

    async def process_webhook(self, db: AsyncSession, payload: AdwaWebhookPayload) -> dict:
        if payload.status != SUCCESS_STATUS:
            raise AppError(PAYMENT_VALIDATION_FAILED, status.HTTP_400_BAD_REQUEST)

        provider = get_payment_provider("adwa")
        check = await provider.check_status(payload.foot_print, payload.moyen_paiement)
        if not check.success:
            logger.warning(f"Webhook for {payload.order_number} rejected, provider reports {check.status}")
            raise AppError(PAYMENT_VALIDATION_FAILED, status.HTTP_400_BAD_REQUEST)

        order = await self._find_order(db, parse_order_number(payload.order_number))
        if not order:
            raise AppError("Order not found", status.HTTP_404_NOT_FOUND)

        amount = _parse_amount(payload.amount) if payload.amount is not None else None
        seller_id, buyer_id = order.seller_id, order.buyer_id
        if await self._confirm_payment(db, order, amount, payload.moyen_paiement, None, check.raw):
            logger.info(f"Webhook confirmed payment for order {order.id}")
            await self._notify_payment_success(db, seller_id, buyer_id)

        return {"message": "Payment processed successfully"}

    async def _verify_external_payment(self, data: ExternalPaymentConfirmation):
        if is_registered_provider(data.provider):
            check = await get_payment_provider(data.provider).check_status(
                data.external_payment_id, EXTERNAL_PAYMENT_METHOD
            )
            if not check.success:
                raise AppError(PAYMENT_VALIDATION_FAILED, status.HTTP_400_BAD_REQUEST)
            return

        if config.EXTERNAL_PAYMENT_SECRET:
            if not verify_payment_signature(
                config.EXTERNAL_PAYMENT_SECRET, data.order_id, data.external_payment_id, data.signature
            ):
                raise AppError("Invalid payment signature", status.HTTP_400_BAD_REQUEST)
            return

        logger.warning(
            f"EXTERNAL_PAYMENT_SECRET is not set, trusting external confirmation for order {data.order_id}"
        )

    async def confirm_external_payment(self, db: AsyncSession, data: ExternalPaymentConfirmation) -> dict:
        if not data.order_id or data.amount is None or not data.currency or not data.external_payment_id:
            raise AppError(
                "Missing required fields: orderId, amount, currency, externalPaymentId",
                status.HTTP_400_BAD_REQUEST
            )
        amount = _parse_amount(data.amount)

        await self._verify_external_payment(data)

        order = await self._find_order(db, data.order_id)
        if not order:
            raise AppError("Order not found", status.HTTP_404_NOT_FOUND)

        details = {
            "externalPaymentId": data.external_payment_id,
            "provider": data.provider or "external",
            "confirmedAt": datetime.now(timezone.utc).isoformat(),
            "external": True,
        }
        seller_id, buyer_id = order.seller_id, order.buyer_id
        if await self._confirm_payment(db, order, amount, EXTERNAL_PAYMENT_METHOD, data.currency, details):
            logger.info(f"External payment {data.external_payment_id} confirmed for order {order.id}")
            await self._notify_payment_success(db, seller_id, buyer_id)

        return {
            "message": "Payment confirmed successfully",
            "order_id": data.order_id,
            "status": PROCESSING,
        }


payment_helpers = PaymentHelpers()
