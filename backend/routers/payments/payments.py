from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from config import get_db
from routers.auth.auth import get_current_user
from dependencies.rbac import require_payment_read, require_payment_write, require_payment_delete
from utils.errors import AppError
from routers.users.schemas import MessageResponse
from .schemas import (
    PaymentCollectionRequest,
    CardPaymentResponse,
    PendingPaymentResponse,
    PaymentPollStatusResponse,
    AdwaWebhookPayload,
    ExternalPaymentConfirmation,
    ExternalPaymentResponse,
)
from .helpers import payment_helpers
from .poller import payment_poller
from typing import Union
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["Payments"])


@router.post("/webhook/adwapay", response_model=MessageResponse)
async def adwa_webhook(
    payload: AdwaWebhookPayload,
    db: AsyncSession = Depends(get_db)
):
    """
    Payment notification from ADWA. The reported status is re-checked with
    the provider before anything is recorded.
    """
    try:
        return await payment_helpers.process_webhook(db, payload)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error processing ADWA webhook for {payload.order_number}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error processing payment", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post(
    "/{order_id}/paymentCollection/mobile",
    response_model=Union[PendingPaymentResponse, CardPaymentResponse],
    responses={202: {"model": PendingPaymentResponse}},
)
async def collect_payment(
    order_id: str,
    payment_data: PaymentCollectionRequest,
    response: Response,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_payment_write),
    db: AsyncSession = Depends(get_db)
):
    """
    Start collecting payment for an order.

    VISA and MASTERCARD answer 200 with the card page to redirect the customer to.
    Mobile money answers 202 right away; confirmation is polled in the background
    and can be followed on /paymentCollection/status. With PAYMENT_BACKGROUND_POLLING
    off (the Lambda handler) no poll is started and only the provider webhook
    confirms the payment.
    """
    try:
        body, pending = await payment_helpers.initiate_payment(db, order_id, payment_data)
        if pending:
            response.status_code = status.HTTP_202_ACCEPTED
            return PendingPaymentResponse(**body)
        return CardPaymentResponse(**body)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error initiating payment for order {order_id}: {str(e)}")
        raise AppError(str(e) or "An error occurred during payment processing", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("/{order_id}/paymentCollection/status", response_model=PaymentPollStatusResponse)
async def get_payment_status(
    order_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_payment_read),
    db: AsyncSession = Depends(get_db)
):
    try:
        return PaymentPollStatusResponse(**await payment_helpers.get_poll_status(db, order_id))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error getting payment status for order {order_id}: {str(e)}")
        raise AppError(str(e) or "Error getting payment status", status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.delete("/{order_id}/paymentCollection/status", response_model=MessageResponse)
async def cancel_payment_poll(
    order_id: str,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_payment_delete),
):
    if not payment_poller.cancel(order_id):
        raise AppError("No payment confirmation in progress for this order", status.HTTP_404_NOT_FOUND)
    return MessageResponse(message="Payment confirmation cancelled")


@router.post("/payment/confirm-external", response_model=ExternalPaymentResponse)
async def confirm_external_payment(
    confirmation: ExternalPaymentConfirmation,
    current_user = Depends(get_current_user),
    _: bool = Depends(require_payment_write),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a payment taken through another provider (Razorpay, Stripe, M-Pesa, ...)
    """
    try:
        return ExternalPaymentResponse(**await payment_helpers.confirm_external_payment(db, confirmation))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error confirming external payment for order {confirmation.order_id}: {str(e)}")
        await db.rollback()
        raise AppError(str(e) or "Error confirming payment", status.HTTP_500_INTERNAL_SERVER_ERROR)
