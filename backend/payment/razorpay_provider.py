from fastapi import status
from fastapi.concurrency import run_in_threadpool
from config import RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET
from utils.errors import AppError
from .base import (
    PaymentProvider,
    PaymentRequestPayload,
    InitiatePaymentResult,
    PaymentStatusResult,
    SUCCESS_STATUS,
    build_order_number,
)
from typing import Optional
import razorpay
import logging

logger = logging.getLogger(__name__)


class RazorpayPaymentProvider(PaymentProvider):
    """
    Razorpay orders. The client completes checkout itself and the payment is
    confirmed through the external confirmation endpoint, so there is nothing to poll.
    """
    id = "razorpay"

    def __init__(
        self,
        key_id: Optional[str] = RAZORPAY_KEY_ID,
        key_secret: Optional[str] = RAZORPAY_KEY_SECRET,
        client: Optional[razorpay.Client] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self._client = client

    @property
    def client(self) -> razorpay.Client:
        if self._client is None:
            if not self.key_id or not self.key_secret:
                raise AppError("Missing required Razorpay payment configuration", status.HTTP_500_INTERNAL_SERVER_ERROR)
            self._client = razorpay.Client(auth=(self.key_id, self.key_secret))
        return self._client

    async def initiate_payment(self, payload: PaymentRequestPayload, order_id: str) -> InitiatePaymentResult:
        amount_in_minor_units = int(round(float(payload.amount) * 100))
        try:
            razorpay_order = await run_in_threadpool(
                self.client.order.create,
                {
                    "amount": amount_in_minor_units,
                    "currency": payload.currency,
                    "receipt": payload.order_number or build_order_number(order_id),
                    "payment_capture": 1,
                    "notes": {"order_id": str(order_id)},
                }
            )
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Razorpay order creation failed for order {order_id}: {str(e)}")
            raise AppError(f"Payment request failed: {str(e)}", status.HTTP_502_BAD_GATEWAY)

        return InitiatePaymentResult(
            success=True,
            footprint=razorpay_order["id"],
            status=razorpay_order.get("status", ""),
            raw=razorpay_order,
        )

    async def check_status(self, footprint: str, mean_code: str) -> PaymentStatusResult:
        try:
            razorpay_order = await run_in_threadpool(self.client.order.fetch, footprint)
        except AppError:
            raise
        except Exception as e:
            logger.error(f"Razorpay order fetch failed for {footprint}: {str(e)}")
            raise AppError(f"Failed to check payment status: {str(e)}", status.HTTP_502_BAD_GATEWAY)

        paid = razorpay_order.get("status") == "paid"
        return PaymentStatusResult(
            success=paid,
            status=SUCCESS_STATUS if paid else razorpay_order.get("status", ""),
            raw=razorpay_order,
        )

    def requires_polling_after_initiate(self, mean_code: str) -> bool:
        return False
