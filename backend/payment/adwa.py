from fastapi import status
from config import ADWA_MERCHANT_KEY, ADWA_APPLICATION_KEY, ADWA_SUBSCRIPTION_KEY, ADWA_BASE_URL
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
import httpx
import logging

logger = logging.getLogger(__name__)


class AdwaPaymentProvider(PaymentProvider):
    """
    ADWA mobile-money / card gateway.

    Every call first exchanges the merchant credentials for a short lived
    token (getADPToken), then calls requestToPay or paymentStatus with it.
    """
    id = "adwa"

    def __init__(
        self,
        merchant_key: Optional[str] = ADWA_MERCHANT_KEY,
        application_key: Optional[str] = ADWA_APPLICATION_KEY,
        subscription_key: Optional[str] = ADWA_SUBSCRIPTION_KEY,
        base_url: Optional[str] = ADWA_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.merchant_key = merchant_key
        self.application_key = application_key
        self.subscription_key = subscription_key
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=self.timeout)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
        return f"Request failed with status code {response.status_code}"

    async def _post(self, path: str, error_prefix: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                response = await client.post(path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"ADWA {path} transport error: {str(e)}")
            raise AppError(error_prefix, status.HTTP_500_INTERNAL_SERVER_ERROR)

        if response.is_error:
            raise AppError(f"{error_prefix}: {self._error_message(response)}", response.status_code)

        body = response.json()
        return (body or {}).get("data") or {}

    def _api_headers(self, token: str) -> dict:
        return {
            "AUTH-API-TOKEN": f"Bearer {token}",
            "AUTH-API-SUBSCRIPTION": self.subscription_key,
        }

    async def get_auth_token(self) -> str:
        if not all([self.merchant_key, self.application_key, self.subscription_key, self.base_url]):
            raise AppError("Missing required Adwa payment configuration", status.HTTP_500_INTERNAL_SERVER_ERROR)

        data = await self._post(
            "/getADPToken",
            "Failed to get auth token",
            json={"application": self.application_key},
            auth=(self.merchant_key, self.subscription_key),
        )
        token = data.get("tokenCode")
        if not token:
            raise AppError("Failed to get auth token: no token in response", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return token

    async def initiate_payment(self, payload: PaymentRequestPayload, order_id: str) -> InitiatePaymentResult:
        token = await self.get_auth_token()
        order_number = payload.order_number or build_order_number(order_id)

        data = await self._post(
            "/requestToPay",
            "Payment request failed",
            json={
                "meanCode": payload.mean_code,
                "amount": payload.amount,
                "currency": payload.currency,
                "orderNumber": order_number,
            },
            headers=self._api_headers(token),
        )
        logger.info(f"ADWA requestToPay for order {order_id} returned status {data.get('status')}")

        return InitiatePaymentResult(
            success=True,
            footprint=data.get("adpFootprint"),
            redirect_url=data.get("CARD_PAY_LINK"),
            status=data.get("status", ""),
            raw=data,
        )

    async def check_status(self, footprint: str, mean_code: str) -> PaymentStatusResult:
        token = await self.get_auth_token()

        data = await self._post(
            "/paymentStatus",
            "Failed to check payment status",
            json={"adpFootprint": footprint, "meanCode": mean_code},
            headers=self._api_headers(token),
        )
        payment_status = data.get("status", "")

        return PaymentStatusResult(
            success=payment_status == SUCCESS_STATUS,
            status=payment_status,
            raw=data,
        )
