from pydantic import Field, field_validator
from utils.response_helpers import CamelModel
from typing import Optional, Union, Any, Dict
from enum import Enum


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentCollectionRequest(CamelModel):
    mean_code: str = Field(min_length=1, description="MOBILE-MONEY, ORANGE-MONEY, VISA or MASTERCARD")
    payment_number: str = Field(min_length=1, description="Phone number charged on mobile money rails")
    currency: str = Field(min_length=1, description="Currency code, e.g. XAF")
    fees_amount: float = Field(default=0, ge=0)
    amount: float = Field(ge=1)

    @field_validator("payment_number", mode="before")
    @classmethod
    def payment_number_as_text(cls, value):
        if isinstance(value, (int, float)):
            return str(value)
        return value


class CardPaymentResponse(CamelModel):
    message: Dict[str, Any]
    redirect_url: Optional[str] = None


class PendingPaymentResponse(CamelModel):
    status: str = "pending"
    order_id: str
    footprint: Optional[str] = None
    message: str


class PaymentPollStatusResponse(CamelModel):
    order_id: str
    poll_state: PollState
    transaction_status: Optional[str] = None


class AdwaWebhookPayload(CamelModel):
    status: Optional[str] = None
    foot_print: Optional[str] = None
    order_number: Optional[str] = None
    moyen_paiement: Optional[str] = None
    amount: Optional[Union[float, str]] = None


class ExternalPaymentConfirmation(CamelModel):
    order_id: Optional[str] = None
    amount: Optional[Union[float, str]] = None
    currency: Optional[str] = None
    external_payment_id: Optional[str] = None
    provider: Optional[str] = None
    signature: Optional[str] = Field(None, description="hex HMAC-SHA256 of '<orderId>|<externalPaymentId>'")


class ExternalPaymentResponse(CamelModel):
    message: str
    order_id: str
    status: str
