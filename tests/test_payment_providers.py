from payment import (
    AdwaPaymentProvider,
    RazorpayPaymentProvider,
    PaymentRequestPayload,
    build_order_number,
    parse_order_number,
    sign_payment,
    verify_payment_signature,
    get_payment_provider,
    is_registered_provider,
    register_payment_provider,
    unregister_payment_provider,
)
from utils.errors import AppError
from types import SimpleNamespace
import base64
import httpx
import json
import pytest

BASE_URL = "https://adwa.example.test/api"


class AdwaStub:
    def __init__(self, payment_status="T", fail_path=None):
        self.payment_status = payment_status
        self.fail_path = fail_path
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.rsplit("/", 1)[-1]
        if path == self.fail_path:
            return httpx.Response(401, json={"message": "Invalid subscription key"})
        if path == "getADPToken":
            return httpx.Response(200, json={"data": {"tokenCode": "tok-123"}})
        if path == "requestToPay":
            body = json.loads(request.content)
            return httpx.Response(200, json={"data": {
                "adpFootprint": "GOSHENWATER_CDF412FBA4535",
                "orderNumber": body["orderNumber"],
                "status": "E",
                "CARD_PAY_LINK": "https://adwa.example.test/card" if body["meanCode"] == "VISA" else None,
            }})
        if path == "paymentStatus":
            return httpx.Response(200, json={"data": {"status": self.payment_status}})
        return httpx.Response(404)


def _provider(stub, **overrides):
    settings = dict(
        merchant_key="merchant",
        application_key="app-key",
        subscription_key="sub-key",
        base_url=BASE_URL,
        transport=httpx.MockTransport(stub),
    )
    settings.update(overrides)
    return AdwaPaymentProvider(**settings)


async def test_adwa_initiate_authenticates_then_requests_payment():
    stub = AdwaStub()
    provider = _provider(stub)

    result = await provider.initiate_payment(
        PaymentRequestPayload(mean_code="MOBILE-MONEY", amount="200", currency="XAF"), "order-1"
    )

    assert result.success
    assert result.footprint == "GOSHENWATER_CDF412FBA4535"
    assert result.redirect_url is None

    token_request, pay_request = stub.requests
    expected_basic = base64.b64encode(b"merchant:sub-key").decode()
    assert token_request.headers["authorization"] == f"Basic {expected_basic}"
    assert json.loads(token_request.content) == {"application": "app-key"}

    assert pay_request.headers["AUTH-API-TOKEN"] == "Bearer tok-123"
    assert pay_request.headers["AUTH-API-SUBSCRIPTION"] == "sub-key"
    body = json.loads(pay_request.content)
    assert body["meanCode"] == "MOBILE-MONEY"
    assert body["orderNumber"].startswith("order_order-1_")


async def test_adwa_card_payment_returns_pay_link():
    provider = _provider(AdwaStub())

    result = await provider.initiate_payment(
        PaymentRequestPayload(mean_code="VISA", amount="200", currency="XAF", order_number="order_x_1"), "x"
    )

    assert result.redirect_url == "https://adwa.example.test/card"
    assert not provider.requires_polling_after_initiate("VISA")
    assert provider.requires_polling_after_initiate("ORANGE-MONEY")


@pytest.mark.parametrize("payment_status, success", [("T", True), ("E", False), ("P", False)])
async def test_adwa_status_check(payment_status, success):
    provider = _provider(AdwaStub(payment_status=payment_status))

    result = await provider.check_status("FP", "MOBILE-MONEY")

    assert result.success is success
    assert result.status == payment_status


async def test_adwa_http_errors_carry_provider_message_and_status():
    provider = _provider(AdwaStub(fail_path="requestToPay"))

    with pytest.raises(AppError) as exc_info:
        await provider.initiate_payment(PaymentRequestPayload(mean_code="VISA", amount="1", currency="XAF"), "o")

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "Payment request failed: Invalid subscription key"


async def test_adwa_transport_errors_are_500():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = _provider(None, transport=httpx.MockTransport(unreachable))

    with pytest.raises(AppError) as exc_info:
        await provider.check_status("FP", "MOBILE-MONEY")

    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "Failed to get auth token"


async def test_adwa_missing_token_in_response():
    provider = _provider(None, transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"data": {}})))

    with pytest.raises(AppError) as exc_info:
        await provider.get_auth_token()

    assert exc_info.value.message == "Failed to get auth token: no token in response"


async def test_adwa_requires_configuration():
    provider = _provider(AdwaStub(), merchant_key=None)

    with pytest.raises(AppError) as exc_info:
        await provider.get_auth_token()

    assert exc_info.value.status_code == 500


class FakeRazorpayOrders:
    def __init__(self, order_status):
        self.order_status = order_status
        self.created = []

    def create(self, data):
        self.created.append(data)
        return {"id": "order_RZP1", "status": "created", "amount": data["amount"]}

    def fetch(self, order_id):
        return {"id": order_id, "status": self.order_status}


async def test_razorpay_amount_in_minor_units_and_paid_status():
    orders = FakeRazorpayOrders("paid")
    provider = RazorpayPaymentProvider(client=SimpleNamespace(order=orders))

    initiated = await provider.initiate_payment(
        PaymentRequestPayload(mean_code="VISA", amount="499.99", currency="INR"), "abc"
    )
    status = await provider.check_status(initiated.footprint, "VISA")

    assert orders.created[0]["amount"] == 49999
    assert initiated.footprint == "order_RZP1"
    assert status.success and status.status == "T"
    assert not provider.requires_polling_after_initiate("MOBILE-MONEY")


async def test_razorpay_unpaid_order():
    provider = RazorpayPaymentProvider(client=SimpleNamespace(order=FakeRazorpayOrders("attempted")))

    status = await provider.check_status("order_RZP1", "VISA")

    assert not status.success
    assert status.status == "attempted"


def test_order_number_round_trip():
    order_id = "a049662d-e152-4dae-8e30-c010cc95435e"
    assert parse_order_number(build_order_number(order_id)) == order_id
    assert parse_order_number(f"order_{order_id}_1718824055475") == order_id


@pytest.mark.parametrize("value", ["a049662d-e152-4dae-8e30-c010cc95435e", "order_only", "order_x_notmillis"])
def test_unrecognised_order_numbers_pass_through(value):
    assert parse_order_number(value) == value


def test_payment_signature():
    signature = sign_payment("secret", "order-1", "pay-1")

    assert verify_payment_signature("secret", "order-1", "pay-1", signature)
    assert not verify_payment_signature("secret", "order-1", "pay-2", signature)
    assert not verify_payment_signature("other", "order-1", "pay-1", signature)
    assert not verify_payment_signature("secret", "order-1", "pay-1", None)


def test_registry_resolution(monkeypatch):
    monkeypatch.setattr("config.PAYMENT_PROVIDER", "razorpay")
    assert get_payment_provider().id == "razorpay"
    assert get_payment_provider("adwa").id == "adwa"
    assert get_payment_provider("does-not-exist").id == "adwa"
    assert is_registered_provider("razorpay")
    assert not is_registered_provider("stripe")
    assert not is_registered_provider(None)


def test_register_and_unregister_provider():
    custom = SimpleNamespace(id="stripe")

    assert register_payment_provider(custom) is None
    try:
        assert get_payment_provider("stripe") is custom
    finally:
        unregister_payment_provider("stripe")

    assert not is_registered_provider("stripe")
