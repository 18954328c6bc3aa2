from models import Order, Transaction, Notification
from payment import sign_payment
from routers.payments.helpers import payment_helpers
from sqlalchemy import update
from utils.errors import AppError
import asyncio
import config
import pytest
import uuid

TRANSACTIONS = "/api/v1/transactions"


def _mobile_payment(**overrides):
    body = {
        "meanCode": "MOBILE-MONEY",
        "paymentNumber": "672151908",
        "currency": "XAF",
        "feesAmount": 0,
        "amount": 3000,
    }
    body.update(overrides)
    return body


def _webhook(order_id, **overrides):
    body = {
        "status": "T",
        "footPrint": "FP-0001",
        "orderNumber": f"order_{order_id}_1718824055475",
        "moyenPaiement": "MOBILE-MONEY",
        "amount": "3000",
    }
    body.update(overrides)
    return body


async def _transaction(fetch, order):
    return (await fetch(Transaction, order_id=order.id))[0]


async def _order(fetch, order):
    return (await fetch(Order, id=order.id))[0]


# --- webhook ---

async def test_webhook_confirms_payment_and_notifies_both_parties(client, provider, make_order, fetch, push, seed):
    order = await make_order()

    response = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id))

    assert response.status_code == 200
    assert response.json() == {"message": "Payment processed successfully"}
    assert provider.checks == [("FP-0001", "MOBILE-MONEY")]

    transaction = await _transaction(fetch, order)
    assert transaction.status == "completed"
    assert transaction.amount == 3000.0
    assert transaction.tx_method == "MOBILE-MONEY"
    assert transaction.tx_details == {"status": "T", "adpFootprint": "FP-0001"}
    assert (await _order(fetch, order)).status == "processing"

    assert push.titles == ["New Order", "Payment Done"]
    assert [n.title for n in await fetch(Notification, user_id=seed.farmer.id)] == ["New Order"]
    assert [n.title for n in await fetch(Notification, user_id=seed.buyer.id)] == ["Payment Done"]


async def test_webhook_with_failed_status_never_reaches_provider(client, provider, make_order, fetch):
    order = await make_order()

    response = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id, status="F"))

    assert response.status_code == 400
    assert response.json()["message"] == "Payment validation failed"
    assert provider.checks == []
    assert (await _transaction(fetch, order)).status == "pending"


async def test_webhook_rejected_when_provider_disagrees(client, provider, make_order, fetch):
    provider.statuses = ["E"]
    order = await make_order()

    response = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id))

    assert response.status_code == 400
    assert response.json()["message"] == "Payment validation failed"
    assert (await _transaction(fetch, order)).status == "pending"
    assert (await _order(fetch, order)).status == "pending"


async def test_webhook_for_unknown_order(client, provider, seed):
    response = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(uuid.uuid4()))

    assert response.status_code == 404
    assert response.json()["message"] == "Order not found"


async def test_webhook_accepts_a_bare_order_id(client, provider, make_order, fetch):
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id, orderNumber=str(order.id))
    )

    assert response.status_code == 200
    assert (await _transaction(fetch, order)).status == "completed"


async def test_repeated_webhook_is_a_no_op(client, provider, make_order, fetch, push):
    order = await make_order()

    first = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id))
    second = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id, amount="1"))

    assert first.status_code == second.status_code == 200
    assert (await _transaction(fetch, order)).amount == 3000.0
    assert push.titles == ["New Order", "Payment Done"]


async def test_push_failure_does_not_undo_the_payment(client, provider, make_order, fetch, push):
    push.status_code = 500
    order = await make_order()

    response = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id))

    assert response.status_code == 200
    assert (await _transaction(fetch, order)).status == "completed"
    assert (await _order(fetch, order)).status == "processing"
    assert await fetch(Notification) == []


# --- external confirmation ---

def _external(order_id, **overrides):
    body = {
        "orderId": str(order_id),
        "amount": 3000,
        "currency": "INR",
        "externalPaymentId": "pay_29QQoUBi66xm2f",
    }
    body.update(overrides)
    return body


async def test_external_confirmation_requires_fields(client, seed):
    response = await client.post(
        f"{TRANSACTIONS}/payment/confirm-external",
        json={"orderId": str(uuid.uuid4()), "amount": 10},
        headers=seed.buyer_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Missing required fields: orderId, amount, currency, externalPaymentId"


async def test_external_confirmation_rejects_bad_signature(client, seed, make_order, fetch, monkeypatch):
    monkeypatch.setattr(config, "EXTERNAL_PAYMENT_SECRET", "whsec_test")
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/payment/confirm-external",
        json=_external(order.id, signature="0" * 64),
        headers=seed.buyer_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid payment signature"
    assert (await _transaction(fetch, order)).status == "pending"


async def test_external_confirmation_with_valid_signature(client, seed, make_order, fetch, monkeypatch, push):
    monkeypatch.setattr(config, "EXTERNAL_PAYMENT_SECRET", "whsec_test")
    order = await make_order()
    signature = sign_payment("whsec_test", str(order.id), "pay_29QQoUBi66xm2f")

    response = await client.post(
        f"{TRANSACTIONS}/payment/confirm-external",
        json=_external(order.id, signature=signature),
        headers=seed.buyer_headers,
    )

    assert response.status_code == 200
    assert response.json() == {
        "message": "Payment confirmed successfully",
        "orderId": str(order.id),
        "status": "processing",
    }
    transaction = await _transaction(fetch, order)
    assert transaction.status == "completed"
    assert transaction.tx_method == "MASTERCARD"
    assert transaction.currency == "INR"
    assert transaction.tx_details["externalPaymentId"] == "pay_29QQoUBi66xm2f"
    assert transaction.tx_details["provider"] == "external"
    assert transaction.tx_details["external"] is True
    assert (await _order(fetch, order)).status == "processing"
    assert push.titles == ["New Order", "Payment Done"]


async def test_external_confirmation_verified_with_registered_provider(client, seed, provider, make_order, fetch):
    provider.statuses = ["E"]
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/payment/confirm-external",
        json=_external(order.id, provider="adwa"),
        headers=seed.buyer_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Payment validation failed"
    assert provider.checks == [("pay_29QQoUBi66xm2f", "MASTERCARD")]
    assert (await _transaction(fetch, order)).status == "pending"


async def test_external_confirmation_trusted_without_secret(client, seed, make_order, fetch, monkeypatch):
    monkeypatch.setattr(config, "EXTERNAL_PAYMENT_SECRET", None)
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/payment/confirm-external",
        json=_external(order.id, provider="stripe"),
        headers=seed.buyer_headers,
    )

    assert response.status_code == 200
    assert (await _transaction(fetch, order)).tx_details["provider"] == "stripe"


async def test_farmers_cannot_confirm_payments(client, seed, make_order):
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/payment/confirm-external", json=_external(order.id), headers=seed.farmer_headers
    )

    assert response.status_code == 403


# --- payment collection ---

async def test_card_payment_returns_redirect(client, seed, provider, make_order, fetch, poller):
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile",
        json=_mobile_payment(meanCode="VISA"),
        headers=seed.buyer_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["redirectUrl"] == "https://pay.example.test/card?adpFootprint=FP-0001"
    assert body["message"]["adpFootprint"] == "FP-0001"
    assert poller.task(order.id) is None
    assert (await _transaction(fetch, order)).status == "pending"

    payload, order_id = provider.initiated[0]
    assert order_id == str(order.id)
    assert payload.order_number.startswith(f"order_{order.id}_")


async def test_mobile_payment_is_confirmed_in_background(client, seed, provider, make_order, fetch, poller):
    provider.statuses = ["P", "T"]
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile",
        json=_mobile_payment(),
        headers=seed.buyer_headers,
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "pending"
    assert body["orderId"] == str(order.id)
    assert body["footprint"] == "FP-0001"

    await asyncio.wait_for(poller.task(order.id), timeout=2)

    transaction = await _transaction(fetch, order)
    assert transaction.status == "completed"
    assert transaction.tx_method == "MOBILE-MONEY"
    assert transaction.currency == "XAF"
    assert transaction.amount == 3000.0
    assert len(provider.checks) == 2

    status_response = await client.get(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/status", headers=seed.buyer_headers
    )
    assert status_response.json() == {
        "orderId": str(order.id),
        "pollState": "completed",
        "transactionStatus": "completed",
    }


async def test_poll_survives_provider_errors(client, seed, provider, make_order, fetch, poller):
    provider.statuses = [AppError("Failed to check payment status", 502), "T"]
    order = await make_order()

    await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile", json=_mobile_payment(), headers=seed.buyer_headers
    )
    await asyncio.wait_for(poller.task(order.id), timeout=2)

    assert poller.state(order.id) == "completed"
    assert (await _transaction(fetch, order)).status == "completed"


async def test_poll_expires_and_leaves_transaction_pending(client, seed, provider, make_order, fetch, poller,
                                                          monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_POLL_TIMEOUT", 0.05)
    provider.statuses = ["P"]
    order = await make_order()

    await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile", json=_mobile_payment(), headers=seed.buyer_headers
    )
    await asyncio.wait_for(poller.task(order.id), timeout=2)

    assert poller.state(order.id) == "expired"
    assert len(provider.checks) >= 1
    assert (await _transaction(fetch, order)).status == "pending"


async def test_cancel_in_flight_poll(client, seed, provider, make_order, poller, monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_POLL_INITIAL_DELAY", 10)
    order = await make_order()

    await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile", json=_mobile_payment(), headers=seed.buyer_headers
    )
    task = poller.task(order.id)

    response = await client.delete(f"{TRANSACTIONS}/{order.id}/paymentCollection/status", headers=seed.buyer_headers)
    assert response.status_code == 200

    with pytest.raises(asyncio.CancelledError):
        await task

    status_response = await client.get(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/status", headers=seed.buyer_headers
    )
    assert status_response.json()["pollState"] == "cancelled"
    assert status_response.json()["transactionStatus"] == "pending"
    assert provider.checks == []


async def test_new_initiate_replaces_previous_poll(client, seed, provider, make_order, poller, monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_POLL_INITIAL_DELAY", 10)
    order = await make_order()
    url = f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile"

    await client.post(url, json=_mobile_payment(), headers=seed.buyer_headers)
    first = poller.task(order.id)
    await client.post(url, json=_mobile_payment(), headers=seed.buyer_headers)
    second = poller.task(order.id)

    await asyncio.gather(first, return_exceptions=True)
    assert first.cancelled()
    assert second is not first and not second.done()
    assert poller.state(order.id) == "polling"


async def test_poll_status_for_order_without_poll(client, seed, make_order):
    order = await make_order()

    response = await client.get(f"{TRANSACTIONS}/{order.id}/paymentCollection/status", headers=seed.buyer_headers)

    assert response.json()["pollState"] == "idle"
    assert response.json()["transactionStatus"] == "pending"


async def test_cancel_without_poll(client, seed, make_order):
    order = await make_order()

    response = await client.delete(f"{TRANSACTIONS}/{order.id}/paymentCollection/status", headers=seed.buyer_headers)

    assert response.status_code == 404


async def test_initiate_for_unknown_order(client, seed, provider):
    response = await client.post(
        f"{TRANSACTIONS}/{uuid.uuid4()}/paymentCollection/mobile", json=_mobile_payment(), headers=seed.buyer_headers
    )

    assert response.status_code == 404
    assert response.json()["message"] == "Order not found or not created"


async def test_initiate_for_paid_order(client, seed, provider, make_order):
    order = await make_order(status="processing", tx_status="completed")

    response = await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile", json=_mobile_payment(), headers=seed.buyer_headers
    )

    assert response.status_code == 409
    assert provider.initiated == []


async def test_initiate_validates_body(client, seed, provider, make_order):
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile", json=_mobile_payment(amount=0), headers=seed.buyer_headers
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid request data"


async def test_finished_polls_are_released(client, seed, provider, make_order, poller, monkeypatch):
    monkeypatch.setattr(poller, "history_size", 2)
    orders = [await make_order() for _ in range(3)]

    for order in orders:
        await client.post(
            f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile", json=_mobile_payment(), headers=seed.buyer_headers
        )
        await asyncio.wait_for(poller.task(order.id), timeout=2)
        await asyncio.sleep(0)

    assert poller._tasks == {}
    assert len(poller._states) == 2
    assert poller.state(orders[0].id) == "idle"
    assert [poller.state(order.id) for order in orders[1:]] == ["completed", "completed"]


async def test_mobile_payment_without_background_polling(client, seed, provider, make_order, fetch, poller,
                                                         monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_BACKGROUND_POLLING", False)
    order = await make_order()

    response = await client.post(
        f"{TRANSACTIONS}/{order.id}/paymentCollection/mobile", json=_mobile_payment(), headers=seed.buyer_headers
    )

    assert response.status_code == 202
    assert response.json()["status"] == "pending"
    assert poller.task(order.id) is None
    assert provider.checks == []
    assert (await _transaction(fetch, order)).status == "pending"

    webhook = await client.post(f"{TRANSACTIONS}/webhook/adwapay", json=_webhook(order.id))

    assert webhook.status_code == 200
    assert (await _transaction(fetch, order)).status == "completed"
    assert (await _order(fetch, order)).status == "processing"


async def test_confirmation_reads_the_stored_order_status(session_factory, make_order, fetch):
    order = await make_order()

    async with session_factory() as db:
        stale = await db.get(Order, order.id)
        # another confirmation lands after this one loaded the order
        await db.execute(
            update(Order).where(Order.id == order.id).values(status="processing")
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(Transaction).where(Transaction.order_id == order.id).values(status="completed")
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        assert stale.status == "pending"

        confirmed = await payment_helpers._confirm_payment(db, stale, 3000.0, "MOBILE-MONEY", None, {})

    assert confirmed is False
    assert (await _order(fetch, order)).status == "processing"
