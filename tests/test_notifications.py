from models import Notification, User
from utils.notifications import notify_user
import uuid

NOTIFICATIONS = "/api/v1/notifications"

UNREGISTERED_TICKET = {
    "status": "error",
    "message": "\"ExponentPushToken[buyer]\" is not a registered push notification recipient",
    "details": {"error": "DeviceNotRegistered"},
}


async def test_notify_user_records_delivered_push(session_factory, seed, fetch, push):
    async with session_factory() as db:
        sent = await notify_user(db, seed.buyer.id, "Order Dispatched", "Your order is on its way")

    assert sent is True
    assert push.messages[0]["to"] == "ExponentPushToken[buyer]"
    assert push.messages[0]["body"] == "Your order is on its way"
    notifications = await fetch(Notification, user_id=seed.buyer.id)
    assert [(n.title, n.is_read) for n in notifications] == [("Order Dispatched", False)]


async def test_notify_user_without_push_token(session_factory, seed, fetch, push):
    async with session_factory() as db:
        user = await db.get(User, seed.buyer.id)
        user.expo_push_token = None
        await db.commit()

        sent = await notify_user(db, seed.buyer.id, "Order Dispatched", "Your order is on its way")

    assert sent is False
    assert push.messages == []
    assert await fetch(Notification) == []


async def test_notify_user_clears_unregistered_device(session_factory, seed, fetch, push):
    push.ticket = UNREGISTERED_TICKET

    async with session_factory() as db:
        await notify_user(db, seed.buyer.id, "Order Dispatched", "Your order is on its way")

    (buyer,) = await fetch(User, id=seed.buyer.id)
    assert buyer.expo_push_token is None
    assert await fetch(Notification) == []


async def test_notify_user_swallows_push_failures(session_factory, seed, fetch, push):
    push.status_code = 500

    async with session_factory() as db:
        sent = await notify_user(db, seed.buyer.id, "Order Dispatched", "Your order is on its way")

    assert sent is False
    assert await fetch(Notification) == []
    (buyer,) = await fetch(User, id=seed.buyer.id)
    assert buyer.expo_push_token == "ExponentPushToken[buyer]"


async def test_list_notifications(client, seed, session_factory):
    async with session_factory() as db:
        db.add_all([
            Notification(user_id=seed.buyer.id, title="Payment Done", message="Paid", is_read=False),
            Notification(user_id=seed.buyer.id, title="Order Dispatched", message="On its way", is_read=True),
            Notification(user_id=seed.farmer.id, title="New Order", message="Someone ordered", is_read=False),
        ])
        await db.commit()

    response = await client.get(f"{NOTIFICATIONS}/{seed.buyer.id}", headers=seed.buyer_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["notifications"]["count"] == 2
    rows = body["notifications"]["rows"]
    assert {row["title"] for row in rows} == {"Payment Done", "Order Dispatched"}
    assert all(row["user"]["firstName"] == "Kofi" for row in rows)


async def test_cannot_list_someone_elses_notifications(client, seed):
    response = await client.get(f"{NOTIFICATIONS}/{seed.farmer.id}", headers=seed.buyer_headers)

    assert response.status_code == 403


async def test_create_notification(client, seed, fetch):
    response = await client.post(
        f"{NOTIFICATIONS}/create/{seed.farmer.id}",
        json={"title": "Harvest reminder", "message": "Maize season opens next week"},
        headers=seed.buyer_headers,
    )

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Notification created successfully"
    assert body["notification"]["isRead"] is False
    assert body["notification"]["userId"] == str(seed.farmer.id)
    assert [n.title for n in await fetch(Notification, user_id=seed.farmer.id)] == ["Harvest reminder"]


async def test_create_notification_requires_title_and_message(client, seed):
    response = await client.post(
        f"{NOTIFICATIONS}/create/{seed.farmer.id}",
        json={"message": "No title"},
        headers=seed.buyer_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Title and message are required"


async def test_create_notification_for_unknown_user(client, seed):
    response = await client.post(
        f"{NOTIFICATIONS}/create/{uuid.uuid4()}",
        json={"title": "Hello", "message": "Anyone there?"},
        headers=seed.buyer_headers,
    )

    assert response.status_code == 404


async def test_mark_notification_as_read(client, seed, session_factory, fetch):
    async with session_factory() as db:
        notification = Notification(user_id=seed.buyer.id, title="Payment Done", message="Paid", is_read=False)
        db.add(notification)
        await db.commit()

    response = await client.put(f"{NOTIFICATIONS}/{notification.id}", headers=seed.buyer_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Notification marked as read"
    (stored,) = await fetch(Notification, id=notification.id)
    assert stored.is_read is True


async def test_mark_unknown_notification_as_read(client, seed):
    response = await client.put(f"{NOTIFICATIONS}/{uuid.uuid4()}", headers=seed.buyer_headers)

    assert response.status_code == 404
    assert response.json()["message"] == "Notification not found"


async def test_send_test_notification(client, seed, push):
    response = await client.get(f"{NOTIFICATIONS}/{seed.buyer.id}/test", headers=seed.buyer_headers)

    assert response.status_code == 200
    assert response.json() == {"message": "Notification sent successfully", "result": {"status": "ok", "id": "ticket-1"}}
    assert push.titles == ["Test Notification"]


async def test_send_test_notification_without_token(client, seed, session_factory):
    async with session_factory() as db:
        user = await db.get(User, seed.farmer.id)
        user.expo_push_token = None
        await db.commit()

    response = await client.get(f"{NOTIFICATIONS}/{seed.farmer.id}/test", headers=seed.buyer_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "User has no push token registered"


async def test_send_test_notification_to_unknown_user(client, seed):
    response = await client.get(f"{NOTIFICATIONS}/{uuid.uuid4()}/test", headers=seed.buyer_headers)

    assert response.status_code == 404


async def test_send_test_notification_to_unregistered_device(client, seed, push):
    push.ticket = UNREGISTERED_TICKET

    response = await client.get(f"{NOTIFICATIONS}/{seed.buyer.id}/test", headers=seed.buyer_headers)

    assert response.status_code == 500
    assert response.json()["message"].startswith("Expo notification error")
