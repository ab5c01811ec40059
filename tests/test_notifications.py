# tests/test_notifications.py
from coursehub.courses.models import NotificationType
from coursehub.courses.notification_service import (
    create_notification, get_unread_count, notify_payment_success
)

from conftest import COURSE_ID, USER_ID


async def seed_notifications(db, count=3):
    notifications = []
    for i in range(count):
        notifications.append(await create_notification(db, USER_ID, NotificationType.INFO, f"Title {i}", f"Message {i}"))
    return notifications


async def test_payment_message_includes_amount(db, course):
    notification = await notify_payment_success(db, USER_ID, COURSE_ID, 49.99)
    assert notification.message == 'Your payment of $49.99 for "Python 101" was successful. You can now access the course.'

    notification = await notify_payment_success(db, USER_ID, COURSE_ID, None)
    assert notification.message.startswith('Your payment for "Python 101"')


async def test_list_and_count(client, db):
    await seed_notifications(db)

    resp = await client.get(f"/notifications/{USER_ID}")
    assert resp.json()["count"] == 3
    assert resp.json()["notifications"][0]["type"] == "info"

    resp = await client.get(f"/notifications/{USER_ID}/unread-count")
    assert resp.json()["unreadCount"] == 3


async def test_mark_read(client, db):
    first, *_ = await seed_notifications(db)

    resp = await client.post(f"/notifications/{first.id}/read")
    assert resp.json()["notification"]["read"] is True
    assert await get_unread_count(db, USER_ID) == 2

    resp = await client.get(f"/notifications/{USER_ID}", params={"unread_only": "true"})
    assert resp.json()["count"] == 2

    resp = await client.post(f"/notifications/{USER_ID}/read-all")
    assert resp.json()["updated"] == 2
    assert await get_unread_count(db, USER_ID) == 0


async def test_delete_notification(client, db):
    first, *_ = await seed_notifications(db, count=1)

    resp = await client.delete(f"/notifications/{first.id}")
    assert resp.status_code == 200
    resp = await client.delete(f"/notifications/{first.id}")
    assert resp.status_code == 404


async def test_mark_unknown_notification(client):
    resp = await client.post("/notifications/NTF_NOPE/read")
    assert resp.status_code == 404
