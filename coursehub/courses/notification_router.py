from fastapi import APIRouter, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase

from coursehub.core.errors import NotFoundError
from coursehub.courses.dependencies import get_db
from coursehub.courses.notification_service import (
    delete_notification, get_unread_count, get_user_notifications,
    mark_all_as_read, mark_as_read
)

router = APIRouter(tags=["Notifications"])


@router.get("/{user_id}")
async def list_notifications(
    user_id: str,
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    skip: int = Query(0, ge=0),
    db: AsyncIOMotorDatabase = Depends(get_db),
):
    notifications = await get_user_notifications(db, user_id, unread_only=unread_only, limit=limit, skip=skip)
    return {
        "success": True,
        "notifications": [n.to_response() for n in notifications],
        "count": len(notifications),
    }


@router.get("/{user_id}/unread-count")
async def unread_count(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    return {"success": True, "unreadCount": await get_unread_count(db, user_id)}


@router.post("/{notification_id}/read")
async def read_notification(notification_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    notification = await mark_as_read(db, notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    return {"success": True, "notification": notification.to_response()}


@router.post("/{user_id}/read-all")
async def read_all_notifications(user_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    updated = await mark_all_as_read(db, user_id)
    return {"success": True, "updated": updated}


@router.delete("/{notification_id}")
async def remove_notification(notification_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    if not await delete_notification(db, notification_id):
        raise NotFoundError("Notification not found")
    return {"success": True, "message": "Notification deleted"}
