from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_user, get_current_staff
from app.errors import AppError
from app.models.notifications import NotificationType
from app.models.user import User
from app.schemas.notifications import (
    NotificationCreate, BroadcastRequest, BatchNotificationRequest, NotificationOut
)
from app.services.notification_service import notification_service
from app.websocket.notifications import build_payloads, push_payloads
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])

@router.get("")
async def get_my_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Notifications addressed to the current user plus global ones"""
    try:
        items, meta, unread = notification_service.list_for_user(db, current_user.id, page, limit, unread_only)
        return {
            "success": True,
            "data": [NotificationOut.model_validate(n) for n in items],
            "meta": {**meta, "unread": unread}
        }
    except Exception as e:
        logger.error(f"Error fetching notifications for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch notifications")

@router.get("/all")
async def get_all_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    is_read: Optional[bool] = None,
    type: Optional[NotificationType] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    items, meta = notification_service.list_all(db, page, limit, is_read=is_read, type=type)
    return {"success": True, "data": [NotificationOut.model_validate(n) for n in items], "meta": meta}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_notification(
    data: NotificationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        notification = notification_service.create_notification(
            db, data.title, data.message, data.type, data.data, data.user_id
        )
        background_tasks.add_task(push_payloads, build_payloads([notification]))
        return {
            "success": True,
            "message": "Notification created successfully",
            "data": NotificationOut.model_validate(notification)
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating notification: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create notification")

@router.post("/broadcast", status_code=status.HTTP_201_CREATED)
async def broadcast_notification(
    data: BroadcastRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        notifications = notification_service.broadcast(db, data.title, data.message, data.type, data.data)
        background_tasks.add_task(push_payloads, build_payloads(notifications))
        return {
            "success": True,
            "message": f"Notification sent to {len(notifications)} students",
            "data": {"count": len(notifications)}
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error broadcasting notification: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to broadcast notification")

@router.post("/batches", status_code=status.HTTP_201_CREATED)
async def send_batch_notification(
    data: BatchNotificationRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        notifications = notification_service.send_to_batches(
            db, data.batch_ids, data.title, data.message, data.type, data.data
        )
        background_tasks.add_task(push_payloads, build_payloads(notifications))
        return {
            "success": True,
            "message": f"Notification sent to {len(notifications)} students",
            "data": {"count": len(notifications)}
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error sending batch notification: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send notification")

@router.patch("/read-all")
async def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    updated = notification_service.mark_all_as_read(db, current_user.id)
    return {"success": True, "message": "All notifications marked as read", "data": {"updated": updated}}

@router.patch("/{notification_id}/read")
async def mark_read(notification_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    notification = notification_service.mark_as_read(db, notification_id, current_user.id)
    return {"success": True, "message": "Notification marked as read", "data": NotificationOut.model_validate(notification)}

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        notification_service.delete_notification(db, notification_id)
        return {"success": True, "message": "Notification deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting notification {notification_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete notification")
