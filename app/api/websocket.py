from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from app.database import SessionLocal
from app.errors import AppError
from app.websocket.manager import websocket_manager
from app.dependencies.websocket_token import get_user_from_websocket_token
from app.services.notification_service import notification_service
import json
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ws", tags=["websocket"])

def _unread_count(user_id: int) -> int:
    db = SessionLocal()
    try:
        return notification_service.unread_count(db, user_id)
    finally:
        db.close()

def _mark_read(user_id: int, notification_id) -> dict:
    db = SessionLocal()
    try:
        notification_service.mark_as_read(db, int(notification_id), user_id)
        return {
            "type": "marked_read",
            "notification_id": int(notification_id),
            "unread": notification_service.unread_count(db, user_id)
        }
    except (AppError, TypeError, ValueError):
        return {"type": "error", "message": "Notification not found"}
    finally:
        db.close()

@router.websocket("/notifications")
async def websocket_notifications(websocket: WebSocket, token: str = ""):
    """Realtime notification channel; clients may send `ping` or {"type": "mark_read", "notification_id": id}"""
    user = get_user_from_websocket_token(token) if token else None
    if not user:
        await websocket.close(code=4001, reason="Invalid token")
        return

    await websocket_manager.connect(websocket, user.id)
    try:
        await websocket.send_json({"type": "connected", "unread": _unread_count(user.id)})
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
                continue
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Unsupported message"})
                continue
            if isinstance(message, dict) and message.get("type") == "mark_read":
                await websocket.send_json(_mark_read(user.id, message.get("notification_id")))
            else:
                await websocket.send_json({"type": "error", "message": "Unsupported message"})
    except WebSocketDisconnect:
        websocket_manager.disconnect(user.id)
    except Exception as e:
        logger.error(f"websocket error for user {user.id}: {str(e)}")
        websocket_manager.disconnect(user.id)
