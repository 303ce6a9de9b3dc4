from typing import Any, Dict, Iterable, List
from app.websocket.manager import websocket_manager
import logging

logger = logging.getLogger(__name__)

def notification_payload(notification) -> Dict[str, Any]:
    """Websocket message for a stored notification row"""
    return {
        "type": "notification",
        "notification": {
            "id": notification.id,
            "user_id": notification.user_id,
            "title": notification.title,
            "message": notification.message,
            "kind": notification.type.value,
            "data": notification.data,
            "created_at": notification.created_at.isoformat() if notification.created_at else None
        }
    }

def build_payloads(notifications: Iterable) -> List[Dict[str, Any]]:
    return [notification_payload(n) for n in notifications]

async def push_payloads(payloads: List[Dict[str, Any]]) -> int:
    """Deliver notification payloads to connected users; global ones go to everybody"""
    delivered = 0
    try:
        for payload in payloads:
            user_id = payload["notification"]["user_id"]
            if user_id is None:
                delivered += await websocket_manager.broadcast(payload)
            elif await websocket_manager.send_to_user(user_id, payload):
                delivered += 1
    except Exception as e:
        logger.error(f"Realtime notification push failed: {str(e)}")
    return delivered
