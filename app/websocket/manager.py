from typing import Dict
from fastapi import WebSocket
import json
import logging

logger = logging.getLogger(__name__)

class WebSocketManager:
    def __init__(self):
        # store active connections: user_id -> websocket
        self.active_connections: Dict[int, WebSocket] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        self.active_connections[user_id] = websocket
        logger.info(f"Websocket connected for user {user_id}")

    def disconnect(self, user_id: int):
        if self.active_connections.pop(user_id, None) is not None:
            logger.info(f"Websocket disconnected for user {user_id}")

    def is_connected(self, user_id: int) -> bool:
        return user_id in self.active_connections

    async def send_to_user(self, user_id: int, message: dict) -> bool:
        websocket = self.active_connections.get(user_id)
        if websocket is None:
            return False
        try:
            await websocket.send_text(json.dumps(message, default=str))
            return True
        except Exception as e:
            logger.error(f"Failed to send message to user {user_id}: {str(e)}")
            self.disconnect(user_id)
            return False

    async def broadcast(self, message: dict) -> int:
        """Send a message to every connected user; returns delivery count"""
        delivered = 0
        for user_id in list(self.active_connections):
            if await self.send_to_user(user_id, message):
                delivered += 1
        logger.info(f"Broadcast '{message.get('type')}' delivered to {delivered} users")
        return delivered

websocket_manager = WebSocketManager()
