from typing import Optional
from app.database import SessionLocal
from app.errors import AuthenticationError
from app.models.user import User
from app.services.auth_service import auth_service
import logging

logger = logging.getLogger(__name__)

def get_user_from_websocket_token(token: str) -> Optional[User]:
    """Authenticate a websocket client from its `token` query parameter"""
    try:
        token_data = auth_service.verify_token(token)
    except AuthenticationError as e:
        logger.warning(f"WebSocket token rejected: {e.message}")
        return None

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.id == token_data.user_id).first()
        if not user or not user.is_active:
            return None
        db.expunge(user)
        return user
    finally:
        db.close()
