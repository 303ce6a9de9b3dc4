from app.database import SessionLocal
from app.models.user import User, UserRole
from app.services.auth_service import auth_service
from app.config import settings
import logging

logger = logging.getLogger(__name__)

def create_admin():
    """Create admin user if doesn't exist"""
    db = SessionLocal()
    try:
        admin_email = settings.admin_email.strip().lower()
        # Check if admin exists
        if auth_service.get_user_by_email(db, admin_email):
            return

        admin = User(
            email=admin_email,
            password_hash=auth_service.get_password_hash(settings.admin_password),
            role=UserRole.ADMIN,
            full_name="Admin User",
            is_active=True
        )
        db.add(admin)
        db.commit()
        logger.info(f"Admin created: {admin_email}")
    finally:
        db.close()
