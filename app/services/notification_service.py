from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.errors import NotFoundError, ValidationError
from app.models.notifications import Notification, NotificationType
from app.models.user import User, UserRole, StudentProfile
from app.utils.pagination import paginate
import logging

logger = logging.getLogger(__name__)

class NotificationService:

    @staticmethod
    def create_notification(
        db: Session,
        title: str,
        message: str,
        type: NotificationType = NotificationType.GENERAL,
        data: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None
    ) -> Notification:
        """Create a notification for one user, or a global one when user_id is None"""
        if user_id is not None and not db.query(User.id).filter(User.id == user_id).first():
            raise NotFoundError("User not found")
        try:
            notification = Notification(user_id=user_id, title=title, message=message, type=type, data=data)
            db.add(notification)
            db.commit()
            db.refresh(notification)
            logger.info(f"Notification {notification.id} created for {user_id or 'everyone'}")
            return notification
        except Exception as e:
            logger.error(f"Error creating notification: {str(e)}")
            db.rollback()
            raise

    @staticmethod
    def create_for_users(
        db: Session,
        user_ids: List[int],
        title: str,
        message: str,
        type: NotificationType = NotificationType.GENERAL,
        data: Optional[Dict[str, Any]] = None
    ) -> List[Notification]:
        try:
            notifications = [
                Notification(user_id=user_id, title=title, message=message, type=type, data=data)
                for user_id in dict.fromkeys(user_ids)
            ]
            db.add_all(notifications)
            db.commit()
            for notification in notifications:
                db.refresh(notification)
            logger.info(f"Created {len(notifications)} notifications: {title}")
            return notifications
        except Exception as e:
            logger.error(f"Error creating notifications: {str(e)}")
            db.rollback()
            raise

    @staticmethod
    def notify_users_safely(db: Session, user_ids: List[int], title: str, message: str,
                            type: NotificationType = NotificationType.GENERAL,
                            data: Optional[Dict[str, Any]] = None) -> List[Notification]:
        """Best-effort fan-out that runs after a primary write has committed"""
        if not user_ids:
            return []
        try:
            return NotificationService.create_for_users(db, user_ids, title, message, type, data)
        except Exception as e:
            logger.error(f"Notification fan-out failed for '{title}': {str(e)}")
            return []

    @staticmethod
    def broadcast(db: Session, title: str, message: str,
                  type: NotificationType = NotificationType.ANNOUNCEMENT,
                  data: Optional[Dict[str, Any]] = None) -> List[Notification]:
        """One notification per active student"""
        student_ids = [
            row.id for row in db.query(User.id).filter(
                User.role == UserRole.STUDENT, User.is_active.is_(True)
            ).all()
        ]
        return NotificationService.create_for_users(db, student_ids, title, message, type, data)

    @staticmethod
    def send_to_batches(db: Session, batch_ids: List[int], title: str, message: str,
                        type: NotificationType = NotificationType.ANNOUNCEMENT,
                        data: Optional[Dict[str, Any]] = None) -> List[Notification]:
        if not batch_ids:
            raise ValidationError("Batch IDs are required")

        student_ids = [
            row.id for row in db.query(User.id).join(StudentProfile, StudentProfile.user_id == User.id).filter(
                StudentProfile.batch_id.in_(batch_ids),
                User.role == UserRole.STUDENT,
                User.is_active.is_(True)
            ).all()
        ]
        if not student_ids:
            raise NotFoundError("No students found in the specified batches")

        payload = dict(data or {})
        payload.setdefault("batch_ids", list(batch_ids))
        return NotificationService.create_for_users(db, student_ids, title, message, type, payload)

    @staticmethod
    def list_all(db: Session, page: int = 1, limit: int = 20, is_read: Optional[bool] = None,
                 type: Optional[NotificationType] = None) -> Tuple[List[Notification], Dict[str, int]]:
        query = db.query(Notification)
        if is_read is not None:
            query = query.filter(Notification.is_read.is_(is_read))
        if type is not None:
            query = query.filter(Notification.type == type)
        return paginate(query.order_by(Notification.created_at.desc(), Notification.id.desc()), page, limit)

    @staticmethod
    def _visible_to(user_id: int):
        return or_(Notification.user_id == user_id, Notification.user_id.is_(None))

    @staticmethod
    def list_for_user(db: Session, user_id: int, page: int = 1, limit: int = 20,
                      unread_only: bool = False) -> Tuple[List[Notification], Dict[str, int], int]:
        query = db.query(Notification).filter(NotificationService._visible_to(user_id))
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        items, meta = paginate(query.order_by(Notification.created_at.desc(), Notification.id.desc()), page, limit)
        return items, meta, NotificationService.unread_count(db, user_id)

    @staticmethod
    def unread_count(db: Session, user_id: int) -> int:
        return db.query(Notification).filter(
            NotificationService._visible_to(user_id), Notification.is_read.is_(False)
        ).count()

    @staticmethod
    def mark_as_read(db: Session, notification_id: int, user_id: int) -> Notification:
        notification = db.query(Notification).filter(
            Notification.id == notification_id, NotificationService._visible_to(user_id)
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_as_read(db: Session, user_id: int) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        ).update({Notification.is_read: True}, synchronize_session=False)
        db.commit()
        logger.info(f"Marked {updated} notifications read for user {user_id}")
        return updated

    @staticmethod
    def delete_notification(db: Session, notification_id: int) -> None:
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFoundError("Notification not found")
        db.delete(notification)
        db.commit()
        logger.info(f"Notification {notification_id} deleted")

notification_service = NotificationService()
