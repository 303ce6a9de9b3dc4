from typing import Any, Dict
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.models.assessments import Quiz, QuizAttempt, TestStatus
from app.models.user import User
from app.models.videos import Video, VideoDownload
from app.schemas.admin import StudentProfileUpdate
from app.services.attempt_service import attempt_service, summarize_test
from app.utils.timeutils import utcnow
import logging

logger = logging.getLogger(__name__)

class StudentService:

    @staticmethod
    def dashboard(db: Session, user: User) -> Dict[str, Any]:
        profile = attempt_service.get_student_profile(db, user)
        course_filter = or_(Video.course_id == profile.course_id, Video.course_id.is_(None))
        published_videos = db.query(Video).filter(Video.is_published.is_(True), course_filter)

        upcoming = db.query(Quiz).filter(
            Quiz.status == TestStatus.NOT_STARTED,
            Quiz.start_time > utcnow(),
            or_(Quiz.course_id == profile.course_id, Quiz.course_id.is_(None))
        ).order_by(Quiz.start_time).limit(5).all()

        return {
            "profile": profile,
            "stats": {
                "videos_downloaded": db.query(VideoDownload).filter(VideoDownload.user_id == user.id).count(),
                "tests_completed": db.query(QuizAttempt).filter(
                    QuizAttempt.user_id == user.id, QuizAttempt.is_completed.is_(True)
                ).count(),
                "total_videos": published_videos.count(),
                "active_tests": len(attempt_service.available_tests(db, user)),
                "total_score": profile.total_score
            },
            "recent_videos": published_videos.order_by(Video.created_at.desc(), Video.id.desc()).limit(5).all(),
            "upcoming_tests": [summarize_test(quiz) for quiz in upcoming]
        }

    @staticmethod
    def update_profile(db: Session, user: User, data: StudentProfileUpdate) -> User:
        profile = attempt_service.get_student_profile(db, user)
        changes = data.model_dump(exclude_unset=True)
        for field in ("full_name", "phone_number"):
            if changes.get(field) is not None:
                setattr(user, field, changes[field])
        for field in ("address", "emergency_contact", "bio"):
            if field in changes:
                setattr(profile, field, changes[field])
        db.commit()
        db.refresh(user)
        logger.info(f"Student {user.id} updated their profile")
        return user

student_service = StudentService()
