from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from app.config import settings
from app.errors import NotFoundError
from app.models.user import StudentProfile, User, UserRole
from app.models.videos import Video, VideoDownload
from app.schemas.videos import VideoCreate, VideoUpdate
from app.utils.pagination import paginate
from app.utils.timeutils import utcnow
import logging
import secrets

logger = logging.getLogger(__name__)

class VideoService:

    @staticmethod
    def _student_course(db: Session, user: User) -> Optional[int]:
        if user.role != UserRole.STUDENT:
            return None
        profile = db.query(StudentProfile).filter(StudentProfile.user_id == user.id).first()
        return profile.course_id if profile else None

    @staticmethod
    def _visible(db: Session, user: User):
        query = db.query(Video)
        if user.role == UserRole.STUDENT:
            query = query.filter(Video.is_published.is_(True))
            course_id = VideoService._student_course(db, user)
            if course_id is not None:
                query = query.filter(or_(Video.course_id == course_id, Video.course_id.is_(None)))
        return query

    @staticmethod
    def list_videos(db: Session, user: User, page: int = 1, limit: int = 20,
                    subject_id: Optional[int] = None, search: Optional[str] = None):
        query = VideoService._visible(db, user)
        if subject_id is not None:
            query = query.filter(Video.subject_id == subject_id)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(func.lower(Video.title).like(pattern), func.lower(Video.description).like(pattern)))
        return paginate(query.order_by(Video.created_at.desc(), Video.id.desc()), page, limit)

    @staticmethod
    def get_video(db: Session, user: User, video_id: int, count_view: bool = True) -> Video:
        video = VideoService._visible(db, user).filter(Video.id == video_id).first()
        if not video:
            raise NotFoundError("Video not found")
        if count_view:
            video.views = (video.views or 0) + 1
            db.commit()
            db.refresh(video)
        return video

    @staticmethod
    def authorize_download(db: Session, user: User, video_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Grant a time-boxed download token, reusing one that is still valid"""
        now = now or utcnow()
        video = VideoService.get_video(db, user, video_id, count_view=False)
        grant = db.query(VideoDownload).filter(
            VideoDownload.user_id == user.id, VideoDownload.video_id == video.id
        ).first()
        if grant and grant.expires_at > now:
            return {
                "message": "Download link already active",
                "download_url": VideoService.download_url(video, grant),
                "expires_at": grant.expires_at,
                "reused": True
            }

        if grant is None:
            grant = VideoDownload(user_id=user.id, video_id=video.id)
            db.add(grant)
        grant.download_token = secrets.token_urlsafe(32)
        grant.expires_at = now + timedelta(hours=settings.video_download_hours)
        grant.downloaded_at = now
        db.commit()
        db.refresh(grant)
        logger.info(f"Download granted to user {user.id} for video {video.id}")
        return {
            "message": "Download link generated",
            "download_url": VideoService.download_url(video, grant),
            "expires_at": grant.expires_at,
            "reused": False
        }

    @staticmethod
    def download_url(video: Video, grant: VideoDownload) -> str:
        separator = "&" if "?" in video.url else "?"
        return f"{video.url}{separator}token={grant.download_token}"

    @staticmethod
    def subjects(db: Session, user: User) -> List[int]:
        rows = VideoService._visible(db, user).with_entities(Video.subject_id).filter(
            Video.subject_id.isnot(None)
        ).distinct().all()
        return sorted(row.subject_id for row in rows)

    @staticmethod
    def create_video(db: Session, data: VideoCreate, uploaded_by: int) -> Video:
        video = Video(**data.model_dump(), uploaded_by=uploaded_by)
        db.add(video)
        db.commit()
        db.refresh(video)
        logger.info(f"Video {video.id} created")
        return video

    @staticmethod
    def update_video(db: Session, video_id: int, data: VideoUpdate) -> Video:
        video = db.query(Video).filter(Video.id == video_id).first()
        if not video:
            raise NotFoundError("Video not found")
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(video, field, value)
        db.commit()
        db.refresh(video)
        return video

    @staticmethod
    def toggle_publish(db: Session, video_id: int) -> Video:
        video = db.query(Video).filter(Video.id == video_id).first()
        if not video:
            raise NotFoundError("Video not found")
        video.is_published = not video.is_published
        db.commit()
        db.refresh(video)
        logger.info(f"Video {video_id} {'published' if video.is_published else 'unpublished'}")
        return video

    @staticmethod
    def delete_video(db: Session, video_id: int) -> None:
        video = db.query(Video).filter(Video.id == video_id).first()
        if not video:
            raise NotFoundError("Video not found")
        db.query(VideoDownload).filter(VideoDownload.video_id == video_id).delete(synchronize_session=False)
        db.delete(video)
        db.commit()
        logger.info(f"Video {video_id} deleted")

video_service = VideoService()
