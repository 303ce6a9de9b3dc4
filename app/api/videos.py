from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_user, get_current_staff
from app.errors import AppError
from app.models.user import User
from app.schemas.videos import VideoCreate, VideoUpdate, VideoOut
from app.services.video_service import video_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/videos", tags=["videos"])

@router.get("")
async def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    subject_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    videos, meta = video_service.list_videos(db, current_user, page, limit, subject_id=subject_id, search=search)
    return {"success": True, "data": [VideoOut.model_validate(v) for v in videos], "meta": meta}

@router.get("/subjects")
async def list_video_subjects(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": video_service.subjects(db, current_user)}

@router.get("/{video_id}")
async def get_video(video_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    try:
        video = video_service.get_video(db, current_user, video_id)
        return {"success": True, "data": VideoOut.model_validate(video)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error fetching video {video_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch video")

@router.post("/{video_id}/download")
async def download_video(video_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    try:
        grant = video_service.authorize_download(db, current_user, video_id)
        return {
            "success": True,
            "message": grant["message"],
            "data": {"download_url": grant["download_url"], "expires_at": grant["expires_at"]}
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error authorizing download of video {video_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate download link")

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_video(data: VideoCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        video = video_service.create_video(db, data, current_user.id)
        return {"success": True, "message": "Video created successfully", "data": VideoOut.model_validate(video)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating video: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create video")

@router.put("/{video_id}")
async def update_video(
    video_id: int,
    data: VideoUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        video = video_service.update_video(db, video_id, data)
        return {"success": True, "message": "Video updated successfully", "data": VideoOut.model_validate(video)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating video {video_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update video")

@router.patch("/{video_id}/publish")
async def toggle_video_publish(video_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    video = video_service.toggle_publish(db, video_id)
    state = "published" if video.is_published else "unpublished"
    return {"success": True, "message": f"Video {state} successfully", "data": VideoOut.model_validate(video)}

@router.delete("/{video_id}")
async def delete_video(video_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        video_service.delete_video(db, video_id)
        return {"success": True, "message": "Video deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting video {video_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete video")
