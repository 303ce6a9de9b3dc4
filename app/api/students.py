from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.dependencies import get_current_student
from app.errors import AppError
from app.models.user import User
from app.schemas.admin import StudentOut, StudentProfileOut, StudentProfileUpdate
from app.schemas.videos import VideoOut
from app.services.student_service import student_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/student", tags=["student"])

@router.get("/dashboard")
async def student_dashboard(db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    try:
        dashboard = student_service.dashboard(db, current_user)
        return {
            "success": True,
            "data": {
                "profile": StudentProfileOut.model_validate(dashboard["profile"]),
                "stats": dashboard["stats"],
                "recent_videos": [VideoOut.model_validate(v) for v in dashboard["recent_videos"]],
                "upcoming_tests": dashboard["upcoming_tests"]
            }
        }
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error loading dashboard for student {current_user.id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load dashboard")

@router.get("/profile")
async def get_profile(current_user: User = Depends(get_current_student)):
    return {"success": True, "data": StudentOut.model_validate(current_user)}

@router.put("/profile")
async def update_profile(
    data: StudentProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    try:
        user = student_service.update_profile(db, current_user, data)
        return {"success": True, "message": "Profile updated successfully", "data": StudentOut.model_validate(user)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating profile for student {current_user.id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update profile")
