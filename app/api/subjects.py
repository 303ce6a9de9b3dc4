from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_user, get_current_staff
from app.errors import AppError
from app.models.user import User
from app.schemas.admin import SubjectCreate, SubjectUpdate, SubjectOut
from app.services.organization_service import organization_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subjects", tags=["subjects"])

@router.get("")
async def list_subjects(
    course_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    subjects = organization_service.list_subjects(db, course_id=course_id, search=search)
    return {"success": True, "data": [SubjectOut.model_validate(s) for s in subjects]}

@router.get("/{subject_id}")
async def get_subject(subject_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": SubjectOut.model_validate(organization_service.get_subject(db, subject_id))}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_subject(data: SubjectCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        subject = organization_service.create_subject(db, data)
        return {"success": True, "message": "Subject created successfully", "data": SubjectOut.model_validate(subject)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error creating subject: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create subject")

@router.put("/{subject_id}")
async def update_subject(
    subject_id: int,
    data: SubjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        subject = organization_service.update_subject(db, subject_id, data)
        return {"success": True, "message": "Subject updated successfully", "data": SubjectOut.model_validate(subject)}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating subject {subject_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update subject")

@router.delete("/{subject_id}")
async def delete_subject(subject_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        organization_service.delete_subject(db, subject_id)
        return {"success": True, "message": "Subject deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error deleting subject {subject_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete subject")
