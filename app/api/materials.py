from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_user, get_current_staff
from app.errors import AppError
from app.models.materials import MaterialType
from app.models.user import User
from app.schemas.admin import BatchOut
from app.schemas.materials import (
    BatchAssignmentRequest, MaterialCreate, MaterialOut, MaterialUpdate, PublishRequest
)
from app.services.material_service import material_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/materials", tags=["materials"])

def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {str(e)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")

@router.get("")
async def list_materials(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    type: Optional[MaterialType] = None,
    course_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    batch_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    materials, meta = material_service.list_materials(
        db, current_user, page, limit, search=search, file_type=type,
        course_id=course_id, subject_id=subject_id, batch_id=batch_id
    )
    return {"success": True, "data": [MaterialOut.model_validate(m) for m in materials], "meta": meta}

@router.get("/batches/for-assignment")
async def batches_for_assignment(
    course_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    batches = material_service.batches_for_assignment(db, course_id)
    return {"success": True, "data": [BatchOut.model_validate(b) for b in batches]}

@router.get("/{material_id}")
async def get_material(material_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    material = material_service.get_material(db, current_user, material_id)
    return {"success": True, "data": MaterialOut.model_validate(material)}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_material(data: MaterialCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        material = material_service.create_material(db, data, current_user.id)
        return {"success": True, "message": "Study material created successfully", "data": MaterialOut.model_validate(material)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("create study material", e)

@router.put("/{material_id}")
async def update_material(
    material_id: int,
    data: MaterialUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        material = material_service.update_material(db, material_id, data)
        return {"success": True, "message": "Study material updated successfully", "data": MaterialOut.model_validate(material)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update study material", e)

@router.patch("/{material_id}/publish")
async def set_material_published(
    material_id: int,
    data: PublishRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    material = material_service.set_published(db, material_id, data.is_published)
    state = "published" if material.is_published else "unpublished"
    return {"success": True, "message": f"Material {state} successfully", "data": MaterialOut.model_validate(material)}

@router.post("/{material_id}/assign-batches")
async def assign_material_batches(
    material_id: int,
    data: BatchAssignmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        material = material_service.assign_batches(db, material_id, data.batch_ids)
        return {
            "success": True,
            "message": "Material assigned to batches successfully",
            "data": MaterialOut.model_validate(material)
        }
    except AppError:
        raise
    except Exception as e:
        raise _failed("assign material to batches", e)

@router.get("/{material_id}/batch-assignments")
async def material_batch_assignments(
    material_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    batches = material_service.batch_assignments(db, material_id)
    return {"success": True, "data": [BatchOut.model_validate(b) for b in batches]}

@router.delete("/{material_id}")
async def delete_material(material_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        material_service.delete_material(db, material_id)
        return {"success": True, "message": "Material deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete study material", e)
