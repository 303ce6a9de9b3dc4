from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_admin
from app.errors import AppError
from app.models.user import User, UserRole
from app.schemas.admin import (
    StudentCreate, StudentUpdate, StudentOut, BulkDisableRequest,
    StaffCreate, StaffUpdate, StaffOut,
    CourseCreate, CourseUpdate, CourseOut,
    BatchCreate, BatchUpdate, BatchOut, BatchStudentsUpdate
)
from app.services.admin_service import admin_service
from app.services.organization_service import organization_service
from app.utils.email import email_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {str(e)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")

# Students

@router.post("/students", status_code=status.HTTP_201_CREATED)
async def create_student(
    data: StudentCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    """Create a student account; the temporary password is returned once and emailed"""
    try:
        student, temporary_password = admin_service.create_student(db, data)
        background_tasks.add_task(
            email_service.send_student_welcome, student.email, student.full_name, temporary_password
        )
        return {
            "success": True,
            "message": "Student created successfully",
            "data": {"student": StudentOut.model_validate(student), "tempPassword": temporary_password}
        }
    except AppError:
        raise
    except Exception as e:
        raise _failed("create student", e)

@router.get("/students")
async def list_students(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    batch_id: Optional[int] = None,
    course_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        students, meta = admin_service.list_students(
            db, page, limit, search=search, batch_id=batch_id, course_id=course_id, is_active=is_active
        )
        return {"success": True, "data": [StudentOut.model_validate(s) for s in students], "meta": meta}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch students", e)

@router.get("/students/{student_id}")
async def get_student(student_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    student = admin_service.get_student(db, student_id)
    return {"success": True, "data": StudentOut.model_validate(student)}

@router.put("/students/{student_id}")
async def update_student(
    student_id: int,
    data: StudentUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        student = admin_service.update_student(db, student_id, data)
        return {"success": True, "message": "Student updated successfully", "data": StudentOut.model_validate(student)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update student", e)

@router.delete("/students/{student_id}")
async def delete_student(student_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    try:
        admin_service.delete_student(db, student_id)
        return {"success": True, "message": "Student deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete student", e)

@router.post("/students/bulk-disable")
async def bulk_disable_students(
    data: BulkDisableRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        updated = admin_service.bulk_disable_students(db, data.student_ids)
        return {"success": True, "message": f"{updated} students disabled", "data": {"updated": updated}}
    except AppError:
        raise
    except Exception as e:
        raise _failed("disable students", e)

# Staff

@router.post("/staff", status_code=status.HTTP_201_CREATED)
async def create_staff(
    data: StaffCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        staff, password = admin_service.create_staff(db, data)
        background_tasks.add_task(email_service.send_staff_welcome, staff.email, staff.full_name, staff.role.value, password)
        payload = {"staff": StaffOut.model_validate(staff)}
        if not data.password:
            payload["tempPassword"] = password
        return {"success": True, "message": "Staff member created successfully", "data": payload}
    except AppError:
        raise
    except Exception as e:
        raise _failed("create staff member", e)

@router.get("/staff")
async def list_staff(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[UserRole] = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    staff, meta = admin_service.list_staff(db, page, limit, search=search, role=role)
    return {"success": True, "data": [StaffOut.model_validate(s) for s in staff], "meta": meta}

@router.get("/staff/{staff_id}")
async def get_staff(staff_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    return {"success": True, "data": StaffOut.model_validate(admin_service.get_staff(db, staff_id))}

@router.put("/staff/{staff_id}")
async def update_staff(
    staff_id: int,
    data: StaffUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        staff = admin_service.update_staff(db, staff_id, data)
        return {"success": True, "message": "Staff member updated successfully", "data": StaffOut.model_validate(staff)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update staff member", e)

@router.delete("/staff/{staff_id}")
async def delete_staff(staff_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    try:
        admin_service.delete_staff(db, staff_id, current_admin.id)
        return {"success": True, "message": "Staff member deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete staff member", e)

# Courses

@router.post("/courses", status_code=status.HTTP_201_CREATED)
async def create_course(data: CourseCreate, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    try:
        course = organization_service.create_course(db, data)
        return {"success": True, "message": "Course created successfully", "data": CourseOut.model_validate(course)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("create course", e)

@router.get("/courses")
async def list_courses(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    courses, meta = organization_service.list_courses(db, page, limit, search)
    return {"success": True, "data": [CourseOut.model_validate(c) for c in courses], "meta": meta}

@router.get("/courses/{course_id}")
async def get_course(course_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    course = organization_service.get_course(db, course_id)
    return {
        "success": True,
        "data": {"course": CourseOut.model_validate(course), "counts": organization_service.course_counts(db, course_id)}
    }

@router.put("/courses/{course_id}")
async def update_course(
    course_id: int,
    data: CourseUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        course = organization_service.update_course(db, course_id, data)
        return {"success": True, "message": "Course updated successfully", "data": CourseOut.model_validate(course)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update course", e)

@router.delete("/courses/{course_id}")
async def delete_course(course_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    try:
        organization_service.delete_course(db, course_id)
        return {"success": True, "message": "Course deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete course", e)

# Batches

@router.post("/batches", status_code=status.HTTP_201_CREATED)
async def create_batch(data: BatchCreate, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    try:
        batch = organization_service.create_batch(db, data)
        return {"success": True, "message": "Batch created successfully", "data": BatchOut.model_validate(batch)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("create batch", e)

@router.get("/batches")
async def list_batches(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    course_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    batches, meta, counts = organization_service.list_batches(db, page, limit, course_id)
    data = [
        {**BatchOut.model_validate(b).model_dump(), "student_count": counts.get(b.id, 0)}
        for b in batches
    ]
    return {"success": True, "data": data, "meta": meta}

@router.get("/batches/{batch_id}")
async def get_batch(batch_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    batch = organization_service.get_batch(db, batch_id)
    return {
        "success": True,
        "data": {
            "batch": BatchOut.model_validate(batch),
            "students": [StudentOut.model_validate(profile.user) for profile in batch.students]
        }
    }

@router.put("/batches/{batch_id}")
async def update_batch(
    batch_id: int,
    data: BatchUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        batch = organization_service.update_batch(db, batch_id, data)
        return {"success": True, "message": "Batch updated successfully", "data": BatchOut.model_validate(batch)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update batch", e)

@router.delete("/batches/{batch_id}")
async def delete_batch(batch_id: int, db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    try:
        detached = organization_service.delete_batch(db, batch_id)
        return {"success": True, "message": "Batch deleted successfully", "data": {"students_detached": detached}}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete batch", e)

@router.put("/batches/{batch_id}/students")
async def update_batch_students(
    batch_id: int,
    data: BatchStudentsUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin)
):
    try:
        count = organization_service.set_batch_students(db, batch_id, data.student_ids)
        return {"success": True, "message": "Batch students updated successfully", "data": {"student_count": count}}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update batch students", e)

@router.get("/dashboard")
async def dashboard(db: Session = Depends(get_db), current_admin: User = Depends(get_current_admin)):
    try:
        return {"success": True, "data": admin_service.dashboard(db)}
    except Exception as e:
        raise _failed("load dashboard", e)
