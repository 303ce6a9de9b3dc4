from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from app.models.user import UserRole

# Students
class StudentCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    batch_id: Optional[int] = None
    course_id: Optional[int] = None
    enrollment_number: Optional[str] = None

class StudentUpdate(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    batch_id: Optional[int] = None
    course_id: Optional[int] = None
    enrollment_number: Optional[str] = None
    is_active: Optional[bool] = None

class BulkDisableRequest(BaseModel):
    student_ids: List[int] = []

class StudentProfileOut(BaseModel):
    batch_id: Optional[int] = None
    course_id: Optional[int] = None
    enrollment_number: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    bio: Optional[str] = None
    total_score: float = 0

    class Config:
        from_attributes = True

class StudentOut(BaseModel):
    id: int
    email: str
    full_name: str
    phone_number: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    student_profile: Optional[StudentProfileOut] = None

    class Config:
        from_attributes = True

class StudentProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    bio: Optional[str] = None

# Staff
class StaffCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    role: UserRole = UserRole.TEACHER
    password: Optional[str] = None

class StaffUpdate(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

class StaffOut(BaseModel):
    id: int
    email: str
    full_name: str
    phone_number: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Courses, batches, subjects
class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    duration_months: Optional[int] = None
    is_active: bool = True

class CourseUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    duration_months: Optional[int] = None
    is_active: Optional[bool] = None

class CourseOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    duration_months: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BatchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    course_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True

class BatchUpdate(BaseModel):
    name: Optional[str] = None
    course_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

class BatchStudentsUpdate(BaseModel):
    student_ids: List[int] = []

class BatchOut(BaseModel):
    id: int
    name: str
    course_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: Optional[str] = None
    description: Optional[str] = None
    course_id: Optional[int] = None

class SubjectUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    course_id: Optional[int] = None

class SubjectOut(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    course_id: Optional[int] = None

    class Config:
        from_attributes = True
