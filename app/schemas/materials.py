from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from app.models.materials import MaterialType

class MaterialCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    file_url: str = ""
    file_type: Optional[MaterialType] = None
    file_name: Optional[str] = None
    file_size: Optional[str] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    is_published: bool = False
    batch_ids: List[int] = []

class MaterialUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    file_url: Optional[str] = None
    file_type: Optional[MaterialType] = None
    file_name: Optional[str] = None
    file_size: Optional[str] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    is_published: Optional[bool] = None
    batch_ids: Optional[List[int]] = None

class PublishRequest(BaseModel):
    is_published: bool

class BatchAssignmentRequest(BaseModel):
    batch_ids: List[int] = []

class MaterialOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    file_url: str
    file_type: MaterialType
    file_name: Optional[str] = None
    file_size: Optional[str] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    is_published: bool
    batch_ids: List[int] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
