from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class VideoCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    url: str = Field(..., min_length=1)
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    subject_id: Optional[int] = None
    course_id: Optional[int] = None
    is_published: bool = False

class VideoUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    subject_id: Optional[int] = None
    course_id: Optional[int] = None
    is_published: Optional[bool] = None

class VideoOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    url: str
    thumbnail_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    subject_id: Optional[int] = None
    course_id: Optional[int] = None
    is_published: bool
    views: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
