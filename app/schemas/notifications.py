from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from app.models.notifications import NotificationType

class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.GENERAL
    data: Optional[Dict[str, Any]] = None
    user_id: Optional[int] = None

class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.ANNOUNCEMENT
    data: Optional[Dict[str, Any]] = None

class BatchNotificationRequest(BroadcastRequest):
    batch_ids: List[int] = []

class NotificationOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    title: str
    message: str
    type: NotificationType
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
