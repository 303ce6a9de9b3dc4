from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from app.schemas.questions import QuestionCreate, QuestionOut

class PaperQuestionIn(QuestionCreate):
    question_number: Optional[int] = Field(None, ge=1)

class QuestionPaperCreate(BaseModel):
    paper_name: str = Field(..., min_length=1)
    qp_code_id: int
    paper_code: Optional[str] = None
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    difficulty_distribution: Optional[Dict[str, Any]] = None
    questions: List[PaperQuestionIn] = []

class QuestionPaperUpdate(BaseModel):
    paper_name: Optional[str] = None
    paper_code: Optional[str] = None
    qp_code_id: Optional[int] = None
    description: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, ge=0)
    difficulty_distribution: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None

class PaperQuestionsRequest(BaseModel):
    questions: List[PaperQuestionIn] = []
    question_ids: List[int] = []

class CsvImportRequest(BaseModel):
    csv: str = Field(..., min_length=1)

class QuestionPaperOut(BaseModel):
    id: int
    paper_code: str
    paper_name: str
    qp_code_id: int
    description: Optional[str] = None
    total_questions: int
    total_marks: float
    duration_minutes: Optional[int] = None
    difficulty_distribution: Optional[Dict[str, Any]] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PaperQuestionOut(QuestionOut):
    question_number: int
    paper_marks: float

class QPCodeUsageOut(BaseModel):
    id: int
    qp_code_id: int
    paper_id: Optional[int] = None
    action_type: str
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
