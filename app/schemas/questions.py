from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from app.models.questions import QuestionType, Difficulty

class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    type: QuestionType = QuestionType.MCQ
    options: Optional[Dict[str, Any]] = None
    left_side: Optional[List[Any]] = None
    right_side: Optional[List[Any]] = None
    correct_answer: str
    explanation: Optional[str] = None
    marks: float = 1
    difficulty: Difficulty = Difficulty.MEDIUM
    topic: Optional[str] = None
    subject_id: Optional[int] = None
    qp_code_id: Optional[int] = None

class QuestionUpdate(BaseModel):
    question_text: Optional[str] = None
    type: Optional[QuestionType] = None
    options: Optional[Dict[str, Any]] = None
    left_side: Optional[List[Any]] = None
    right_side: Optional[List[Any]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    marks: Optional[float] = None
    difficulty: Optional[Difficulty] = None
    topic: Optional[str] = None
    subject_id: Optional[int] = None
    qp_code_id: Optional[int] = None

class BulkImportRequest(BaseModel):
    questions: List[Dict[str, Any]] = []

class QuestionOut(BaseModel):
    id: int
    question_text: str
    type: QuestionType
    options: Optional[Dict[str, Any]] = None
    left_side: Optional[List[Any]] = None
    right_side: Optional[List[Any]] = None
    correct_answer: str
    explanation: Optional[str] = None
    marks: float
    difficulty: Difficulty
    topic: Optional[str] = None
    subject_id: Optional[int] = None
    qp_code_id: Optional[int] = None
    usage_count: int = 0
    last_used_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class QPCodeCreate(BaseModel):
    code: str = ""
    description: Optional[str] = None

class QPCodeOut(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
