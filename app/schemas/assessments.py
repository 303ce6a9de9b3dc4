from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime
from app.models.assessments import TestStatus, TestType
from app.schemas.questions import QuestionCreate

class TestSettings(BaseModel):
    __test__ = False
    shuffle_questions: bool = True
    shuffle_options: bool = True
    show_immediate_result: bool = False
    allow_revisit: bool = True
    show_correct_answers: bool = False
    allow_previous_navigation: bool = True
    result_release_time: Optional[datetime] = None
    leaderboard_enabled: bool = False

class TestCreate(BaseModel):
    __test__ = False
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    # Accepts the admin UI labels ("Mock Test", "Daily Test", ...) or enum values
    type: str = "Mock Test"
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    batch_ids: List[int] = []
    is_common: bool = False
    duration: Optional[int] = Field(None, ge=0, description="Time limit in minutes")
    total_marks: float = Field(0, ge=0)
    passing_marks: float = Field(40, ge=0)
    has_negative_marking: bool = False
    negative_marks: float = Field(0, ge=0)
    scheduled_at: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    auto_start: Optional[bool] = None
    auto_end: bool = True
    grace_period: Optional[int] = Field(None, ge=0)
    settings: TestSettings = TestSettings()
    question_source: Optional[Literal["questionBank", "manual"]] = None
    selected_questions: List[int] = []
    manual_questions: List[QuestionCreate] = []

class AddQuestionRequest(BaseModel):
    question_id: int
    marks: Optional[float] = None

class AddQuestionsRequest(BaseModel):
    question_ids: List[int] = Field(..., min_length=1)

class StatusToggleRequest(BaseModel):
    status: str

class AnswerSubmit(BaseModel):
    question_id: int
    answer: Optional[str] = None

class AutoSaveRequest(BaseModel):
    answers: List[AnswerSubmit] = []

class QuizSubmitRequest(BaseModel):
    quiz_id: int
    answers: List[AnswerSubmit] = []
    time_taken_seconds: Optional[int] = None

class TestOut(BaseModel):
    __test__ = False
    id: int
    title: str
    description: Optional[str] = None
    type: TestType
    status: TestStatus
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    time_limit_minutes: Optional[int] = None
    total_marks: float
    passing_marks: float
    marks_per_question: float
    has_negative_marking: bool
    negative_marks: float
    is_active: bool
    scheduled_at: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time_scheduled: Optional[datetime] = None
    auto_start: bool
    auto_end: bool
    grace_period_minutes: int
    shuffle_questions: bool
    shuffle_options: bool
    show_immediate_result: bool
    allow_revisit: bool
    show_correct_answers: bool
    allow_previous_navigation: bool
    result_release_time: Optional[datetime] = None
    leaderboard_enabled: bool
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class AttemptOut(BaseModel):
    id: int
    user_id: int
    quiz_id: int
    start_time: datetime
    submit_time: Optional[datetime] = None
    is_completed: bool
    score: float
    total_questions: int
    correct_answers: int
    wrong_answers: int
    unattempted: int
    accuracy: float
    time_taken_seconds: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserAnswerOut(BaseModel):
    id: int
    attempt_id: int
    question_id: int
    answer: Optional[str] = None
    is_correct: bool
    marks_obtained: float
    answered_at: Optional[datetime] = None

    class Config:
        from_attributes = True
