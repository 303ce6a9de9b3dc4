from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_user, get_current_student
from app.errors import AppError
from app.models.user import User
from app.schemas.assessments import AttemptOut, QuizSubmitRequest
from app.services.quiz_service import quiz_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])

@router.get("")
async def list_quizzes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    course_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    quizzes, meta = quiz_service.list_quizzes(db, page, limit, course_id=course_id, subject_id=subject_id)
    return {"success": True, "data": quizzes, "meta": meta}

@router.get("/attempts")
async def list_my_attempts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    rows, meta = quiz_service.list_attempts(db, current_user, page, limit)
    data = [
        {**AttemptOut.model_validate(row["attempt"]).model_dump(), "quiz_title": row["quiz_title"], "max_score": row["max_score"]}
        for row in rows
    ]
    return {"success": True, "data": data, "meta": meta}

@router.post("/submit")
async def submit_quiz(
    data: QuizSubmitRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    """Grade and store a whole quiz in one request"""
    try:
        result = quiz_service.submit_quiz(
            db, current_user, data.quiz_id, [a.model_dump() for a in data.answers], data.time_taken_seconds
        )
        return {"success": True, "message": "Quiz submitted successfully", "data": result}
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error submitting quiz {data.quiz_id} for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to submit quiz")

@router.get("/{quiz_id}")
async def get_quiz(quiz_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return {"success": True, "data": quiz_service.get_quiz(db, quiz_id)}
