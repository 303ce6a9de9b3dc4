from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_staff
from app.errors import AppError
from app.models.questions import Difficulty, QuestionType
from app.models.user import User
from app.schemas.papers import (
    CsvImportRequest, PaperQuestionOut, PaperQuestionsRequest, QPCodeUsageOut,
    QuestionPaperCreate, QuestionPaperOut, QuestionPaperUpdate
)
from app.schemas.questions import QuestionOut
from app.services.question_paper_service import question_paper_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/question-papers", tags=["question-papers"])

def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {str(e)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")

@router.get("")
async def list_papers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    qp_code_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    papers, meta = question_paper_service.list_papers(db, page, limit, search, qp_code_id, is_active)
    return {"success": True, "data": [QuestionPaperOut.model_validate(p) for p in papers], "meta": meta}

@router.get("/dropdown")
async def papers_for_dropdown(
    qp_code_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    return {"success": True, "data": question_paper_service.dropdown(db, qp_code_id)}

@router.get("/qp-code/{qp_code_id}/questions")
async def questions_by_qp_code(
    qp_code_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: Optional[str] = None,
    type: Optional[QuestionType] = None,
    difficulty: Optional[Difficulty] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    questions, meta = question_paper_service.questions_by_qp_code(
        db, qp_code_id, page, limit, search=search, type=type, difficulty=difficulty
    )
    return {"success": True, "data": [QuestionOut.model_validate(q) for q in questions], "meta": meta}

@router.get("/qp-code/{qp_code_id}/history")
async def qp_code_history(
    qp_code_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    history, meta = question_paper_service.usage_history(db, qp_code_id, page, limit)
    return {"success": True, "data": [QPCodeUsageOut.model_validate(h) for h in history], "meta": meta}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_paper(
    data: QuestionPaperCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        paper, stats = question_paper_service.create_paper(db, data, current_user.id)
        return {
            "success": True,
            "message": "Question paper created successfully",
            "data": {"paper": QuestionPaperOut.model_validate(paper), "questions": stats}
        }
    except AppError:
        raise
    except Exception as e:
        raise _failed("create question paper", e)

@router.get("/{paper_id}")
async def get_paper(paper_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    paper = question_paper_service.get_paper(db, paper_id)
    return {"success": True, "data": QuestionPaperOut.model_validate(paper)}

@router.put("/{paper_id}")
async def update_paper(
    paper_id: int,
    data: QuestionPaperUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        paper = question_paper_service.update_paper(db, paper_id, data)
        return {"success": True, "message": "Question paper updated successfully", "data": QuestionPaperOut.model_validate(paper)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update question paper", e)

@router.delete("/{paper_id}")
async def delete_paper(paper_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        question_paper_service.delete_paper(db, paper_id)
        return {"success": True, "message": "Question paper deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete question paper", e)

@router.get("/{paper_id}/questions")
async def paper_questions(
    paper_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    rows, meta = question_paper_service.paper_questions(db, paper_id, page, limit)
    return {"success": True, "data": [PaperQuestionOut.model_validate(row) for row in rows], "meta": meta}

@router.post("/{paper_id}/questions")
async def add_paper_questions(
    paper_id: int,
    data: PaperQuestionsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        result = question_paper_service.add_questions(db, paper_id, data.questions, data.question_ids, current_user.id)
        message = (
            f"Questions processed: {result['added']} added "
            f"({result['created']} created, {result['reused']} reused), {result['skipped']} skipped"
        )
        return {"success": True, "message": message, "data": result}
    except AppError:
        raise
    except Exception as e:
        raise _failed("add questions to paper", e)

@router.delete("/{paper_id}/questions/{question_id}")
async def remove_paper_question(
    paper_id: int,
    question_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        total = question_paper_service.remove_question(db, paper_id, question_id)
        return {
            "success": True,
            "message": "Question removed from paper successfully",
            "data": {"total_questions": total}
        }
    except AppError:
        raise
    except Exception as e:
        raise _failed("remove question from paper", e)

@router.post("/{paper_id}/import-csv")
async def import_paper_csv(
    paper_id: int,
    data: CsvImportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        result = question_paper_service.import_csv(db, paper_id, data.csv, current_user.id)
        return {"success": True, "message": f"Imported {result['imported']} questions", "data": result}
    except AppError:
        raise
    except Exception as e:
        raise _failed("import questions", e)
