from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_staff
from app.errors import AppError
from app.models.questions import Difficulty, QuestionType
from app.models.user import User
from app.schemas.questions import (
    QuestionCreate, QuestionUpdate, QuestionOut, BulkImportRequest, QPCodeCreate, QPCodeOut
)
from app.services.question_bank import question_bank_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/question-bank", tags=["question-bank"])
qp_code_router = APIRouter(prefix="/api/qp-codes", tags=["qp-codes"])

def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {str(e)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")

@router.get("")
async def list_questions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: Optional[str] = None,
    qp_code_id: Optional[int] = None,
    topic: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    type: Optional[QuestionType] = None,
    subject_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        questions, meta = question_bank_service.list_questions(
            db, page, limit, search=search, qp_code_id=qp_code_id, topic=topic,
            difficulty=difficulty, type=type, subject_id=subject_id
        )
        return {"success": True, "data": [QuestionOut.model_validate(q) for q in questions], "meta": meta}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch questions", e)

@router.get("/count")
async def count_questions(
    search: Optional[str] = None,
    qp_code_id: Optional[int] = None,
    topic: Optional[str] = None,
    difficulty: Optional[Difficulty] = None,
    type: Optional[QuestionType] = None,
    subject_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    total = question_bank_service.count_questions(
        db, search=search, qp_code_id=qp_code_id, topic=topic, difficulty=difficulty, type=type, subject_id=subject_id
    )
    return {"success": True, "data": {"count": total}}

@router.post("/bulk-import", status_code=status.HTTP_201_CREATED)
async def bulk_import_questions(
    data: BulkImportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        result = question_bank_service.bulk_import(db, data.questions, current_user.id)
        return {"success": True, "message": f"Imported {result['imported']} questions", "data": result}
    except AppError:
        raise
    except Exception as e:
        raise _failed("import questions", e)

@router.get("/{question_id}")
async def get_question(question_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    return {"success": True, "data": QuestionOut.model_validate(question_bank_service.get_question(db, question_id))}

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_question(data: QuestionCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        question = question_bank_service.create_question(db, data, current_user.id)
        return {"success": True, "message": "Question created successfully", "data": QuestionOut.model_validate(question)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("create question", e)

@router.put("/{question_id}")
async def update_question(
    question_id: int,
    data: QuestionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        question = question_bank_service.update_question(db, question_id, data)
        return {"success": True, "message": "Question updated successfully", "data": QuestionOut.model_validate(question)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update question", e)

@router.delete("/{question_id}")
async def delete_question(question_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        question_bank_service.delete_question(db, question_id)
        return {"success": True, "message": "Question deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete question", e)

# QP codes

@qp_code_router.get("")
async def list_qp_codes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    codes, meta, counts = question_bank_service.list_qp_codes(db, page, limit, search)
    data = [{**QPCodeOut.model_validate(c).model_dump(), "question_count": counts.get(c.id, 0)} for c in codes]
    return {"success": True, "data": data, "meta": meta}

@qp_code_router.get("/{qp_code_id}")
async def get_qp_code(qp_code_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    return {"success": True, "data": QPCodeOut.model_validate(question_bank_service.get_qp_code(db, qp_code_id))}

@qp_code_router.post("", status_code=status.HTTP_201_CREATED)
async def create_qp_code(data: QPCodeCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        qp_code = question_bank_service.create_qp_code(db, data.code, data.description)
        return {"success": True, "data": QPCodeOut.model_validate(qp_code)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("create QP code", e)

@qp_code_router.put("/{qp_code_id}")
async def update_qp_code(
    qp_code_id: int,
    data: QPCodeCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        qp_code = question_bank_service.update_qp_code(db, qp_code_id, data.code, data.description)
        return {"success": True, "data": QPCodeOut.model_validate(qp_code)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update QP code", e)

@qp_code_router.delete("/{qp_code_id}")
async def delete_qp_code(qp_code_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        question_bank_service.delete_qp_code(db, qp_code_id)
        return {"success": True, "message": "QP code deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete QP code", e)
