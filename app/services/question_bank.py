from typing import Any, Dict, List, Optional, Tuple
from pydantic import ValidationError as SchemaError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from app.errors import NotFoundError, ValidationError
from app.models.assessments import QuizQuestion
from app.models.organization import Subject
from app.models.papers import QuestionPaper
from app.models.questions import Question, QPCode, QuestionType, Difficulty
from app.schemas.questions import QuestionCreate, QuestionUpdate
from app.utils.pagination import paginate
import logging

logger = logging.getLogger(__name__)

class QuestionBankService:

    @staticmethod
    def _filtered(db: Session, search: Optional[str] = None, qp_code_id: Optional[int] = None,
                  topic: Optional[str] = None, difficulty: Optional[Difficulty] = None,
                  type: Optional[QuestionType] = None, subject_id: Optional[int] = None):
        query = db.query(Question)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(Question.question_text).like(pattern),
                func.lower(Question.topic).like(pattern)
            ))
        if qp_code_id is not None:
            query = query.filter(Question.qp_code_id == qp_code_id)
        if topic:
            query = query.filter(func.lower(Question.topic) == topic.lower())
        if difficulty is not None:
            query = query.filter(Question.difficulty == difficulty)
        if type is not None:
            query = query.filter(Question.type == type)
        if subject_id is not None:
            query = query.filter(Question.subject_id == subject_id)
        return query

    @staticmethod
    def list_questions(db: Session, page: int = 1, limit: int = 20, **filters) -> Tuple[List[Question], Dict[str, int]]:
        query = QuestionBankService._filtered(db, **filters).order_by(Question.created_at.desc(), Question.id.desc())
        return paginate(query, page, limit)

    @staticmethod
    def count_questions(db: Session, **filters) -> int:
        return QuestionBankService._filtered(db, **filters).count()

    @staticmethod
    def get_question(db: Session, question_id: int) -> Question:
        question = db.query(Question).filter(Question.id == question_id).first()
        if not question:
            raise NotFoundError("Question not found")
        return question

    @staticmethod
    def _check_qp_code(db: Session, qp_code_id: Optional[int]) -> None:
        if qp_code_id is not None and not db.query(QPCode.id).filter(QPCode.id == qp_code_id).first():
            raise NotFoundError("QP code not found")

    @staticmethod
    def check_subject(db: Session, subject_id: Optional[int]) -> None:
        if subject_id is not None and not db.query(Subject.id).filter(Subject.id == subject_id).first():
            raise NotFoundError("Subject not found")

    @staticmethod
    def build_question(data: QuestionCreate, created_by: Optional[int] = None) -> Question:
        return Question(
            **data.model_dump(),
            created_by=created_by,
            usage_count=0
        )

    @staticmethod
    def create_question(db: Session, data: QuestionCreate, created_by: Optional[int] = None) -> Question:
        QuestionBankService._check_qp_code(db, data.qp_code_id)
        QuestionBankService.check_subject(db, data.subject_id)
        try:
            question = QuestionBankService.build_question(data, created_by)
            db.add(question)
            db.commit()
            db.refresh(question)
            logger.info(f"Question {question.id} created by {created_by}")
            return question
        except Exception as e:
            logger.error(f"Error creating question: {str(e)}")
            db.rollback()
            raise

    @staticmethod
    def update_question(db: Session, question_id: int, data: QuestionUpdate) -> Question:
        question = QuestionBankService.get_question(db, question_id)
        changes = data.model_dump(exclude_unset=True)
        if "qp_code_id" in changes:
            QuestionBankService._check_qp_code(db, changes["qp_code_id"])
        if "subject_id" in changes:
            QuestionBankService.check_subject(db, changes["subject_id"])
        for field, value in changes.items():
            if field in ("question_text", "correct_answer", "type", "marks", "difficulty") and value is None:
                continue
            setattr(question, field, value)
        db.commit()
        db.refresh(question)
        logger.info(f"Question {question_id} updated: {sorted(changes)}")
        return question

    @staticmethod
    def delete_question(db: Session, question_id: int) -> None:
        question = QuestionBankService.get_question(db, question_id)
        in_use = db.query(QuizQuestion.id).filter(QuizQuestion.question_id == question_id).first()
        if in_use:
            raise ValidationError("Cannot delete question as it is used in tests")
        db.delete(question)
        db.commit()
        logger.info(f"Question {question_id} deleted")

    @staticmethod
    def bulk_import(db: Session, rows: List[Dict[str, Any]], created_by: Optional[int] = None) -> Dict[str, Any]:
        """Create many questions at once; invalid rows are reported and skipped"""
        if not rows:
            raise ValidationError("Questions array is required")

        created = []
        errors = []
        for index, row in enumerate(rows):
            try:
                data = QuestionCreate.model_validate(row)
            except SchemaError as e:
                errors.append({"index": index, "error": e.errors(include_url=False, include_context=False)})
                continue
            try:
                QuestionBankService._check_qp_code(db, data.qp_code_id)
                QuestionBankService.check_subject(db, data.subject_id)
            except NotFoundError as e:
                errors.append({"index": index, "error": e.message})
                continue
            created.append(QuestionBankService.build_question(data, created_by))

        try:
            db.add_all(created)
            db.commit()
        except Exception as e:
            logger.error(f"Bulk import failed: {str(e)}")
            db.rollback()
            raise
        logger.info(f"Bulk imported {len(created)} questions, {len(errors)} rejected")
        return {"imported": len(created), "failed": len(errors), "errors": errors}

    # QP codes

    @staticmethod
    def list_qp_codes(db: Session, page: int = 1, limit: int = 20, search: Optional[str] = None):
        query = db.query(QPCode)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(func.lower(QPCode.code).like(pattern), func.lower(QPCode.description).like(pattern)))
        items, meta = paginate(query.order_by(QPCode.created_at.desc(), QPCode.id.desc()), page, limit)
        counts = dict(
            db.query(Question.qp_code_id, func.count(Question.id))
            .filter(Question.qp_code_id.in_([c.id for c in items]))
            .group_by(Question.qp_code_id).all()
        ) if items else {}
        return items, meta, counts

    @staticmethod
    def get_qp_code(db: Session, qp_code_id: int) -> QPCode:
        qp_code = db.query(QPCode).filter(QPCode.id == qp_code_id).first()
        if not qp_code:
            raise NotFoundError("QP code not found")
        return qp_code

    @staticmethod
    def _clean_code(db: Session, code: str, exclude_id: Optional[int] = None) -> str:
        code = (code or "").strip()
        if not code:
            raise ValidationError("QP code is required")
        query = db.query(QPCode.id).filter(QPCode.code == code)
        if exclude_id is not None:
            query = query.filter(QPCode.id != exclude_id)
        if query.first():
            raise ValidationError("QP code already exists")
        return code

    @staticmethod
    def create_qp_code(db: Session, code: str, description: Optional[str] = None) -> QPCode:
        qp_code = QPCode(code=QuestionBankService._clean_code(db, code), description=description)
        db.add(qp_code)
        db.commit()
        db.refresh(qp_code)
        logger.info(f"QP code {qp_code.code} created")
        return qp_code

    @staticmethod
    def update_qp_code(db: Session, qp_code_id: int, code: str, description: Optional[str] = None) -> QPCode:
        qp_code = QuestionBankService.get_qp_code(db, qp_code_id)
        qp_code.code = QuestionBankService._clean_code(db, code, exclude_id=qp_code_id)
        qp_code.description = description
        db.commit()
        db.refresh(qp_code)
        return qp_code

    @staticmethod
    def delete_qp_code(db: Session, qp_code_id: int) -> None:
        qp_code = QuestionBankService.get_qp_code(db, qp_code_id)
        question_count = db.query(Question).filter(Question.qp_code_id == qp_code_id).count()
        if question_count:
            raise ValidationError(f"Cannot delete QP code. It has {question_count} associated questions.")
        paper_count = db.query(QuestionPaper).filter(QuestionPaper.qp_code_id == qp_code_id).count()
        if paper_count:
            raise ValidationError(f"Cannot delete QP code. It has {paper_count} question papers.")
        db.delete(qp_code)
        db.commit()
        logger.info(f"QP code {qp_code_id} deleted")

question_bank_service = QuestionBankService()
