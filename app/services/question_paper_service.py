"""Question papers: assembling bank questions under a QP code, CSV import, and the QP code usage trail."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from pydantic import ValidationError as SchemaError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from app.errors import NotFoundError, ValidationError
from app.models.papers import QPCodeUsage, QuestionPaper, QuestionPaperQuestion
from app.models.questions import Difficulty, QPCode, Question, QuestionType
from app.schemas.papers import PaperQuestionIn, QuestionPaperCreate, QuestionPaperUpdate
from app.schemas.questions import QuestionOut
from app.services.question_bank import question_bank_service
from app.utils.csv_import import parse_question_csv
from app.utils.pagination import paginate
from app.utils.timeutils import utcnow
import logging
import secrets

logger = logging.getLogger(__name__)

class QuestionPaperService:

    @staticmethod
    def get_paper(db: Session, paper_id: int) -> QuestionPaper:
        paper = db.query(QuestionPaper).filter(QuestionPaper.id == paper_id).first()
        if not paper:
            raise NotFoundError("Question paper not found")
        return paper

    @staticmethod
    def _get_qp_code(db: Session, qp_code_id: int) -> QPCode:
        qp_code = db.query(QPCode).filter(QPCode.id == qp_code_id).first()
        if not qp_code:
            raise NotFoundError("QP code not found")
        return qp_code

    @staticmethod
    def _check_paper_code(db: Session, paper_code: str, exclude_id: Optional[int] = None) -> str:
        paper_code = (paper_code or "").strip()
        if not paper_code:
            raise ValidationError("Question paper code is required")
        query = db.query(QuestionPaper.id).filter(QuestionPaper.paper_code == paper_code)
        if exclude_id is not None:
            query = query.filter(QuestionPaper.id != exclude_id)
        if query.first():
            raise ValidationError("Question paper code already exists")
        return paper_code

    @staticmethod
    def _record_usage(db: Session, paper: QuestionPaper, action_type: str, details: Dict[str, Any]) -> None:
        db.add(QPCodeUsage(qp_code_id=paper.qp_code_id, paper_id=paper.id, action_type=action_type, details=details))

    @staticmethod
    def _refresh_totals(db: Session, paper: QuestionPaper) -> None:
        db.flush()
        count, marks = db.query(
            func.count(QuestionPaperQuestion.id), func.coalesce(func.sum(QuestionPaperQuestion.marks), 0)
        ).filter(QuestionPaperQuestion.paper_id == paper.id).one()
        paper.total_questions = count
        paper.total_marks = float(marks)

    # Listing

    @staticmethod
    def list_papers(db: Session, page: int = 1, limit: int = 20, search: Optional[str] = None,
                    qp_code_id: Optional[int] = None, is_active: Optional[bool] = None):
        query = db.query(QuestionPaper)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(QuestionPaper.paper_code).like(pattern),
                func.lower(QuestionPaper.paper_name).like(pattern),
                func.lower(QuestionPaper.description).like(pattern)
            ))
        if qp_code_id is not None:
            query = query.filter(QuestionPaper.qp_code_id == qp_code_id)
        if is_active is not None:
            query = query.filter(QuestionPaper.is_active.is_(is_active))
        return paginate(query.order_by(QuestionPaper.created_at.desc(), QuestionPaper.id.desc()), page, limit)

    @staticmethod
    def dropdown(db: Session, qp_code_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Active papers as id/code/name triples for pickers"""
        query = db.query(QuestionPaper).filter(QuestionPaper.is_active.is_(True))
        if qp_code_id is not None:
            query = query.filter(QuestionPaper.qp_code_id == qp_code_id)
        return [
            {"id": paper.id, "paper_code": paper.paper_code, "paper_name": paper.paper_name,
             "qp_code_id": paper.qp_code_id}
            for paper in query.order_by(QuestionPaper.created_at.desc(), QuestionPaper.id.desc()).all()
        ]

    @staticmethod
    def paper_questions(db: Session, paper_id: int, page: int = 1, limit: int = 100):
        """A paper's questions in question-number order, each with the marks it carries on this paper"""
        QuestionPaperService.get_paper(db, paper_id)
        query = db.query(QuestionPaperQuestion).filter(QuestionPaperQuestion.paper_id == paper_id)
        links, meta = paginate(query.order_by(QuestionPaperQuestion.question_number), page, limit)
        rows = [
            {
                **QuestionOut.model_validate(link.question).model_dump(),
                "question_number": link.question_number,
                "paper_marks": link.marks
            }
            for link in links
        ]
        return rows, meta

    @staticmethod
    def questions_by_qp_code(db: Session, qp_code_id: int, page: int = 1, limit: int = 20,
                             search: Optional[str] = None, type: Optional[QuestionType] = None,
                             difficulty: Optional[Difficulty] = None) -> Tuple[List[Question], Dict[str, int]]:
        QuestionPaperService._get_qp_code(db, qp_code_id)
        query = db.query(Question).filter(Question.qp_code_id == qp_code_id)
        if search:
            query = query.filter(func.lower(Question.question_text).like(f"%{search.lower()}%"))
        if type is not None:
            query = query.filter(Question.type == type)
        if difficulty is not None:
            query = query.filter(Question.difficulty == difficulty)
        return paginate(query.order_by(Question.created_at.desc(), Question.id.desc()), page, limit)

    @staticmethod
    def usage_history(db: Session, qp_code_id: int, page: int = 1, limit: int = 20):
        query = db.query(QPCodeUsage).filter(QPCodeUsage.qp_code_id == qp_code_id)
        return paginate(query.order_by(QPCodeUsage.created_at.desc(), QPCodeUsage.id.desc()), page, limit)

    # Questions on a paper

    @staticmethod
    def _find_or_create(db: Session, paper: QuestionPaper, data: PaperQuestionIn, created_by: Optional[int],
                        now: datetime) -> Tuple[Question, bool]:
        """Reuse an identical question under the paper's QP code, else add one to the bank"""
        question_bank_service.check_subject(db, data.subject_id)
        question = db.query(Question).filter(
            Question.qp_code_id == paper.qp_code_id,
            Question.question_text == data.question_text,
            Question.type == data.type,
            Question.correct_answer == data.correct_answer
        ).first()
        if question is not None:
            question.usage_count = (question.usage_count or 0) + 1
            question.last_used_date = now
            return question, False
        fields = data.model_dump(exclude={"question_number", "qp_code_id"})
        question = Question(**fields, qp_code_id=paper.qp_code_id, created_by=created_by,
                            usage_count=1, last_used_date=now)
        db.add(question)
        db.flush()
        return question, True

    @staticmethod
    def _link(db: Session, paper: QuestionPaper, question: Question, marks: float,
              question_number: Optional[int], next_number: int) -> bool:
        exists = db.query(QuestionPaperQuestion.id).filter(
            QuestionPaperQuestion.paper_id == paper.id, QuestionPaperQuestion.question_id == question.id
        ).first()
        if exists:
            return False
        db.add(QuestionPaperQuestion(
            paper_id=paper.id, question_id=question.id, question_number=question_number or next_number, marks=marks
        ))
        db.flush()
        return True

    @staticmethod
    def _next_number(db: Session, paper_id: int) -> int:
        current = db.query(func.max(QuestionPaperQuestion.question_number)).filter(
            QuestionPaperQuestion.paper_id == paper_id
        ).scalar()
        return (current or 0) + 1

    @staticmethod
    def _add(db: Session, paper: QuestionPaper, questions: List[PaperQuestionIn], question_ids: List[int],
             created_by: Optional[int], now: datetime) -> Dict[str, int]:
        """Link questions without committing; counts what was created, reused, added and skipped"""
        stats = {"added": 0, "created": 0, "reused": 0, "skipped": 0}
        for data in questions:
            question, created = QuestionPaperService._find_or_create(db, paper, data, created_by, now)
            stats["created" if created else "reused"] += 1
            next_number = QuestionPaperService._next_number(db, paper.id)
            if QuestionPaperService._link(db, paper, question, data.marks, data.question_number, next_number):
                stats["added"] += 1
            else:
                stats["skipped"] += 1

        if question_ids:
            bank = {q.id: q for q in db.query(Question).filter(Question.id.in_(question_ids)).all()}
            missing = [qid for qid in question_ids if qid not in bank]
            if missing:
                raise NotFoundError(f"Questions not found: {missing}")
            for question_id in dict.fromkeys(question_ids):
                question = bank[question_id]
                next_number = QuestionPaperService._next_number(db, paper.id)
                if QuestionPaperService._link(db, paper, question, question.marks, None, next_number):
                    question.usage_count = (question.usage_count or 0) + 1
                    question.last_used_date = now
                    stats["added"] += 1
                    stats["reused"] += 1
                else:
                    stats["skipped"] += 1
        QuestionPaperService._refresh_totals(db, paper)
        return stats

    @staticmethod
    def add_questions(db: Session, paper_id: int, questions: List[PaperQuestionIn], question_ids: List[int],
                      created_by: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, int]:
        if not questions and not question_ids:
            raise ValidationError("Questions are required")
        now = now or utcnow()
        paper = QuestionPaperService.get_paper(db, paper_id)
        try:
            stats = QuestionPaperService._add(db, paper, questions, question_ids, created_by, now)
            paper.updated_at = now
            db.commit()
        except Exception as e:
            logger.error(f"Error adding questions to paper {paper_id}: {str(e)}")
            db.rollback()
            raise
        logger.info(f"Paper {paper_id}: {stats}")
        return {**stats, "total_questions": paper.total_questions}

    @staticmethod
    def remove_question(db: Session, paper_id: int, question_id: int) -> int:
        paper = QuestionPaperService.get_paper(db, paper_id)
        link = db.query(QuestionPaperQuestion).filter(
            QuestionPaperQuestion.paper_id == paper_id, QuestionPaperQuestion.question_id == question_id
        ).first()
        if not link:
            raise NotFoundError("Question is not part of this paper")
        db.delete(link)
        QuestionPaperService._refresh_totals(db, paper)
        db.commit()
        logger.info(f"Question {question_id} removed from paper {paper_id}")
        return paper.total_questions

    @staticmethod
    def import_csv(db: Session, paper_id: int, text: str, created_by: Optional[int] = None,
                   now: Optional[datetime] = None) -> Dict[str, Any]:
        """Add questions parsed from CSV; rows that fail parsing or validation are reported, not fatal"""
        now = now or utcnow()
        paper = QuestionPaperService.get_paper(db, paper_id)
        parsed, errors = parse_question_csv(text)
        questions = []
        for row_number, row in parsed:
            try:
                questions.append(PaperQuestionIn.model_validate(row))
            except SchemaError as e:
                errors.append({"row": row_number, "error": e.errors(include_url=False, include_context=False)})
        errors.sort(key=lambda item: item["row"])

        try:
            stats = QuestionPaperService._add(db, paper, questions, [], created_by, now) if questions else {
                "added": 0, "created": 0, "reused": 0, "skipped": 0
            }
            QuestionPaperService._record_usage(db, paper, "IMPORT", {
                "imported": len(questions), "failed": len(errors), "added": stats["added"]
            })
            paper.updated_at = now
            db.commit()
        except Exception as e:
            logger.error(f"CSV import into paper {paper_id} failed: {str(e)}")
            db.rollback()
            raise
        logger.info(f"Imported {len(questions)} CSV rows into paper {paper_id}, {len(errors)} rejected")
        return {
            **stats,
            "imported": len(questions),
            "failed": len(errors),
            "errors": errors,
            "total_questions": paper.total_questions
        }

    # Paper CRUD

    @staticmethod
    def create_paper(db: Session, data: QuestionPaperCreate, created_by: Optional[int] = None,
                     now: Optional[datetime] = None) -> Tuple[QuestionPaper, Dict[str, int]]:
        now = now or utcnow()
        qp_code = QuestionPaperService._get_qp_code(db, data.qp_code_id)
        if data.paper_code:
            paper_code = QuestionPaperService._check_paper_code(db, data.paper_code)
        else:
            paper_code = f"{qp_code.code}-{secrets.token_hex(3).upper()}"
        try:
            paper = QuestionPaper(
                paper_code=paper_code,
                paper_name=data.paper_name.strip(),
                qp_code_id=qp_code.id,
                description=data.description or qp_code.description,
                duration_minutes=data.duration_minutes,
                difficulty_distribution=data.difficulty_distribution,
                created_by=created_by,
                created_at=now,
                updated_at=now
            )
            db.add(paper)
            db.flush()
            stats = QuestionPaperService._add(db, paper, data.questions, [], created_by, now) if data.questions else {}
            QuestionPaperService._record_usage(db, paper, "CREATE", {
                "paper_code": paper.paper_code,
                "paper_name": paper.paper_name,
                "total_questions": paper.total_questions,
                "total_marks": paper.total_marks
            })
            db.commit()
            db.refresh(paper)
        except Exception as e:
            logger.error(f"Error creating question paper: {str(e)}")
            db.rollback()
            raise
        logger.info(f"Question paper {paper.id} ({paper.paper_code}) created by {created_by}")
        return paper, stats

    @staticmethod
    def update_paper(db: Session, paper_id: int, data: QuestionPaperUpdate, now: Optional[datetime] = None) -> QuestionPaper:
        paper = QuestionPaperService.get_paper(db, paper_id)
        changes = data.model_dump(exclude_unset=True)
        if "paper_code" in changes:
            changes["paper_code"] = QuestionPaperService._check_paper_code(db, changes["paper_code"], exclude_id=paper_id)
        if "qp_code_id" in changes:
            if changes["qp_code_id"] is None:
                raise ValidationError("QP code is required")
            QuestionPaperService._get_qp_code(db, changes["qp_code_id"])
        if "paper_name" in changes:
            if not (changes["paper_name"] or "").strip():
                raise ValidationError("Paper name is required")
            changes["paper_name"] = changes["paper_name"].strip()
        if changes.get("is_active") is None:
            changes.pop("is_active", None)

        for field, value in changes.items():
            setattr(paper, field, value)
        paper.updated_at = now or utcnow()
        QuestionPaperService._record_usage(db, paper, "UPDATE", changes)
        db.commit()
        db.refresh(paper)
        logger.info(f"Question paper {paper_id} updated: {sorted(changes)}")
        return paper

    @staticmethod
    def delete_paper(db: Session, paper_id: int) -> None:
        paper = QuestionPaperService.get_paper(db, paper_id)
        has_questions = db.query(QuestionPaperQuestion.id).filter(QuestionPaperQuestion.paper_id == paper_id).first()
        if has_questions:
            raise ValidationError(
                "Cannot delete question paper as it contains questions. Please remove all questions first."
            )
        QuestionPaperService._record_usage(db, paper, "DELETE", {
            "paper_code": paper.paper_code, "paper_name": paper.paper_name
        })
        db.delete(paper)
        db.commit()
        logger.info(f"Question paper {paper_id} deleted")

question_paper_service = QuestionPaperService()
