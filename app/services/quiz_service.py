from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.errors import NotFoundError, ValidationError
from app.models.assessments import Quiz, QuizAttempt, TestStatus, UserAnswer
from app.models.user import StudentProfile, User
from app.services import scoring
from app.services.attempt_service import attempt_service, max_score, question_marks, question_view, summarize_test
from app.utils.pagination import paginate
from app.utils.timeutils import utcnow
import logging

logger = logging.getLogger(__name__)

class QuizService:
    """One-shot quiz submission: all answers graded and stored in a single call"""

    @staticmethod
    def list_quizzes(db: Session, page: int = 1, limit: int = 20, course_id: Optional[int] = None,
                     subject_id: Optional[int] = None):
        query = db.query(Quiz).filter(Quiz.status == TestStatus.IN_PROGRESS, Quiz.is_active.is_(True))
        if course_id is not None:
            query = query.filter(Quiz.course_id == course_id)
        if subject_id is not None:
            query = query.filter(Quiz.subject_id == subject_id)
        items, meta = paginate(query.order_by(Quiz.created_at.desc(), Quiz.id.desc()), page, limit)
        return [summarize_test(quiz) for quiz in items], meta

    @staticmethod
    def get_quiz(db: Session, quiz_id: int) -> Dict[str, Any]:
        quiz = db.query(Quiz).filter(
            Quiz.id == quiz_id, Quiz.status == TestStatus.IN_PROGRESS, Quiz.is_active.is_(True)
        ).first()
        if not quiz:
            raise NotFoundError("Quiz not found")
        return {
            **summarize_test(quiz),
            "questions": [question_view(quiz, link) for link in quiz.questions]
        }

    @staticmethod
    def submit_quiz(db: Session, user: User, quiz_id: int, answers: List[Dict[str, Any]],
                    time_taken_seconds: Optional[int] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz:
            raise NotFoundError("Quiz not found")
        if quiz.status != TestStatus.IN_PROGRESS or not quiz.is_active:
            raise ValidationError("Quiz is not available")
        if attempt_service.completed_attempt(db, user.id, quiz_id):
            raise ValidationError("You have already completed this quiz")
        if attempt_service.open_attempt(db, user.id, quiz_id):
            raise ValidationError("You have a test attempt in progress; complete it instead")

        submitted = {item["question_id"]: item.get("answer") for item in answers}
        score = 0.0
        correct = answered = 0
        rows = []
        results = []
        for link in quiz.questions:
            question = link.question
            answer = submitted.get(question.id)
            is_correct = scoring.is_answer_correct(question.type, question.options, question.correct_answer, answer)
            marks = scoring.marks_for_answer(
                is_correct, answer, question_marks(quiz, link), quiz.has_negative_marking, quiz.negative_marks
            )
            if not scoring.is_blank(answer):
                answered += 1
            if is_correct:
                correct += 1
            score += marks
            rows.append(UserAnswer(question_id=question.id, answer=answer, is_correct=is_correct, marks_obtained=marks))
            results.append({"question_id": question.id, "is_correct": is_correct, "marks_obtained": marks})

        score = max(round(score, 2), 0)
        total_questions = len(quiz.questions)
        total = max_score(quiz)
        percentage = round(score / total * 100, 2) if total else 0

        attempt = QuizAttempt(
            user_id=user.id,
            quiz_id=quiz.id,
            start_time=now,
            submit_time=now,
            is_completed=True,
            score=score,
            total_questions=total_questions,
            correct_answers=correct,
            wrong_answers=answered - correct,
            unattempted=total_questions - answered,
            accuracy=round(correct / total_questions * 100, 2) if total_questions else 0,
            time_taken_seconds=time_taken_seconds,
            answers=rows
        )
        db.add(attempt)
        profile = db.query(StudentProfile).filter(StudentProfile.user_id == user.id).first()
        if profile:
            profile.total_score = (profile.total_score or 0) + score
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError("You have already completed this quiz")
        db.refresh(attempt)
        logger.info(f"User {user.id} submitted quiz {quiz.id}: {score}/{total}")

        response = {
            "attempt_id": attempt.id,
            "score": score,
            "max_score": total,
            "percentage": percentage,
            "passed": percentage >= quiz.passing_marks,
            "correct_answers": correct,
            "total_questions": total_questions
        }
        if quiz.show_immediate_result:
            response["results"] = results
        return response

    @staticmethod
    def list_attempts(db: Session, user: User, page: int = 1, limit: int = 20):
        query = db.query(QuizAttempt).filter(QuizAttempt.user_id == user.id).order_by(
            QuizAttempt.created_at.desc(), QuizAttempt.id.desc()
        )
        items, meta = paginate(query, page, limit)
        return [
            {"attempt": attempt, "quiz_title": attempt.quiz.title, "max_score": max_score(attempt.quiz)}
            for attempt in items
        ], meta

quiz_service = QuizService()
