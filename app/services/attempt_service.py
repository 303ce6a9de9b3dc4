"""Student side of a test: visibility, attempts, answers and results."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.errors import NotFoundError, PermissionDeniedError, ValidationError
from app.models.assessments import Quiz, QuizAttempt, QuizBatch, QuizQuestion, TestStatus, UserAnswer
from app.models.questions import Question
from app.models.user import StudentProfile, User
from app.services import scoring
from app.utils.timeutils import utcnow
import logging

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGES = {
    TestStatus.NOT_STARTED: "Test has not started yet",
    TestStatus.COMPLETED: "Test has ended",
    TestStatus.DRAFT: "Test is not published",
    TestStatus.ARCHIVED: "Test has been archived",
}


def question_marks(quiz: Quiz, link: QuizQuestion) -> float:
    if link.marks is not None:
        return link.marks
    return quiz.marks_per_question or 1


def max_score(quiz: Quiz) -> float:
    return sum(question_marks(quiz, link) for link in quiz.questions)


def question_view(quiz: Quiz, link: QuizQuestion) -> Dict[str, Any]:
    """Question as a student sees it: nothing that gives the answer away"""
    question = link.question
    return {
        "id": question.id,
        "question_text": question.question_text,
        "type": question.type.value,
        "options": question.options,
        "left_side": question.left_side,
        "right_side": question.right_side,
        "marks": question_marks(quiz, link),
        "order": link.order
    }


def settings_view(quiz: Quiz) -> Dict[str, Any]:
    return {
        "shuffle_questions": quiz.shuffle_questions,
        "shuffle_options": quiz.shuffle_options,
        "show_immediate_result": quiz.show_immediate_result,
        "allow_revisit": quiz.allow_revisit,
        "allow_previous_navigation": quiz.allow_previous_navigation,
        "show_correct_answers": quiz.show_correct_answers,
        "time_limit_minutes": quiz.time_limit_minutes,
        "grace_period_minutes": quiz.grace_period_minutes,
        "has_negative_marking": quiz.has_negative_marking,
        "negative_marks": quiz.negative_marks
    }


def summarize_test(quiz: Quiz) -> Dict[str, Any]:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "type": quiz.type.value,
        "status": quiz.status.value,
        "course_id": quiz.course_id,
        "subject_id": quiz.subject_id,
        "time_limit_minutes": quiz.time_limit_minutes,
        "total_marks": quiz.total_marks,
        "passing_marks": quiz.passing_marks,
        "start_time": quiz.start_time,
        "end_time_scheduled": quiz.end_time_scheduled,
        "question_count": len(quiz.questions)
    }


class AttemptService:

    @staticmethod
    def get_student_profile(db: Session, user: User) -> StudentProfile:
        profile = db.query(StudentProfile).filter(StudentProfile.user_id == user.id).first()
        if not profile:
            raise NotFoundError("Student profile not found")
        return profile

    @staticmethod
    def batch_ids(db: Session, quiz_id: int) -> List[int]:
        return [row.batch_id for row in db.query(QuizBatch.batch_id).filter(QuizBatch.quiz_id == quiz_id).all()]

    @staticmethod
    def check_batch_access(db: Session, quiz: Quiz, profile: StudentProfile) -> None:
        """An empty batch assignment means the test is open to every student"""
        assigned = AttemptService.batch_ids(db, quiz.id)
        if assigned and profile.batch_id not in assigned:
            raise PermissionDeniedError("You do not have access to this test")

    @staticmethod
    def completed_attempt(db: Session, user_id: int, quiz_id: int) -> Optional[QuizAttempt]:
        return db.query(QuizAttempt).filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.is_completed.is_(True)
        ).first()

    @staticmethod
    def open_attempt(db: Session, user_id: int, quiz_id: int) -> Optional[QuizAttempt]:
        return db.query(QuizAttempt).filter(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.is_completed.is_(False)
        ).first()

    @staticmethod
    def _own_attempt(db: Session, user: User, attempt_id: int, message: str = "Attempt not found",
                     incomplete_only: bool = False) -> QuizAttempt:
        query = db.query(QuizAttempt).filter(QuizAttempt.id == attempt_id, QuizAttempt.user_id == user.id)
        if incomplete_only:
            query = query.filter(QuizAttempt.is_completed.is_(False))
        attempt = query.first()
        if not attempt:
            raise NotFoundError(message)
        return attempt

    # Listing

    @staticmethod
    def available_tests(db: Session, user: User, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Live tests the student may take and has not completed yet"""
        profile = AttemptService.get_student_profile(db, user)
        assigned_to_batch = select(QuizBatch.quiz_id).where(QuizBatch.batch_id == profile.batch_id)
        has_batches = select(QuizBatch.quiz_id)
        open_to_course = ~Quiz.id.in_(has_batches) & or_(
            Quiz.course_id.is_(None), Quiz.course_id == profile.course_id
        )
        completed = select(QuizAttempt.quiz_id).where(
            QuizAttempt.user_id == user.id, QuizAttempt.is_completed.is_(True)
        )

        quizzes = db.query(Quiz).filter(
            Quiz.status == TestStatus.IN_PROGRESS,
            Quiz.is_active.is_(True),
            or_(Quiz.id.in_(assigned_to_batch), open_to_course),
            ~Quiz.id.in_(completed)
        ).order_by(Quiz.start_time.desc(), Quiz.id.desc()).all()

        results = []
        for quiz in quizzes:
            item = summarize_test(quiz)
            attempt = AttemptService.open_attempt(db, user.id, quiz.id)
            item["attempt_id"] = attempt.id if attempt else None
            item["in_progress"] = attempt is not None
            results.append(item)
        return results

    @staticmethod
    def test_history(db: Session, user: User) -> List[Dict[str, Any]]:
        attempts = db.query(QuizAttempt).join(Quiz, Quiz.id == QuizAttempt.quiz_id).filter(
            QuizAttempt.user_id == user.id,
            Quiz.status != TestStatus.ARCHIVED
        ).order_by(QuizAttempt.created_at.desc(), QuizAttempt.id.desc()).all()

        history = []
        for attempt in attempts:
            quiz = attempt.quiz
            total = max_score(quiz)
            history.append({
                "attempt_id": attempt.id,
                "test": summarize_test(quiz),
                "is_completed": attempt.is_completed,
                "score": attempt.score,
                "max_score": total,
                "percentage": round(attempt.score / total * 100, 2) if total else 0,
                "accuracy": attempt.accuracy,
                "correct_answers": attempt.correct_answers,
                "wrong_answers": attempt.wrong_answers,
                "unattempted": attempt.unattempted,
                "time_taken_seconds": attempt.time_taken_seconds,
                "start_time": attempt.start_time,
                "submit_time": attempt.submit_time,
                "results_published": quiz.show_correct_answers
            })
        return history

    @staticmethod
    def student_test_details(db: Session, user: User, quiz_id: int) -> Dict[str, Any]:
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz or quiz.status == TestStatus.ARCHIVED:
            raise NotFoundError("Test not found")
        profile = AttemptService.get_student_profile(db, user)
        AttemptService.check_batch_access(db, quiz, profile)

        completed = AttemptService.completed_attempt(db, user.id, quiz.id)
        in_flight = AttemptService.open_attempt(db, user.id, quiz.id)
        return {
            "test": summarize_test(quiz),
            "questions": [question_view(quiz, link) for link in quiz.questions],
            "settings": settings_view(quiz),
            "statistics": {
                "total_questions": len(quiz.questions),
                "max_score": max_score(quiz),
                "has_completed": completed is not None,
                "has_attempt_in_progress": in_flight is not None,
                "score": completed.score if completed else None
            }
        }

    # Attempt flow

    @staticmethod
    def start_attempt(db: Session, user: User, quiz_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Start a test or resume the attempt already in flight"""
        now = now or utcnow()
        quiz = db.query(Quiz).filter(Quiz.id == quiz_id).first()
        if not quiz:
            raise NotFoundError("Test not found")
        if quiz.status != TestStatus.IN_PROGRESS or not quiz.is_active:
            raise PermissionDeniedError(UNAVAILABLE_MESSAGES.get(quiz.status, "Test is not available"))

        profile = AttemptService.get_student_profile(db, user)
        AttemptService.check_batch_access(db, quiz, profile)

        if AttemptService.completed_attempt(db, user.id, quiz.id):
            raise PermissionDeniedError("You have already completed this test and cannot attempt it again")

        attempt = AttemptService.open_attempt(db, user.id, quiz.id)
        resumed = attempt is not None
        if attempt is None:
            attempt = QuizAttempt(
                user_id=user.id,
                quiz_id=quiz.id,
                start_time=now,
                total_questions=len(quiz.questions),
                is_completed=False
            )
            db.add(attempt)
            try:
                db.commit()
            except IntegrityError:
                # a concurrent request created the attempt first
                db.rollback()
                attempt = AttemptService.open_attempt(db, user.id, quiz.id)
                if attempt is None:
                    raise PermissionDeniedError("You have already completed this test and cannot attempt it again")
                resumed = True
            else:
                db.refresh(attempt)
                logger.info(f"User {user.id} started attempt {attempt.id} on test {quiz.id}")

        deadline = scoring.attempt_deadline(attempt.start_time, quiz.time_limit_minutes, quiz.end_time_scheduled)
        return {
            "attempt": attempt,
            "resumed": resumed,
            "test": summarize_test(quiz),
            "questions": [question_view(quiz, link) for link in quiz.questions],
            "settings": settings_view(quiz),
            "deadline": deadline,
            "saved_answers": AttemptService._saved(attempt) if resumed else []
        }

    @staticmethod
    def _check_not_archived(attempt: QuizAttempt) -> None:
        if attempt.quiz.status == TestStatus.ARCHIVED:
            raise PermissionDeniedError(UNAVAILABLE_MESSAGES[TestStatus.ARCHIVED])

    @staticmethod
    def _record_answer(db: Session, attempt: QuizAttempt, question_id: int, answer: Optional[str]) -> UserAnswer:
        """Grade and upsert one answer without committing"""
        quiz = attempt.quiz
        link = db.query(QuizQuestion).filter(
            QuizQuestion.quiz_id == attempt.quiz_id, QuizQuestion.question_id == question_id
        ).first()
        if not quiz or not link:
            raise NotFoundError("Question or quiz not found")
        question: Question = link.question

        is_correct = scoring.is_answer_correct(question.type, question.options, question.correct_answer, answer)
        marks = scoring.marks_for_answer(
            is_correct, answer, question_marks(quiz, link), quiz.has_negative_marking, quiz.negative_marks
        )

        user_answer = db.query(UserAnswer).filter(
            UserAnswer.attempt_id == attempt.id, UserAnswer.question_id == question_id
        ).first()
        if user_answer is None:
            user_answer = UserAnswer(attempt_id=attempt.id, question_id=question_id)
            db.add(user_answer)
        user_answer.answer = answer
        user_answer.is_correct = is_correct
        user_answer.marks_obtained = marks
        user_answer.answered_at = utcnow()
        return user_answer

    @staticmethod
    def submit_answer(db: Session, user: User, attempt_id: int, question_id: int, answer: Optional[str]) -> UserAnswer:
        attempt = AttemptService._own_attempt(db, user, attempt_id)
        if attempt.is_completed:
            raise ValidationError("This attempt has already been submitted")
        AttemptService._check_not_archived(attempt)
        try:
            user_answer = AttemptService._record_answer(db, attempt, question_id, answer)
            db.commit()
            db.refresh(user_answer)
            return user_answer
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def finalize_attempt(db: Session, attempt: QuizAttempt, now: datetime) -> QuizAttempt:
        """Recompute an attempt's totals from its answer rows and mark it completed"""
        linked = {
            row.question_id for row in
            db.query(QuizQuestion.question_id).filter(QuizQuestion.quiz_id == attempt.quiz_id).all()
        }
        answers = db.query(UserAnswer).filter(UserAnswer.attempt_id == attempt.id).all()
        totals = scoring.summarize_answers(answers, len(linked), linked)

        attempt.total_questions = totals.total_questions
        attempt.correct_answers = totals.correct
        attempt.wrong_answers = totals.wrong
        attempt.unattempted = totals.unattempted
        attempt.score = totals.score
        attempt.accuracy = totals.accuracy
        attempt.is_completed = True
        if attempt.submit_time is None:
            attempt.submit_time = now
        attempt.time_taken_seconds = scoring.elapsed_seconds(attempt.start_time, attempt.submit_time)
        return attempt

    @staticmethod
    def close_attempt(db: Session, attempt: QuizAttempt, now: datetime) -> bool:
        """Finalize an open attempt, or drop it when the student already holds a completed one.

        Returns True when the attempt was finalized.
        """
        if AttemptService.completed_attempt(db, attempt.user_id, attempt.quiz_id):
            db.delete(attempt)
            logger.warning(
                f"Discarded open attempt {attempt.id}: user {attempt.user_id} already completed test {attempt.quiz_id}"
            )
            return False
        AttemptService.finalize_attempt(db, attempt, now)
        return True

    @staticmethod
    def result_view(attempt: QuizAttempt) -> Dict[str, Any]:
        quiz = attempt.quiz
        total = max_score(quiz)
        percentage = round(attempt.score / total * 100, 2) if total else 0
        return {
            "attempt_id": attempt.id,
            "test_id": quiz.id,
            "score": attempt.score,
            "max_score": total,
            "percentage": percentage,
            "passed": percentage >= quiz.passing_marks,
            "total_questions": attempt.total_questions,
            "correct_answers": attempt.correct_answers,
            "wrong_answers": attempt.wrong_answers,
            "unattempted": attempt.unattempted,
            "accuracy": attempt.accuracy,
            "time_taken_seconds": attempt.time_taken_seconds,
            "submit_time": attempt.submit_time
        }

    @staticmethod
    def complete_attempt(db: Session, user: User, attempt_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        attempt = AttemptService._own_attempt(db, user, attempt_id)
        AttemptService._check_not_archived(attempt)
        try:
            AttemptService.finalize_attempt(db, attempt, now or utcnow())
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ValidationError("You have already completed this test")
        db.refresh(attempt)
        logger.info(f"Attempt {attempt.id} completed with score {attempt.score}")
        return AttemptService.result_view(attempt)

    @staticmethod
    def auto_save(db: Session, user: User, attempt_id: int, answers: List[Dict[str, Any]],
                  now: Optional[datetime] = None) -> Dict[str, Any]:
        """Save answers in bulk, or submit the attempt once its time is up"""
        now = now or utcnow()
        attempt = AttemptService._own_attempt(
            db, user, attempt_id, "Test attempt not found or already completed", incomplete_only=True
        )
        AttemptService._check_not_archived(attempt)
        quiz = attempt.quiz
        deadline = scoring.attempt_deadline(attempt.start_time, quiz.time_limit_minutes, quiz.end_time_scheduled)

        try:
            if deadline is not None and now >= deadline:
                AttemptService.finalize_attempt(db, attempt, now)
                db.commit()
                db.refresh(attempt)
                logger.info(f"Attempt {attempt.id} auto-submitted at deadline")
                return {"auto_submitted": True, "result": AttemptService.result_view(attempt)}

            for item in answers:
                AttemptService._record_answer(db, attempt, item["question_id"], item.get("answer"))
            db.commit()
        except Exception:
            db.rollback()
            raise

        status = scoring.time_status(deadline, quiz.grace_period_minutes, now)
        remaining = status["remaining_time"]
        should_warn = remaining is not None and status["remaining_minutes"] <= 5
        return {
            "auto_submitted": False,
            "saved": len(answers),
            "remaining_time": remaining,
            "remaining_minutes": status["remaining_minutes"],
            "remaining_seconds": status["remaining_seconds"],
            "should_warn": should_warn,
            "warning_message": status["warning_message"] if should_warn else None
        }

    @staticmethod
    def time_status(db: Session, user: User, attempt_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        attempt = AttemptService._own_attempt(
            db, user, attempt_id, "Test attempt not found or completed", incomplete_only=True
        )
        quiz = attempt.quiz
        deadline = scoring.attempt_deadline(attempt.start_time, quiz.time_limit_minutes, quiz.end_time_scheduled)
        return scoring.time_status(deadline, quiz.grace_period_minutes, now or utcnow())

    @staticmethod
    def _saved(attempt: QuizAttempt) -> List[Dict[str, Any]]:
        return [
            {"question_id": a.question_id, "answer": a.answer, "answered_at": a.answered_at}
            for a in sorted(attempt.answers, key=lambda a: a.question_id)
        ]

    @staticmethod
    def saved_answers(db: Session, user: User, attempt_id: int) -> List[Dict[str, Any]]:
        attempt = AttemptService._own_attempt(
            db, user, attempt_id, "Test attempt not found or already completed", incomplete_only=True
        )
        return AttemptService._saved(attempt)

    @staticmethod
    def completed_scores(db: Session, quiz_id: int) -> List[float]:
        return [
            row.score for row in db.query(QuizAttempt.score).filter(
                QuizAttempt.quiz_id == quiz_id, QuizAttempt.is_completed.is_(True)
            ).all()
        ]

    @staticmethod
    def answer_breakdown(quiz: Quiz, attempt: QuizAttempt, reveal: bool) -> List[Dict[str, Any]]:
        """Per-question outcome; correct answers only when `reveal`"""
        by_question = {a.question_id: a for a in attempt.answers}
        breakdown = []
        for link in quiz.questions:
            answer = by_question.get(link.question_id)
            item = question_view(quiz, link)
            item.update({
                "your_answer": answer.answer if answer else None,
                "is_correct": answer.is_correct if answer else False,
                "marks_obtained": answer.marks_obtained if answer else 0,
                "attempted": bool(answer and not scoring.is_blank(answer.answer))
            })
            if reveal:
                item["correct_answer"] = link.question.correct_answer
                item["explanation"] = link.question.explanation
            breakdown.append(item)
        return breakdown

    @staticmethod
    def attempt_analysis(db: Session, user: User, attempt_id: int) -> Dict[str, Any]:
        attempt = AttemptService._own_attempt(db, user, attempt_id)
        if not attempt.is_completed:
            raise ValidationError("Test attempt is not completed yet")
        quiz = attempt.quiz
        scores = AttemptService.completed_scores(db, quiz.id)
        return {
            "result": AttemptService.result_view(attempt),
            "test": summarize_test(quiz),
            "rank": scoring.rank_of(attempt.score, scores),
            "total_participants": len(scores),
            "results_published": quiz.show_correct_answers,
            "questions": AttemptService.answer_breakdown(quiz, attempt, reveal=quiz.show_correct_answers)
        }

attempt_service = AttemptService()
