"""Periodic housekeeping for scheduled tests.

Run by an external scheduler (cron, systemd timer) through `python -m app.scheduler`.
Each step commits on its own so one failing test does not hold back the rest.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional
from sqlalchemy.orm import Session
from app.errors import AppError
from app.models.assessments import Quiz, QuizAttempt, TestStatus
from app.models.notifications import NotificationType
from app.services import scoring
from app.services.attempt_service import attempt_service
from app.services.notification_service import notification_service
from app.services.test_service import test_service
from app.services.test_status import TestAction, apply_transition
from app.utils.timeutils import utcnow
import logging

logger = logging.getLogger(__name__)

class SchedulerService:

    @staticmethod
    def process_test_starts(db: Session, now: datetime) -> int:
        """Open auto-start tests whose start time has arrived"""
        due = db.query(Quiz).filter(
            Quiz.status == TestStatus.NOT_STARTED,
            Quiz.auto_start.is_(True),
            Quiz.is_active.is_(True),
            Quiz.start_time.isnot(None),
            Quiz.start_time <= now
        ).all()
        started = 0
        for quiz in due:
            try:
                apply_transition(quiz, TestAction.AUTO_START, now)
                db.commit()
                started += 1
                logger.info(f"Auto-started test {quiz.id}")
            except Exception as e:
                logger.error(f"Failed to auto-start test {quiz.id}: {str(e)}")
                db.rollback()
        return started

    @staticmethod
    def process_test_ends(db: Session, now: datetime) -> int:
        """Complete auto-end tests once their end time and grace period have passed"""
        running = db.query(Quiz).filter(
            Quiz.status == TestStatus.IN_PROGRESS,
            Quiz.auto_end.is_(True),
            Quiz.end_time_scheduled.isnot(None),
            Quiz.end_time_scheduled <= now
        ).all()
        ended = 0
        for quiz in running:
            if quiz.end_time_scheduled + timedelta(minutes=quiz.grace_period_minutes or 0) > now:
                continue
            try:
                quiz, swept = test_service.complete_test(db, quiz.id, now)
            except AppError as e:
                logger.warning(f"Skipped auto-end for test {quiz.id}: {e.message}")
                continue
            except Exception as e:
                logger.error(f"Failed to auto-end test {quiz.id}: {str(e)}")
                continue
            ended += 1
            notification_service.notify_users_safely(
                db,
                test_service.participant_ids(db, quiz.id),
                title="Test Ended",
                message=f"'{quiz.title}' has ended and your answers have been submitted",
                type=NotificationType.QUIZ,
                data={"quiz_id": quiz.id, "action": "test_ended", "auto_submitted": swept}
            )
        return ended

    @staticmethod
    def process_expired_attempts(db: Session, now: datetime) -> int:
        """Submit attempts that ran past their own deadline plus grace"""
        open_attempts = db.query(QuizAttempt).join(Quiz, Quiz.id == QuizAttempt.quiz_id).filter(
            QuizAttempt.is_completed.is_(False),
            Quiz.status == TestStatus.IN_PROGRESS
        ).all()
        submitted = 0
        for attempt in open_attempts:
            quiz = attempt.quiz
            deadline = scoring.attempt_deadline(attempt.start_time, quiz.time_limit_minutes, quiz.end_time_scheduled)
            if deadline is None or deadline + timedelta(minutes=quiz.grace_period_minutes or 0) > now:
                continue
            try:
                if attempt_service.close_attempt(db, attempt, now):
                    submitted += 1
                    logger.info(f"Auto-submitted expired attempt {attempt.id}")
                db.commit()
            except Exception as e:
                logger.error(f"Failed to submit attempt {attempt.id}: {str(e)}")
                db.rollback()
        return submitted

    @staticmethod
    def process_result_releases(db: Session, now: datetime) -> int:
        """Publish results whose release time has arrived"""
        due = db.query(Quiz).filter(
            Quiz.status == TestStatus.COMPLETED,
            Quiz.show_correct_answers.is_(False),
            Quiz.result_release_time.isnot(None),
            Quiz.result_release_time <= now
        ).all()
        released = 0
        for quiz in due:
            try:
                test_service.publish_results(db, quiz.id)
                released += 1
            except Exception as e:
                logger.error(f"Failed to release results for test {quiz.id}: {str(e)}")
                db.rollback()
        return released

    @staticmethod
    def run_once(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or utcnow()
        summary = {
            "started": SchedulerService.process_test_starts(db, now),
            "ended": SchedulerService.process_test_ends(db, now),
            "attempts_submitted": SchedulerService.process_expired_attempts(db, now),
            "results_released": SchedulerService.process_result_releases(db, now)
        }
        logger.info(f"Scheduler pass finished: {summary}")
        return summary

scheduler_service = SchedulerService()
