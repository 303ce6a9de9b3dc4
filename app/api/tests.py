from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.dependencies import get_current_user, get_current_staff, get_current_student
from app.errors import AppError
from app.models.assessments import TestStatus
from app.models.user import User
from app.schemas.assessments import (
    TestCreate, TestOut, AttemptOut, UserAnswerOut,
    AddQuestionRequest, AddQuestionsRequest, StatusToggleRequest,
    AnswerSubmit, AutoSaveRequest
)
from app.schemas.questions import QuestionOut
from app.services.attempt_service import attempt_service
from app.services.test_service import test_service
from app.utils.email import email_service
from app.websocket.notifications import build_payloads, push_payloads
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tests", tags=["tests"])

def _failed(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error trying to {action}: {str(e)}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")

def _queue_test_alert(background_tasks: BackgroundTasks, db: Session, quiz) -> None:
    """Email eligible students once a test is visible to them"""
    if quiz.status not in (TestStatus.NOT_STARTED, TestStatus.IN_PROGRESS):
        return
    recipients = test_service.alert_recipients(db, quiz.id)
    if recipients:
        background_tasks.add_task(email_service.send_new_test_alert, recipients, quiz.title, quiz.start_time)

def _lifecycle_response(quiz, message: str, **extra):
    data = {"test": TestOut.model_validate(quiz)}
    data.update(extra)
    return {"success": True, "message": message, "data": data}

# Static paths first so they are not captured by /{test_id}

@router.get("/reports")
async def all_reports(db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        return {"success": True, "data": test_service.all_reports(db)}
    except Exception as e:
        raise _failed("fetch reports", e)

@router.get("/student/available")
async def available_tests(db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    try:
        return {"success": True, "data": attempt_service.available_tests(db, current_user)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch available tests", e)

@router.get("/student/history")
async def test_history(db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    try:
        return {"success": True, "data": attempt_service.test_history(db, current_user)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch test history", e)

@router.post("/attempt/{attempt_id}/answer")
async def submit_answer(
    attempt_id: int,
    data: AnswerSubmit,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    try:
        user_answer = attempt_service.submit_answer(db, current_user, attempt_id, data.question_id, data.answer)
        return {"success": True, "message": "Answer saved", "data": UserAnswerOut.model_validate(user_answer)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("submit answer", e)

@router.post("/attempt/{attempt_id}/complete")
async def complete_attempt(attempt_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    try:
        result = attempt_service.complete_attempt(db, current_user, attempt_id)
        return {"success": True, "message": "Test submitted successfully", "data": result}
    except AppError:
        raise
    except Exception as e:
        raise _failed("complete test", e)

@router.post("/attempt/{attempt_id}/auto-save")
async def auto_save(
    attempt_id: int,
    data: AutoSaveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_student)
):
    try:
        result = attempt_service.auto_save(db, current_user, attempt_id, [a.model_dump() for a in data.answers])
        message = "Time is up, test submitted automatically" if result["auto_submitted"] else "Answers saved"
        return {"success": True, "message": message, "data": result}
    except AppError:
        raise
    except Exception as e:
        raise _failed("auto-save answers", e)

@router.get("/attempt/{attempt_id}/time-status")
async def time_status(attempt_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    return {"success": True, "data": attempt_service.time_status(db, current_user, attempt_id)}

@router.get("/attempt/{attempt_id}/analysis")
async def attempt_analysis(attempt_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    try:
        return {"success": True, "data": attempt_service.attempt_analysis(db, current_user, attempt_id)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch attempt analysis", e)

@router.get("/attempt/{attempt_id}/saved-answers")
async def saved_answers(attempt_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    return {"success": True, "data": attempt_service.saved_answers(db, current_user, attempt_id)}

# Authoring

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_test(
    data: TestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        quiz, question_stats = test_service.create_test(db, data, current_user.id)
        _queue_test_alert(background_tasks, db, quiz)
        return {
            "success": True,
            "message": "Test created successfully",
            "data": {"test": TestOut.model_validate(quiz), "questions": question_stats}
        }
    except AppError:
        raise
    except Exception as e:
        raise _failed("create test", e)

@router.get("")
async def list_tests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    subject_id: Optional[int] = None,
    type: Optional[str] = None,
    course_id: Optional[int] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        rows, meta = test_service.list_tests(
            db, page, limit, search=search, subject_id=subject_id, type=type, course_id=course_id, status=status_filter
        )
        return {"success": True, "data": rows, "meta": meta}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch tests", e)

@router.get("/{test_id}")
async def get_test(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    details = test_service.test_details(db, test_id)
    return {
        "success": True,
        "data": {
            "test": TestOut.model_validate(details["test"]),
            "batch_ids": details["batch_ids"],
            "attempt_count": details["attempt_count"],
            "questions": [
                {**row, "question": QuestionOut.model_validate(row["question"])} for row in details["questions"]
            ]
        }
    }

@router.put("/{test_id}")
async def update_test(
    test_id: int,
    data: TestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        quiz = test_service.update_test(db, test_id, data, current_user.id)
        return {"success": True, "message": "Test updated successfully", "data": TestOut.model_validate(quiz)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("update test", e)

@router.delete("/{test_id}")
async def delete_test(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        test_service.delete_test(db, test_id)
        return {"success": True, "message": "Test deleted successfully"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("delete test", e)

@router.get("/{test_id}/questions")
async def list_test_questions(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    rows = test_service.list_questions(db, test_id)
    return {
        "success": True,
        "data": [{**row, "question": QuestionOut.model_validate(row["question"])} for row in rows]
    }

@router.post("/{test_id}/questions", status_code=status.HTTP_201_CREATED)
async def add_question(
    test_id: int,
    data: AddQuestionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        link = test_service.add_question(db, test_id, data.question_id, data.marks)
        return {
            "success": True,
            "message": "Question added to test",
            "data": {"question_id": link.question_id, "order": link.order, "marks": link.marks}
        }
    except AppError:
        raise
    except Exception as e:
        raise _failed("add question", e)

@router.post("/{test_id}/questions/bulk", status_code=status.HTTP_201_CREATED)
async def add_questions(
    test_id: int,
    data: AddQuestionsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        result = test_service.add_questions(db, test_id, data.question_ids)
        return {"success": True, "message": f"{result['added']} questions added to test", "data": result}
    except AppError:
        raise
    except Exception as e:
        raise _failed("add questions", e)

@router.delete("/{test_id}/questions/{question_id}")
async def remove_question(
    test_id: int,
    question_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        test_service.remove_question(db, test_id, question_id)
        return {"success": True, "message": "Question removed from test"}
    except AppError:
        raise
    except Exception as e:
        raise _failed("remove question", e)

# Lifecycle

@router.patch("/{test_id}/publish")
async def publish_test(
    test_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        quiz = test_service.publish_test(db, test_id)
        _queue_test_alert(background_tasks, db, quiz)
        return _lifecycle_response(quiz, "Test published successfully")
    except AppError:
        raise
    except Exception as e:
        raise _failed("publish test", e)

@router.patch("/{test_id}/archive")
async def archive_test(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        return _lifecycle_response(test_service.archive_test(db, test_id), "Test archived successfully")
    except AppError:
        raise
    except Exception as e:
        raise _failed("archive test", e)

@router.patch("/{test_id}/draft")
async def draft_test(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        return _lifecycle_response(test_service.draft_test(db, test_id), "Test moved to draft")
    except AppError:
        raise
    except Exception as e:
        raise _failed("move test to draft", e)

@router.patch("/{test_id}/start")
async def start_test(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        return _lifecycle_response(test_service.start_test(db, test_id), "Test started successfully")
    except AppError:
        raise
    except Exception as e:
        raise _failed("start test", e)

@router.patch("/{test_id}/complete")
async def complete_test(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        quiz, swept = test_service.complete_test(db, test_id)
        return _lifecycle_response(quiz, "Test completed successfully", auto_submitted_attempts=swept)
    except AppError:
        raise
    except Exception as e:
        raise _failed("complete test", e)

@router.patch("/{test_id}/publish-results")
async def publish_results(
    test_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        quiz, notifications = test_service.publish_results(db, test_id)
        background_tasks.add_task(push_payloads, build_payloads(notifications))
        return _lifecycle_response(quiz, "Results published successfully", notifications_sent=len(notifications))
    except AppError:
        raise
    except Exception as e:
        raise _failed("publish results", e)

@router.patch("/{test_id}/status")
async def toggle_status(
    test_id: int,
    data: StatusToggleRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        quiz = test_service.toggle_status(db, test_id, data.status)
        return _lifecycle_response(quiz, "Test status updated successfully")
    except AppError:
        raise
    except Exception as e:
        raise _failed("update test status", e)

# Results and leaderboards

@router.patch("/{test_id}/leaderboard/toggle")
async def toggle_leaderboard(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    quiz = test_service.toggle_leaderboard(db, test_id)
    state = "enabled" if quiz.leaderboard_enabled else "disabled"
    return {"success": True, "message": f"Leaderboard {state}", "data": {"leaderboard_enabled": quiz.leaderboard_enabled}}

@router.get("/{test_id}/leaderboard/enhanced")
async def enhanced_leaderboard(
    test_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        return {"success": True, "data": test_service.enhanced_leaderboard(db, test_id, status_filter)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch leaderboard", e)

@router.get("/{test_id}/leaderboard")
async def leaderboard(
    test_id: int,
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    try:
        return {"success": True, "data": test_service.leaderboard(db, test_id, current_user, limit)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch leaderboard", e)

@router.get("/{test_id}/attempts")
async def test_attempts(
    test_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    rows, meta = test_service.test_attempts(db, test_id, page, limit)
    data = [
        {**AttemptOut.model_validate(row["attempt"]).model_dump(), "student_name": row["student_name"], "email": row["email"]}
        for row in rows
    ]
    return {"success": True, "data": data, "meta": meta}

@router.get("/{test_id}/students")
async def test_students(
    test_id: int,
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    """Assigned students with their attempt status"""
    board = test_service.enhanced_leaderboard(db, test_id, status_filter)
    return {"success": True, "data": board["leaderboard"], "meta": board["summary"]}

@router.get("/{test_id}/report")
async def test_report(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_staff)):
    try:
        return {"success": True, "data": test_service.test_report(db, test_id)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("build test report", e)

@router.get("/{test_id}/students/{student_id}/report")
async def student_report(
    test_id: int,
    student_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_staff)
):
    try:
        return {"success": True, "data": test_service.student_report(db, test_id, student_id)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("build student report", e)

# Student side of a single test

@router.get("/{test_id}/student-details")
async def student_test_details(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    try:
        return {"success": True, "data": attempt_service.student_test_details(db, current_user, test_id)}
    except AppError:
        raise
    except Exception as e:
        raise _failed("fetch test details", e)

@router.post("/{test_id}/start")
async def start_attempt(test_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_student)):
    try:
        session = attempt_service.start_attempt(db, current_user, test_id)
        message = "Resuming your test attempt" if session["resumed"] else "Test started successfully"
        return {
            "success": True,
            "message": message,
            "data": {**session, "attempt": AttemptOut.model_validate(session["attempt"])}
        }
    except AppError:
        raise
    except Exception as e:
        raise _failed("start test", e)
