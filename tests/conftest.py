import os

# Settings are read at import time, so the environment has to be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "admin-password"
os.environ["EMAILS_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app import models  # noqa: F401
from app.database import Base, SessionLocal, engine
from app.main import app
from app.models.assessments import Quiz, QuizAttempt, QuizQuestion, TestStatus
from app.models.organization import Batch, Course
from app.models.questions import Question, QuestionType
from app.models.user import StudentProfile, User, UserRole
from app.services.auth_service import auth_service
from app.utils.timeutils import utcnow

PASSWORD = "Passw0rd!"


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def make_user(db, email, role=UserRole.STUDENT, full_name=None, batch=None, course=None, is_active=True):
    user = User(
        email=email,
        password_hash=auth_service.get_password_hash(PASSWORD),
        full_name=full_name or email.split("@")[0].title(),
        role=role,
        is_active=is_active,
    )
    if role == UserRole.STUDENT:
        user.student_profile = StudentProfile(
            batch_id=batch.id if batch else None,
            course_id=course.id if course else None,
        )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user):
    return {"Authorization": f"Bearer {auth_service.create_access_token(user)}"}


def make_question(db, text="2 + 2 = ?", correct_answer="4", type=QuestionType.MCQ, options=None, marks=1):
    if options is None and type == QuestionType.MCQ:
        options = {"A": "3", "B": "4", "C": "5", "D": "22"}
    question = Question(question_text=text, type=type, options=options, correct_answer=correct_answer, marks=marks)
    db.add(question)
    db.commit()
    db.refresh(question)
    return question


def make_test(db, questions=(), status=TestStatus.IN_PROGRESS, marks_per_question=1, batches=(), **fields):
    fields.setdefault("title", "Algebra Mock")
    fields.setdefault("total_marks", marks_per_question * len(questions))
    quiz = Quiz(status=status, marks_per_question=marks_per_question, **fields)
    db.add(quiz)
    db.flush()
    for index, question in enumerate(questions):
        db.add(QuizQuestion(quiz_id=quiz.id, question_id=question.id, order=index + 1))
    for batch in batches:
        quiz.batches.append(models.QuizBatch(batch_id=batch.id))
    db.commit()
    db.refresh(quiz)
    return quiz


def make_completed_attempt(db, user, quiz, score, time_taken_seconds=600):
    now = utcnow()
    attempt = QuizAttempt(
        user_id=user.id,
        quiz_id=quiz.id,
        start_time=now - timedelta(seconds=time_taken_seconds),
        submit_time=now,
        is_completed=True,
        score=score,
        total_questions=len(quiz.questions),
        time_taken_seconds=time_taken_seconds,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


@pytest.fixture
def course(db):
    course = Course(name="Full Stack")
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


@pytest.fixture
def batch(db, course):
    batch = Batch(name="FS-2024-A", course_id=course.id)
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


@pytest.fixture
def admin(db):
    return make_user(db, "admin@example.com", role=UserRole.ADMIN, full_name="Admin User")


@pytest.fixture
def teacher(db):
    return make_user(db, "teacher@example.com", role=UserRole.TEACHER, full_name="Tara Teacher")


@pytest.fixture
def student(db, batch, course):
    return make_user(db, "student@example.com", full_name="Sam Student", batch=batch, course=course)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def student_headers(student):
    return auth_headers(student)
