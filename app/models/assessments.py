from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Float, Enum,
    UniqueConstraint, Index, column
)
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow
import enum

class TestStatus(str, enum.Enum):
    __test__ = False
    DRAFT = "DRAFT"
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"

class TestType(str, enum.Enum):
    __test__ = False
    MOCK = "MOCK"
    DAILY = "DAILY"
    CUSTOM = "CUSTOM"

class Quiz(Base):
    """A scheduled test students take through attempts"""
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    type = Column(Enum(TestType), nullable=False, default=TestType.MOCK)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True)
    time_limit_minutes = Column(Integer, nullable=True)
    total_marks = Column(Float, nullable=False, default=0)
    passing_marks = Column(Float, nullable=False, default=40)
    marks_per_question = Column(Float, nullable=False, default=1)
    has_negative_marking = Column(Boolean, nullable=False, default=False)
    negative_marks = Column(Float, nullable=False, default=0)
    status = Column(Enum(TestStatus), nullable=False, default=TestStatus.DRAFT, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    # Scheduling
    scheduled_at = Column(DateTime, nullable=True)
    start_time = Column(DateTime, nullable=True)
    end_time_scheduled = Column(DateTime, nullable=True)
    auto_start = Column(Boolean, nullable=False, default=True)
    auto_end = Column(Boolean, nullable=False, default=True)
    grace_period_minutes = Column(Integer, nullable=False, default=5)

    # Display and behaviour
    shuffle_questions = Column(Boolean, nullable=False, default=True)
    shuffle_options = Column(Boolean, nullable=False, default=True)
    show_immediate_result = Column(Boolean, nullable=False, default=False)
    allow_revisit = Column(Boolean, nullable=False, default=True)
    show_correct_answers = Column(Boolean, nullable=False, default=False)
    allow_previous_navigation = Column(Boolean, nullable=False, default=True)
    result_release_time = Column(DateTime, nullable=True)
    leaderboard_enabled = Column(Boolean, nullable=False, default=False)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    questions = relationship(
        "QuizQuestion", back_populates="quiz", order_by="QuizQuestion.order",
        cascade="all, delete-orphan"
    )
    batches = relationship("QuizBatch", back_populates="quiz", cascade="all, delete-orphan")
    attempts = relationship("QuizAttempt", back_populates="quiz")
    course = relationship("Course")
    subject = relationship("Subject")

class QuizBatch(Base):
    __tablename__ = "quiz_batches"
    __table_args__ = (UniqueConstraint("quiz_id", "batch_id", name="uq_quiz_batch"),)

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False)

    quiz = relationship("Quiz", back_populates="batches")
    batch = relationship("Batch")

class QuizQuestion(Base):
    """Ordered link between a test and a question bank entry"""
    __tablename__ = "quiz_questions"
    __table_args__ = (UniqueConstraint("quiz_id", "question_id", name="uq_quiz_question"),)

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    order = Column(Integer, nullable=False, default=1)
    marks = Column(Float, nullable=True)

    quiz = relationship("Quiz", back_populates="questions")
    question = relationship("Question")

class QuizAttempt(Base):
    """One student's pass at a test"""
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        Index(
            "uq_attempt_completed", "user_id", "quiz_id", unique=True,
            postgresql_where=column("is_completed").is_(True),
            sqlite_where=column("is_completed").is_(True)
        ),
        Index(
            "uq_attempt_in_progress", "user_id", "quiz_id", unique=True,
            postgresql_where=column("is_completed").is_(False),
            sqlite_where=column("is_completed").is_(False)
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False, default=utcnow)
    submit_time = Column(DateTime, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=False)
    score = Column(Float, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    wrong_answers = Column(Integer, nullable=False, default=0)
    unattempted = Column(Integer, nullable=False, default=0)
    accuracy = Column(Float, nullable=False, default=0)
    time_taken_seconds = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    quiz = relationship("Quiz", back_populates="attempts")
    user = relationship("User")
    answers = relationship("UserAnswer", back_populates="attempt", cascade="all, delete-orphan")

class UserAnswer(Base):
    __tablename__ = "user_answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_attempt_question"),)

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    answer = Column(Text, nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    marks_obtained = Column(Float, nullable=False, default=0)
    answered_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    attempt = relationship("QuizAttempt", back_populates="answers")
    question = relationship("Question")
