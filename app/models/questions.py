from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Float, Enum
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow
import enum

class QuestionType(str, enum.Enum):
    MCQ = "MCQ"
    TRUE_FALSE = "TRUE_FALSE"
    FILL_IN_THE_BLANK = "FILL_IN_THE_BLANK"
    MATCH = "MATCH"
    CHOICE_BASED = "CHOICE_BASED"

# Types whose answer may be submitted as an option key
OPTION_KEYED_TYPES = (QuestionType.MCQ, QuestionType.CHOICE_BASED)

class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"

class QPCode(Base):
    """Tag grouping question bank entries for paper assembly"""
    __tablename__ = "qp_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    questions = relationship("Question", back_populates="qp_code")

class Question(Base):
    """Reusable question bank entry"""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question_text = Column(Text, nullable=False)
    type = Column(Enum(QuestionType), nullable=False, default=QuestionType.MCQ)
    options = Column(JSON, nullable=True)
    left_side = Column(JSON, nullable=True)
    right_side = Column(JSON, nullable=True)
    correct_answer = Column(Text, nullable=False)
    explanation = Column(Text)
    marks = Column(Float, nullable=False, default=1)
    difficulty = Column(Enum(Difficulty), nullable=False, default=Difficulty.MEDIUM)
    topic = Column(String(255), nullable=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True)
    qp_code_id = Column(Integer, ForeignKey("qp_codes.id", ondelete="SET NULL"), nullable=True, index=True)
    usage_count = Column(Integer, nullable=False, default=0)
    last_used_date = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    qp_code = relationship("QPCode", back_populates="questions")
    subject = relationship("Subject")
