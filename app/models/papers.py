from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Float, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow

class QuestionPaper(Base):
    """Printable paper assembled from question bank entries under one QP code"""
    __tablename__ = "question_papers"

    id = Column(Integer, primary_key=True, index=True)
    paper_code = Column(String(150), unique=True, nullable=False)
    paper_name = Column(String(255), nullable=False)
    qp_code_id = Column(Integer, ForeignKey("qp_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(Text)
    total_questions = Column(Integer, nullable=False, default=0)
    total_marks = Column(Float, nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=True)
    difficulty_distribution = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    qp_code = relationship("QPCode")
    questions = relationship(
        "QuestionPaperQuestion", back_populates="paper", cascade="all, delete-orphan",
        order_by="QuestionPaperQuestion.question_number"
    )

class QuestionPaperQuestion(Base):
    __tablename__ = "question_paper_questions"
    __table_args__ = (UniqueConstraint("paper_id", "question_id", name="uq_paper_question"),)

    id = Column(Integer, primary_key=True, index=True)
    paper_id = Column(Integer, ForeignKey("question_papers.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    question_number = Column(Integer, nullable=False)
    marks = Column(Float, nullable=False, default=1)

    paper = relationship("QuestionPaper", back_populates="questions")
    question = relationship("Question")

class QPCodeUsage(Base):
    """Audit trail of what happened to papers under a QP code"""
    __tablename__ = "qp_code_usage_history"

    id = Column(Integer, primary_key=True, index=True)
    qp_code_id = Column(Integer, ForeignKey("qp_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    # kept after the paper itself is deleted
    paper_id = Column(Integer, nullable=True, index=True)
    action_type = Column(String(20), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow)
