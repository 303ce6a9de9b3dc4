from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Float, Text
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow
import enum

class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"

STAFF_ROLES = (UserRole.ADMIN, UserRole.TEACHER)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    phone_number = Column(String, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.STUDENT)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Password reset by one-time code
    reset_otp = Column(String, nullable=True)
    reset_otp_expires = Column(DateTime, nullable=True)

    student_profile = relationship(
        "StudentProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )

class StudentProfile(Base):
    __tablename__ = "student_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="SET NULL"), nullable=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True)
    enrollment_number = Column(String, nullable=True, unique=True)
    address = Column(Text, nullable=True)
    emergency_contact = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    total_score = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="student_profile")
    batch = relationship("Batch", back_populates="students")
    course = relationship("Course")
