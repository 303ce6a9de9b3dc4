from typing import Dict, List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload
from app.errors import NotFoundError, ValidationError
from app.models.assessments import Quiz, QuizAttempt, TestStatus
from app.models.organization import Course, Batch
from app.models.questions import Question
from app.models.user import User, UserRole, StudentProfile, STAFF_ROLES
from app.models.videos import Video
from app.schemas.admin import StudentCreate, StudentUpdate, StaffCreate, StaffUpdate
from app.services.auth_service import auth_service
from app.utils.pagination import paginate
import logging

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "Email already exists, try another email"

class AdminService:
    """Student and staff accounts"""

    @staticmethod
    def _ensure_email_free(db: Session, email: str, exclude_id: Optional[int] = None) -> str:
        email = email.strip().lower()
        query = db.query(User.id).filter(func.lower(User.email) == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ValidationError(DUPLICATE_EMAIL)
        return email

    @staticmethod
    def _check_placement(db: Session, batch_id: Optional[int], course_id: Optional[int]) -> Optional[int]:
        """Validate batch/course ids; returns the course implied by the batch"""
        if course_id is not None and not db.query(Course.id).filter(Course.id == course_id).first():
            raise NotFoundError("Course not found")
        if batch_id is not None:
            batch = db.query(Batch).filter(Batch.id == batch_id).first()
            if not batch:
                raise NotFoundError("Batch not found")
            return course_id if course_id is not None else batch.course_id
        return course_id

    # Students

    @staticmethod
    def create_student(db: Session, data: StudentCreate) -> Tuple[User, str]:
        """Create a student with a generated password; returns (user, temporary_password)"""
        email = AdminService._ensure_email_free(db, data.email)
        course_id = AdminService._check_placement(db, data.batch_id, data.course_id)
        temporary_password = auth_service.generate_temporary_password()
        try:
            user = User(
                email=email,
                password_hash=auth_service.get_password_hash(temporary_password),
                full_name=data.full_name.strip(),
                phone_number=data.phone_number,
                role=UserRole.STUDENT,
                is_active=True
            )
            user.student_profile = StudentProfile(
                batch_id=data.batch_id,
                course_id=course_id,
                enrollment_number=data.enrollment_number
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"Student {user.id} created")
            return user, temporary_password
        except Exception as e:
            logger.error(f"Error creating student: {str(e)}")
            db.rollback()
            raise

    @staticmethod
    def list_students(db: Session, page: int = 1, limit: int = 20, search: Optional[str] = None,
                      batch_id: Optional[int] = None, course_id: Optional[int] = None,
                      is_active: Optional[bool] = None):
        query = db.query(User).outerjoin(StudentProfile, StudentProfile.user_id == User.id).options(
            joinedload(User.student_profile)
        ).filter(User.role == UserRole.STUDENT)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(User.full_name).like(pattern),
                func.lower(User.email).like(pattern),
                func.lower(StudentProfile.enrollment_number).like(pattern)
            ))
        if batch_id is not None:
            query = query.filter(StudentProfile.batch_id == batch_id)
        if course_id is not None:
            query = query.filter(StudentProfile.course_id == course_id)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        return paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)

    @staticmethod
    def get_student(db: Session, student_id: int) -> User:
        student = db.query(User).filter(User.id == student_id, User.role == UserRole.STUDENT).first()
        if not student:
            raise NotFoundError("Student not found")
        return student

    @staticmethod
    def update_student(db: Session, student_id: int, data: StudentUpdate) -> User:
        student = AdminService.get_student(db, student_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email"):
            student.email = AdminService._ensure_email_free(db, changes["email"], exclude_id=student_id)
        for field in ("full_name", "phone_number", "is_active"):
            if changes.get(field) is not None:
                setattr(student, field, changes[field])

        profile = student.student_profile or StudentProfile(user_id=student.id)
        if "batch_id" in changes or "course_id" in changes:
            batch_id = changes.get("batch_id", profile.batch_id)
            course_id = changes.get("course_id", profile.course_id)
            profile.course_id = AdminService._check_placement(db, batch_id, course_id)
            profile.batch_id = batch_id
        if "enrollment_number" in changes:
            profile.enrollment_number = changes["enrollment_number"]
        student.student_profile = profile

        db.commit()
        db.refresh(student)
        logger.info(f"Student {student_id} updated: {sorted(changes)}")
        return student

    @staticmethod
    def delete_student(db: Session, student_id: int) -> None:
        student = AdminService.get_student(db, student_id)
        try:
            attempts = db.query(QuizAttempt).filter(QuizAttempt.user_id == student_id).all()
            for attempt in attempts:
                db.delete(attempt)
            db.delete(student)
            db.commit()
            logger.info(f"Student {student_id} deleted")
        except Exception as e:
            logger.error(f"Error deleting student {student_id}: {str(e)}")
            db.rollback()
            raise

    @staticmethod
    def bulk_disable_students(db: Session, student_ids: List[int]) -> int:
        if not student_ids:
            raise ValidationError("Student IDs are required")
        updated = db.query(User).filter(
            User.id.in_(student_ids), User.role == UserRole.STUDENT
        ).update({User.is_active: False}, synchronize_session=False)
        db.commit()
        logger.info(f"Disabled {updated} students")
        return updated

    # Staff

    @staticmethod
    def create_staff(db: Session, data: StaffCreate) -> Tuple[User, str]:
        if data.role not in STAFF_ROLES:
            raise ValidationError("Staff role must be ADMIN or TEACHER")
        email = AdminService._ensure_email_free(db, data.email)
        password = data.password or auth_service.generate_temporary_password()
        user = User(
            email=email,
            password_hash=auth_service.get_password_hash(password),
            full_name=data.full_name.strip(),
            phone_number=data.phone_number,
            role=data.role,
            is_active=True
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Staff member {user.id} created as {user.role.value}")
        return user, password

    @staticmethod
    def list_staff(db: Session, page: int = 1, limit: int = 20, search: Optional[str] = None,
                   role: Optional[UserRole] = None):
        query = db.query(User).filter(User.role.in_(STAFF_ROLES))
        if role is not None:
            query = query.filter(User.role == role)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(func.lower(User.full_name).like(pattern), func.lower(User.email).like(pattern)))
        return paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)

    @staticmethod
    def get_staff(db: Session, staff_id: int) -> User:
        staff = db.query(User).filter(User.id == staff_id, User.role.in_(STAFF_ROLES)).first()
        if not staff:
            raise NotFoundError("Staff member not found")
        return staff

    @staticmethod
    def update_staff(db: Session, staff_id: int, data: StaffUpdate) -> User:
        staff = AdminService.get_staff(db, staff_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "role" in changes and changes["role"] not in STAFF_ROLES:
            raise ValidationError("Staff role must be ADMIN or TEACHER")
        if "email" in changes:
            changes["email"] = AdminService._ensure_email_free(db, changes["email"], exclude_id=staff_id)
        for field, value in changes.items():
            setattr(staff, field, value)
        db.commit()
        db.refresh(staff)
        return staff

    @staticmethod
    def delete_staff(db: Session, staff_id: int, acting_user_id: int) -> None:
        staff = AdminService.get_staff(db, staff_id)
        if staff.id == acting_user_id:
            raise ValidationError("You cannot delete your own account")
        db.delete(staff)
        db.commit()
        logger.info(f"Staff member {staff_id} deleted")

    @staticmethod
    def dashboard(db: Session) -> Dict[str, int]:
        return {
            "students": db.query(User).filter(User.role == UserRole.STUDENT).count(),
            "active_students": db.query(User).filter(
                User.role == UserRole.STUDENT, User.is_active.is_(True)
            ).count(),
            "staff": db.query(User).filter(User.role.in_(STAFF_ROLES)).count(),
            "courses": db.query(Course).count(),
            "batches": db.query(Batch).count(),
            "questions": db.query(Question).count(),
            "tests": db.query(Quiz).count(),
            "live_tests": db.query(Quiz).filter(Quiz.status == TestStatus.IN_PROGRESS).count(),
            "videos": db.query(Video).count()
        }

admin_service = AdminService()
