from typing import Dict, List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.errors import NotFoundError, ValidationError
from app.models.organization import Course, Subject, Batch
from app.models.user import StudentProfile, User, UserRole
from app.schemas.admin import (
    CourseCreate, CourseUpdate, BatchCreate, BatchUpdate, SubjectCreate, SubjectUpdate
)
from app.utils.pagination import paginate
from app.utils.timeutils import to_naive_utc
import logging

logger = logging.getLogger(__name__)

def _apply(instance, changes: dict) -> None:
    for field, value in changes.items():
        if field in ("start_date", "end_date"):
            value = to_naive_utc(value)
        setattr(instance, field, value)

class OrganizationService:
    """Courses, batches and subjects"""

    # Courses

    @staticmethod
    def list_courses(db: Session, page: int = 1, limit: int = 50, search: Optional[str] = None):
        query = db.query(Course)
        if search:
            query = query.filter(func.lower(Course.name).like(f"%{search.lower()}%"))
        return paginate(query.order_by(Course.name), page, limit)

    @staticmethod
    def get_course(db: Session, course_id: int) -> Course:
        course = db.query(Course).filter(Course.id == course_id).first()
        if not course:
            raise NotFoundError("Course not found")
        return course

    @staticmethod
    def course_counts(db: Session, course_id: int) -> Dict[str, int]:
        return {
            "batches": db.query(Batch).filter(Batch.course_id == course_id).count(),
            "subjects": db.query(Subject).filter(Subject.course_id == course_id).count(),
            "students": db.query(StudentProfile).filter(StudentProfile.course_id == course_id).count()
        }

    @staticmethod
    def _check_course_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
        query = db.query(Course.id).filter(func.lower(Course.name) == name.strip().lower())
        if exclude_id is not None:
            query = query.filter(Course.id != exclude_id)
        if query.first():
            raise ValidationError("Course with this name already exists")

    @staticmethod
    def create_course(db: Session, data: CourseCreate) -> Course:
        OrganizationService._check_course_name(db, data.name)
        course = Course(**data.model_dump())
        db.add(course)
        db.commit()
        db.refresh(course)
        logger.info(f"Course {course.id} created")
        return course

    @staticmethod
    def update_course(db: Session, course_id: int, data: CourseUpdate) -> Course:
        course = OrganizationService.get_course(db, course_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            OrganizationService._check_course_name(db, changes["name"], exclude_id=course_id)
        _apply(course, changes)
        db.commit()
        db.refresh(course)
        return course

    @staticmethod
    def delete_course(db: Session, course_id: int) -> None:
        course = OrganizationService.get_course(db, course_id)
        db.delete(course)
        db.commit()
        logger.info(f"Course {course_id} deleted")

    # Batches

    @staticmethod
    def list_batches(db: Session, page: int = 1, limit: int = 50, course_id: Optional[int] = None):
        query = db.query(Batch)
        if course_id is not None:
            query = query.filter(Batch.course_id == course_id)
        items, meta = paginate(query.order_by(Batch.name), page, limit)
        counts = dict(
            db.query(StudentProfile.batch_id, func.count(StudentProfile.id))
            .filter(StudentProfile.batch_id.in_([b.id for b in items]))
            .group_by(StudentProfile.batch_id).all()
        ) if items else {}
        return items, meta, counts

    @staticmethod
    def get_batch(db: Session, batch_id: int) -> Batch:
        batch = db.query(Batch).filter(Batch.id == batch_id).first()
        if not batch:
            raise NotFoundError("Batch not found")
        return batch

    @staticmethod
    def create_batch(db: Session, data: BatchCreate) -> Batch:
        if data.course_id is not None:
            OrganizationService.get_course(db, data.course_id)
        batch = Batch()
        _apply(batch, data.model_dump())
        db.add(batch)
        db.commit()
        db.refresh(batch)
        logger.info(f"Batch {batch.id} created")
        return batch

    @staticmethod
    def update_batch(db: Session, batch_id: int, data: BatchUpdate) -> Batch:
        batch = OrganizationService.get_batch(db, batch_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("course_id") is not None:
            OrganizationService.get_course(db, changes["course_id"])
        _apply(batch, changes)
        db.commit()
        db.refresh(batch)
        return batch

    @staticmethod
    def delete_batch(db: Session, batch_id: int) -> int:
        """Delete a batch, detaching its students first; returns how many were detached"""
        batch = OrganizationService.get_batch(db, batch_id)
        try:
            detached = db.query(StudentProfile).filter(StudentProfile.batch_id == batch_id).update(
                {StudentProfile.batch_id: None}, synchronize_session=False
            )
            db.delete(batch)
            db.commit()
            logger.info(f"Batch {batch_id} deleted, {detached} students detached")
            return detached
        except Exception as e:
            logger.error(f"Error deleting batch {batch_id}: {str(e)}")
            db.rollback()
            raise

    @staticmethod
    def set_batch_students(db: Session, batch_id: int, student_ids: List[int]) -> int:
        """Make `student_ids` exactly the members of the batch"""
        batch = OrganizationService.get_batch(db, batch_id)
        wanted = set(student_ids)
        profiles = db.query(StudentProfile).join(User, User.id == StudentProfile.user_id).filter(
            StudentProfile.user_id.in_(wanted), User.role == UserRole.STUDENT
        ).all() if wanted else []
        if len(profiles) != len(wanted):
            raise ValidationError("Some students do not exist")
        try:
            db.query(StudentProfile).filter(
                StudentProfile.batch_id == batch_id, ~StudentProfile.user_id.in_(wanted)
            ).update({StudentProfile.batch_id: None}, synchronize_session=False)
            for profile in profiles:
                profile.batch_id = batch_id
                if batch.course_id is not None:
                    profile.course_id = batch.course_id
            db.commit()
            logger.info(f"Batch {batch_id} now has {len(profiles)} students")
            return len(profiles)
        except Exception as e:
            logger.error(f"Error updating batch {batch_id} students: {str(e)}")
            db.rollback()
            raise

    # Subjects

    @staticmethod
    def list_subjects(db: Session, course_id: Optional[int] = None, search: Optional[str] = None) -> List[Subject]:
        query = db.query(Subject)
        if course_id is not None:
            query = query.filter(Subject.course_id == course_id)
        if search:
            query = query.filter(func.lower(Subject.name).like(f"%{search.lower()}%"))
        return query.order_by(Subject.name).all()

    @staticmethod
    def get_subject(db: Session, subject_id: int) -> Subject:
        subject = db.query(Subject).filter(Subject.id == subject_id).first()
        if not subject:
            raise NotFoundError("Subject not found")
        return subject

    @staticmethod
    def create_subject(db: Session, data: SubjectCreate) -> Subject:
        if data.course_id is not None:
            OrganizationService.get_course(db, data.course_id)
        subject = Subject(**data.model_dump())
        db.add(subject)
        db.commit()
        db.refresh(subject)
        logger.info(f"Subject {subject.id} created")
        return subject

    @staticmethod
    def update_subject(db: Session, subject_id: int, data: SubjectUpdate) -> Subject:
        subject = OrganizationService.get_subject(db, subject_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("course_id") is not None:
            OrganizationService.get_course(db, changes["course_id"])
        _apply(subject, changes)
        db.commit()
        db.refresh(subject)
        return subject

    @staticmethod
    def delete_subject(db: Session, subject_id: int) -> None:
        subject = OrganizationService.get_subject(db, subject_id)
        db.delete(subject)
        db.commit()
        logger.info(f"Subject {subject_id} deleted")

organization_service = OrganizationService()
