from typing import List, Optional
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session
from app.errors import NotFoundError, ValidationError
from app.models.materials import MaterialBatch, MaterialType, StudyMaterial
from app.models.organization import Batch, Course, Subject
from app.models.user import StudentProfile, User, UserRole
from app.schemas.materials import MaterialCreate, MaterialUpdate
from app.utils.pagination import paginate
from app.utils.timeutils import utcnow
import logging
import os

logger = logging.getLogger(__name__)

EXTENSION_TYPES = {
    ".pdf": MaterialType.PDF,
    ".ppt": MaterialType.PPT,
    ".pptx": MaterialType.PPT,
    ".doc": MaterialType.DOC,
    ".docx": MaterialType.DOC,
    ".png": MaterialType.IMAGE,
    ".jpg": MaterialType.IMAGE,
    ".jpeg": MaterialType.IMAGE,
    ".gif": MaterialType.IMAGE,
    ".mp4": MaterialType.VIDEO,
}

VIDEO_HOSTS = ("youtube.com", "youtu.be", "vimeo.com")


def infer_material_type(file_url: str, file_name: Optional[str] = None) -> MaterialType:
    """Guess the type from a video host or the file extension"""
    if any(host in file_url.lower() for host in VIDEO_HOSTS):
        return MaterialType.VIDEO
    name = (file_name or file_url).split("?")[0]
    return EXTENSION_TYPES.get(os.path.splitext(name)[1].lower(), MaterialType.OTHER)


class MaterialService:

    @staticmethod
    def _visible(db: Session, user: User):
        """Students see published material for their course, narrowed to their batch when batches are assigned"""
        query = db.query(StudyMaterial)
        if user.role != UserRole.STUDENT:
            return query
        query = query.filter(StudyMaterial.is_published.is_(True))
        profile = db.query(StudentProfile).filter(StudentProfile.user_id == user.id).first()
        course_id = profile.course_id if profile else None
        batch_id = profile.batch_id if profile else None
        if course_id is not None:
            query = query.filter(or_(StudyMaterial.course_id == course_id, StudyMaterial.course_id.is_(None)))
        assigned = select(MaterialBatch.material_id)
        if batch_id is None:
            return query.filter(~StudyMaterial.id.in_(assigned))
        mine = select(MaterialBatch.material_id).where(MaterialBatch.batch_id == batch_id)
        return query.filter(or_(~StudyMaterial.id.in_(assigned), StudyMaterial.id.in_(mine)))

    @staticmethod
    def list_materials(db: Session, user: User, page: int = 1, limit: int = 20, search: Optional[str] = None,
                       file_type: Optional[MaterialType] = None, course_id: Optional[int] = None,
                       subject_id: Optional[int] = None, batch_id: Optional[int] = None):
        query = MaterialService._visible(db, user)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(or_(
                func.lower(StudyMaterial.title).like(pattern),
                func.lower(StudyMaterial.description).like(pattern)
            ))
        if file_type is not None:
            query = query.filter(StudyMaterial.file_type == file_type)
        if course_id is not None:
            query = query.filter(StudyMaterial.course_id == course_id)
        if subject_id is not None:
            query = query.filter(StudyMaterial.subject_id == subject_id)
        if batch_id is not None:
            query = query.filter(StudyMaterial.id.in_(
                select(MaterialBatch.material_id).where(MaterialBatch.batch_id == batch_id)
            ))
        return paginate(query.order_by(StudyMaterial.created_at.desc(), StudyMaterial.id.desc()), page, limit)

    @staticmethod
    def get_material(db: Session, user: User, material_id: int) -> StudyMaterial:
        material = MaterialService._visible(db, user).filter(StudyMaterial.id == material_id).first()
        if not material:
            raise NotFoundError("Material not found")
        return material

    @staticmethod
    def _get(db: Session, material_id: int) -> StudyMaterial:
        material = db.query(StudyMaterial).filter(StudyMaterial.id == material_id).first()
        if not material:
            raise NotFoundError("Material not found")
        return material

    @staticmethod
    def _check_references(db: Session, course_id: Optional[int], subject_id: Optional[int]) -> None:
        if course_id is not None and not db.query(Course.id).filter(Course.id == course_id).first():
            raise NotFoundError("Course not found")
        if subject_id is not None and not db.query(Subject.id).filter(Subject.id == subject_id).first():
            raise NotFoundError("Subject not found")

    @staticmethod
    def _replace_batches(db: Session, material: StudyMaterial, batch_ids: List[int]) -> None:
        batch_ids = list(dict.fromkeys(batch_ids))
        if batch_ids:
            found = {row.id for row in db.query(Batch.id).filter(Batch.id.in_(batch_ids)).all()}
            missing = [batch_id for batch_id in batch_ids if batch_id not in found]
            if missing:
                raise NotFoundError(f"Batches not found: {missing}")
        kept = [link for link in material.batches if link.batch_id in batch_ids]
        linked = {link.batch_id for link in kept}
        material.batches = kept + [MaterialBatch(batch_id=batch_id) for batch_id in batch_ids if batch_id not in linked]

    @staticmethod
    def create_material(db: Session, data: MaterialCreate, uploaded_by: Optional[int] = None) -> StudyMaterial:
        file_url = (data.file_url or "").strip()
        if not file_url:
            raise ValidationError("Either a file or YouTube URL is required")
        MaterialService._check_references(db, data.course_id, data.subject_id)
        try:
            material = StudyMaterial(
                **data.model_dump(exclude={"batch_ids", "file_url", "file_type"}),
                file_url=file_url,
                file_type=data.file_type or infer_material_type(file_url, data.file_name),
                uploaded_by=uploaded_by
            )
            MaterialService._replace_batches(db, material, data.batch_ids)
            db.add(material)
            db.commit()
            db.refresh(material)
        except Exception as e:
            logger.error(f"Error creating material: {str(e)}")
            db.rollback()
            raise
        logger.info(f"Material {material.id} created by {uploaded_by}")
        return material

    @staticmethod
    def update_material(db: Session, material_id: int, data: MaterialUpdate) -> StudyMaterial:
        material = MaterialService._get(db, material_id)
        changes = data.model_dump(exclude_unset=True)
        batch_ids = changes.pop("batch_ids", None)
        MaterialService._check_references(db, changes.get("course_id"), changes.get("subject_id"))
        for field in ("title", "file_url", "file_type", "is_published"):
            if field in changes and changes[field] is None:
                changes.pop(field)
        if "file_url" in changes and not changes["file_url"].strip():
            raise ValidationError("Either a file or YouTube URL is required")
        try:
            for field, value in changes.items():
                setattr(material, field, value)
            if batch_ids is not None:
                MaterialService._replace_batches(db, material, batch_ids)
            material.updated_at = utcnow()
            db.commit()
            db.refresh(material)
        except Exception as e:
            logger.error(f"Error updating material {material_id}: {str(e)}")
            db.rollback()
            raise
        logger.info(f"Material {material_id} updated: {sorted(changes)}")
        return material

    @staticmethod
    def set_published(db: Session, material_id: int, is_published: bool) -> StudyMaterial:
        material = MaterialService._get(db, material_id)
        material.is_published = is_published
        db.commit()
        db.refresh(material)
        logger.info(f"Material {material_id} {'published' if is_published else 'unpublished'}")
        return material

    @staticmethod
    def assign_batches(db: Session, material_id: int, batch_ids: List[int]) -> StudyMaterial:
        """Replace the batch assignment; an empty list opens the material to the whole course"""
        material = MaterialService._get(db, material_id)
        try:
            MaterialService._replace_batches(db, material, batch_ids)
            db.commit()
            db.refresh(material)
        except Exception:
            db.rollback()
            raise
        return material

    @staticmethod
    def batch_assignments(db: Session, material_id: int) -> List[Batch]:
        material = MaterialService._get(db, material_id)
        return [link.batch for link in material.batches]

    @staticmethod
    def batches_for_assignment(db: Session, course_id: Optional[int] = None) -> List[Batch]:
        query = db.query(Batch).filter(Batch.is_active.is_(True))
        if course_id is not None:
            query = query.filter(Batch.course_id == course_id)
        return query.order_by(Batch.name).all()

    @staticmethod
    def delete_material(db: Session, material_id: int) -> None:
        material = MaterialService._get(db, material_id)
        db.delete(material)
        db.commit()
        logger.info(f"Material {material_id} deleted")

material_service = MaterialService()
