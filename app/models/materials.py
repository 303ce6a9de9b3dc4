from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.utils.timeutils import utcnow
import enum

class MaterialType(str, enum.Enum):
    PDF = "PDF"
    PPT = "PPT"
    DOC = "DOC"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    OTHER = "OTHER"

class StudyMaterial(Base):
    """Reference to a study file or link; the file itself lives outside the API"""
    __tablename__ = "study_materials"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    file_url = Column(String, nullable=False)
    file_type = Column(Enum(MaterialType), nullable=False, default=MaterialType.OTHER)
    file_name = Column(String(255), nullable=True)
    file_size = Column(String(50), nullable=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True, index=True)
    is_published = Column(Boolean, nullable=False, default=False)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    batches = relationship("MaterialBatch", back_populates="material", cascade="all, delete-orphan")
    subject = relationship("Subject")

    @property
    def batch_ids(self):
        return sorted(link.batch_id for link in self.batches)

class MaterialBatch(Base):
    __tablename__ = "material_batches"
    __table_args__ = (UniqueConstraint("material_id", "batch_id", name="uq_material_batch"),)

    id = Column(Integer, primary_key=True, index=True)
    material_id = Column(Integer, ForeignKey("study_materials.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)

    material = relationship("StudyMaterial", back_populates="batches")
    batch = relationship("Batch")
