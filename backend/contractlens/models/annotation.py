"""
User annotation model for ContractLens.

Author: ContractLens Team
Version: 1.0.0
"""

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from contractlens.database import Base


class AnnotationType(str, enum.Enum):
    NOTE = "note"
    QUESTION = "question"
    IMPORTANT = "important"


class UserAnnotation(Base):
    """A user note anchored to a ``[text_start, text_end)`` range of an analysis."""

    __tablename__ = "user_annotations"
    __table_args__ = (
        CheckConstraint("text_start < text_end", name="ck_user_annotations_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    analysis_id = Column(Integer, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    text_start = Column(Integer, nullable=False)
    text_end = Column(Integer, nullable=False)
    comment_text = Column(Text, nullable=False)
    annotation_type = Column(Enum(AnnotationType), nullable=False, default=AnnotationType.NOTE)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    analysis = relationship("Analysis", back_populates="annotations")

    def to_dict(self):
        return {
            "id": self.id,
            "analysisId": self.analysis_id,
            "textStart": self.text_start,
            "textEnd": self.text_end,
            "commentText": self.comment_text,
            "annotationType": self.annotation_type.value if self.annotation_type else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
