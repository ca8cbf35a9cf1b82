"""
Document model for ContractLens.

Author: ContractLens Team
Version: 1.0.0
"""

import enum
from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import relationship

from contractlens.database import Base


class DocumentStatus(str, enum.Enum):
    """Lifecycle of an uploaded document: uploaded -> processing -> analyzed|error."""
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    ANALYZED = "analyzed"
    ERROR = "error"


class DocumentType(str, enum.Enum):
    """Supported source formats."""
    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


class Document(Base):
    """An uploaded contract owned by one user."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    filename = Column(String(512), nullable=False)
    file_path = Column(String(1024), nullable=False)
    file_size = Column(Integer, nullable=True)
    file_type = Column(String(255), nullable=True)
    document_type = Column(Enum(DocumentType), nullable=False)
    status = Column(Enum(DocumentStatus), nullable=False, default=DocumentStatus.UPLOADED)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    analyses = relationship(
        "Analysis",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="Analysis.created_at.desc()",
    )

    def mark_processing(self):
        """Claim the document for an analysis run."""
        self.status = DocumentStatus.PROCESSING
        self.error_message = None
        self.updated_at = datetime.utcnow()

    def mark_analyzed(self):
        self.status = DocumentStatus.ANALYZED
        self.error_message = None
        self.updated_at = datetime.utcnow()

    def mark_error(self, message: str):
        self.status = DocumentStatus.ERROR
        self.error_message = message
        self.updated_at = datetime.utcnow()

    def is_processing_stale(self, max_age_seconds: int) -> bool:
        """
        Whether a processing flag has outlived any plausible analysis run.

        A crashed worker can leave the flag set; once it is older than the
        analysis timeout the document may be submitted again.
        """
        if self.status != DocumentStatus.PROCESSING or self.updated_at is None:
            return False
        return datetime.utcnow() - self.updated_at > timedelta(seconds=max_age_seconds)

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "filename": self.filename,
            "file_size": self.file_size,
            "file_type": self.file_type,
            "document_type": self.document_type.value if self.document_type else None,
            "status": self.status.value if self.status else None,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
