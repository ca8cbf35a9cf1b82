"""
Analysis model for ContractLens.

An Analysis row stores its own copy of the text it was generated from, so
every position in ``highlighted_sections``, ``ai_comments`` and the user
annotations layered on top refers to ``document_content`` and nothing else.
Only reconciled highlights are ever written here.

Author: ContractLens Team
Version: 1.0.0
"""

from datetime import datetime
from typing import List

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from contractlens.database import Base
from contractlens.services.analysis_validator import AIComment, ValidatedAnalysis
from contractlens.services.highlight_reconciler import Highlight


class Analysis(Base):
    """Result of one analysis run over a document."""

    __tablename__ = "analyses"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    summary = Column(Text, nullable=False)
    key_obligations = Column(JSON, nullable=False, default=list)
    risk_assessment = Column(JSON, nullable=False, default=dict)
    highlighted_sections = Column(JSON, nullable=False, default=list)
    ai_comments = Column(JSON, nullable=False, default=list)
    document_structure = Column(JSON, nullable=False, default=dict)
    plain_english_explanations = Column(JSON, nullable=False, default=dict)
    rejected_sections = Column(JSON, nullable=False, default=list)
    confidence_score = Column(Float, nullable=False)
    processing_time_seconds = Column(Float, nullable=True)
    ai_model_used = Column(String(255), nullable=True)
    document_content = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    document = relationship("Document", back_populates="analyses")
    annotations = relationship(
        "UserAnnotation",
        back_populates="analysis",
        cascade="all, delete-orphan",
        order_by="UserAnnotation.created_at",
    )
    conversations = relationship(
        "ChatConversation",
        back_populates="analysis",
        cascade="all, delete-orphan",
    )

    @classmethod
    def from_validated(
        cls,
        validated: ValidatedAnalysis,
        document_id: int,
        owner_id: str,
        document_content: str,
        model: str,
        processing_time: float,
    ) -> "Analysis":
        """Build a row from a validated analysis and the text it was checked against."""
        return cls(
            document_id=document_id,
            owner_id=owner_id,
            summary=validated.summary,
            key_obligations=validated.key_obligations,
            risk_assessment=validated.risk_assessment,
            highlighted_sections=[highlight.to_dict() for highlight in validated.highlights],
            ai_comments=[comment.to_dict() for comment in validated.ai_comments],
            document_structure=validated.document_structure,
            plain_english_explanations=validated.plain_english_explanations,
            rejected_sections=[rejection.to_dict() for rejection in validated.rejections],
            confidence_score=validated.confidence_score,
            processing_time_seconds=processing_time,
            ai_model_used=model,
            document_content=document_content,
        )

    def highlights(self) -> List[Highlight]:
        return [Highlight.from_dict(data) for data in self.highlighted_sections or []]

    def comments(self) -> List[AIComment]:
        return [AIComment.from_dict(data) for data in self.ai_comments or []]

    def summary_dict(self):
        """Short form used in document listings."""
        return {
            "id": self.id,
            "summary": self.summary,
            "confidenceScore": self.confidence_score,
            "processingTime": self.processing_time_seconds,
            "modelUsed": self.ai_model_used,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def to_export_dict(self, include_content: bool = True):
        """
        Serialize the analysis for API responses and exports.

        Highlights are written exactly as stored so that exporting and
        re-loading never shifts a position.
        """
        data = {
            "id": self.id,
            "documentId": self.document_id,
            "summary": self.summary,
            "keyObligations": self.key_obligations,
            "riskAssessment": self.risk_assessment,
            "highlightedSections": self.highlighted_sections,
            "aiComments": self.ai_comments,
            "documentStructure": self.document_structure,
            "plainEnglishExplanations": self.plain_english_explanations,
            "rejectedSections": self.rejected_sections,
            "confidenceScore": self.confidence_score,
            "processingTime": self.processing_time_seconds,
            "modelUsed": self.ai_model_used,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_content:
            data["documentContent"] = self.document_content
        return data
