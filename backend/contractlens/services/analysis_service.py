"""
Analysis service for ContractLens.

This module coordinates an analysis request end to end: it guards the
document's processing flag, runs the analysis pipeline, and persists the
result together with the exact text it was generated from.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from contractlens.agents.analysis_pipeline import AnalysisPipeline
from contractlens.config import settings
from contractlens.exceptions import AnalysisConflictError, AnalysisPipelineError
from contractlens.models.analysis import Analysis
from contractlens.models.annotation import UserAnnotation
from contractlens.models.document import Document, DocumentStatus
from contractlens.services.file_handler import FileHandler
from contractlens.services.highlight_projector import flatten_spans, project

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class RenderView:
    """Spans for one analysis plus the lists their back references index into."""
    spans: List[Dict[str, Any]]
    segments: List[Dict[str, Any]]
    highlights: List[Dict[str, Any]]
    annotations: List[Dict[str, Any]]
    comments: List[Dict[str, Any]]
    selected_index: Optional[int]
    document_length: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spans": self.spans,
            "segments": self.segments,
            "highlights": self.highlights,
            "annotations": self.annotations,
            "comments": self.comments,
            "selectedIndex": self.selected_index,
            "documentLength": self.document_length,
        }


class AnalysisService:
    """
    Service class for running and reading document analyses.
    """

    def __init__(
        self,
        pipeline: Optional[AnalysisPipeline] = None,
        file_handler: Optional[FileHandler] = None,
    ):
        """Initialize the analysis service."""
        self.pipeline = pipeline or AnalysisPipeline()
        self.file_handler = file_handler or FileHandler()

    def claim_document(self, db: Session, document: Document):
        """
        Move a document into ``processing`` or refuse a double submission.

        Raises:
            AnalysisConflictError: If another run still holds the flag
        """
        if document.status == DocumentStatus.PROCESSING:
            if not document.is_processing_stale(settings.analysis_timeout_seconds):
                logger.warning(f"Document {document.id} is already being analyzed")
                raise AnalysisConflictError(document.id)
            logger.warning(f"Reclaiming stale processing flag on document {document.id}")

        document.mark_processing()
        db.commit()

    async def analyze_document(self, db: Session, document: Document) -> Analysis:
        """
        Analyze a document and persist the result.

        The document always leaves this method as ``analyzed`` or ``error``.

        Args:
            db (Session): Database session
            document (Document): Document to analyze

        Returns:
            Analysis: The stored analysis

        Raises:
            AnalysisConflictError: If the document is already being analyzed
            AnalysisPipelineError: If any pipeline stage failed
        """
        self.claim_document(db, document)
        logger.info(f"Starting analysis of document {document.id}")

        try:
            content = self.file_handler.read_file(document.file_path)
            result = await self.pipeline.run(content, document.document_type.value)
        except AnalysisPipelineError as e:
            logger.error(f"Analysis of document {document.id} failed at {e.stage}: {e.message}")
            document.mark_error(e.message)
            db.commit()
            raise
        except Exception as e:
            logger.error(f"Unexpected error analyzing document {document.id}: {e}")
            document.mark_error("Analysis failed unexpectedly")
            db.commit()
            raise

        try:
            analysis = Analysis.from_validated(
                result.analysis,
                document_id=document.id,
                owner_id=document.owner_id,
                document_content=result.parsed_document.text,
                model=result.model,
                processing_time=result.processing_time,
            )
            db.add(analysis)
            document.mark_analyzed()
            db.commit()
        except Exception as e:
            logger.error(f"Failed to store analysis for document {document.id}: {e}")
            db.rollback()
            document.mark_error("Failed to store analysis")
            db.commit()
            raise
        db.refresh(analysis)

        logger.info(
            f"Analysis {analysis.id} stored for document {document.id} "
            f"({len(analysis.highlighted_sections)} highlights)"
        )
        return analysis

    def get_latest_analysis(self, db: Session, document_id: int) -> Optional[Analysis]:
        return (
            db.query(Analysis)
            .filter(Analysis.document_id == document_id)
            .order_by(Analysis.created_at.desc(), Analysis.id.desc())
            .first()
        )

    def build_render_view(
        self,
        analysis: Analysis,
        annotations: Sequence[UserAnnotation] = (),
        selected_index: Optional[int] = None,
    ) -> RenderView:
        """
        Project an analysis and its annotations into renderable spans.

        Args:
            analysis (Analysis): Stored analysis
            annotations (Sequence[UserAnnotation]): The viewer's annotations
            selected_index (int, optional): Highlight index to mark as selected

        Returns:
            RenderView: Spans, flattened segments, indexed sources and AI
                comments in document order
        """
        document = analysis.document_content or ""
        highlights = analysis.highlights()
        annotations = list(annotations)
        comments = sorted(analysis.comments(), key=lambda comment: comment.position)

        spans = project(len(document), highlights, annotations, selected_index=selected_index)
        segments = flatten_spans(document, spans)

        return RenderView(
            spans=[span.to_dict() for span in spans],
            segments=[segment.to_dict() for segment in segments],
            highlights=[highlight.to_dict() for highlight in highlights],
            annotations=[annotation.to_dict() for annotation in annotations],
            comments=[comment.to_dict() for comment in comments],
            selected_index=selected_index,
            document_length=len(document),
        )
