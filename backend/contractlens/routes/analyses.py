"""
Analysis routes for ContractLens.

Reading, rendering, exporting and deleting analyses, plus the user
annotations layered over them.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from contractlens.database import get_db
from contractlens.models.analysis import Analysis
from contractlens.models.annotation import AnnotationType, UserAnnotation
from contractlens.routes.auth import CurrentUser, get_current_user
from contractlens.routes.documents import get_analysis_service
from contractlens.services.analysis_service import AnalysisService

# Configure logging
logger = logging.getLogger(__name__)

# Initialize router
router = APIRouter()


# Pydantic models
class AnnotationCreate(BaseModel):
    """Annotation creation model; offsets are half-open into the analysis text."""
    textStart: int = Field(ge=0)
    textEnd: int
    commentText: str = Field(min_length=1)
    annotationType: AnnotationType = AnnotationType.NOTE

    @model_validator(mode="after")
    def check_range(self):
        if self.textStart >= self.textEnd:
            raise ValueError("textStart must be less than textEnd")
        return self


class AnnotationUpdate(BaseModel):
    commentText: Optional[str] = Field(default=None, min_length=1)
    annotationType: Optional[AnnotationType] = None


def get_owned_analysis(db: Session, analysis_id: int, owner_id: str) -> Analysis:
    """
    Load an analysis owned by the caller.

    Raises:
        HTTPException: 404 for missing analyses and for other users' analyses
    """
    analysis = (
        db.query(Analysis)
        .filter(Analysis.id == analysis_id, Analysis.owner_id == owner_id)
        .first()
    )
    if not analysis:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not found")
    return analysis


def get_user_annotations(db: Session, analysis_id: int, owner_id: str):
    return (
        db.query(UserAnnotation)
        .filter(UserAnnotation.analysis_id == analysis_id, UserAnnotation.owner_id == owner_id)
        .order_by(UserAnnotation.created_at, UserAnnotation.id)
        .all()
    )


def get_owned_annotation(db: Session, analysis_id: int, annotation_id: int, owner_id: str) -> UserAnnotation:
    annotation = (
        db.query(UserAnnotation)
        .filter(
            UserAnnotation.id == annotation_id,
            UserAnnotation.analysis_id == analysis_id,
            UserAnnotation.owner_id == owner_id,
        )
        .first()
    )
    if not annotation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Annotation not found")
    return annotation


@router.get("/{analysis_id}")
async def get_analysis(
    analysis_id: int,
    include_content: bool = Query(False),
    include_annotations: bool = Query(False),
    include_chat: bool = Query(False),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Get an analysis.

    Args:
        analysis_id (int): Analysis ID
        include_content (bool): Include the analyzed document text
        include_annotations (bool): Include the caller's annotations
        include_chat (bool): Include the caller's chat conversation

    Returns:
        dict: Analysis data
    """
    analysis = get_owned_analysis(db, analysis_id, current_user.id)

    response = analysis.to_export_dict(include_content=include_content)
    document = analysis.document
    response["document"] = {
        "id": document.id,
        "filename": document.filename,
        "document_type": document.document_type.value,
        "created_at": document.created_at.isoformat() if document.created_at else None,
    }

    if include_annotations:
        response["userAnnotations"] = [
            annotation.to_dict() for annotation in get_user_annotations(db, analysis.id, current_user.id)
        ]

    if include_chat:
        conversation = next(
            (item for item in analysis.conversations if item.owner_id == current_user.id),
            None,
        )
        response["chatConversation"] = conversation.to_dict() if conversation else None

    return response


@router.get("/{analysis_id}/render")
async def render_analysis(
    analysis_id: int,
    selected: Optional[int] = Query(None, description="Index of the selected highlight"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    analysis_service: AnalysisService = Depends(get_analysis_service),
):
    """
    Project an analysis and the caller's annotations into render spans.

    Span ``sourceIndex`` values index into the ``highlights`` and
    ``annotations`` lists of the same response.
    """
    analysis = get_owned_analysis(db, analysis_id, current_user.id)
    annotations = get_user_annotations(db, analysis.id, current_user.id)

    view = analysis_service.build_render_view(analysis, annotations, selected_index=selected)
    return view.to_dict()


@router.get("/{analysis_id}/export")
async def export_analysis(
    analysis_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Export an analysis with the document text its offsets refer to."""
    analysis = get_owned_analysis(db, analysis_id, current_user.id)
    return analysis.to_export_dict(include_content=True)


@router.delete("/{analysis_id}")
async def delete_analysis(
    analysis_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete an analysis with its annotations and chat conversations."""
    analysis = get_owned_analysis(db, analysis_id, current_user.id)

    db.delete(analysis)
    db.commit()

    logger.info(f"Analysis {analysis_id} deleted by {current_user.id}")
    return {"success": True, "message": "Analysis and all associated data deleted successfully"}


# Annotation endpoints
@router.post("/{analysis_id}/annotations", status_code=status.HTTP_201_CREATED)
async def create_annotation(
    analysis_id: int,
    annotation_data: AnnotationCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Attach a note, question or flag to a range of the analyzed text."""
    analysis = get_owned_analysis(db, analysis_id, current_user.id)

    annotation = UserAnnotation(
        analysis_id=analysis.id,
        owner_id=current_user.id,
        text_start=annotation_data.textStart,
        text_end=annotation_data.textEnd,
        comment_text=annotation_data.commentText,
        annotation_type=annotation_data.annotationType,
    )
    db.add(annotation)
    db.commit()
    db.refresh(annotation)

    return {
        "success": True,
        "annotation": annotation.to_dict(),
        "message": "Annotation added successfully",
    }


@router.patch("/{analysis_id}/annotations/{annotation_id}")
async def update_annotation(
    analysis_id: int,
    annotation_id: int,
    annotation_data: AnnotationUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change an annotation's text or type; its range is fixed."""
    annotation = get_owned_annotation(db, analysis_id, annotation_id, current_user.id)

    if annotation_data.commentText is not None:
        annotation.comment_text = annotation_data.commentText
    if annotation_data.annotationType is not None:
        annotation.annotation_type = annotation_data.annotationType

    db.commit()
    db.refresh(annotation)

    return {
        "success": True,
        "annotation": annotation.to_dict(),
        "message": "Annotation updated successfully",
    }


@router.delete("/{analysis_id}/annotations/{annotation_id}")
async def delete_annotation(
    analysis_id: int,
    annotation_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    annotation = get_owned_annotation(db, analysis_id, annotation_id, current_user.id)

    db.delete(annotation)
    db.commit()

    return {"success": True, "message": "Annotation deleted successfully"}
