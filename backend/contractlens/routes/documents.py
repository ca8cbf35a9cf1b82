"""
Document management routes for ContractLens.

This module handles contract upload, listing, deletion and the analysis
trigger.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from contractlens.database import get_db
from contractlens.exceptions import (
    AnalysisConflictError,
    DocumentExtractionError,
    DocumentTooLargeError,
    FileValidationError,
    ModelTransportError,
    SchemaValidationError,
)
from contractlens.models.document import Document, DocumentStatus, DocumentType
from contractlens.routes.auth import CurrentUser, get_current_user
from contractlens.services.analysis_service import AnalysisService
from contractlens.services.file_handler import FileHandler

# Configure logging
logger = logging.getLogger(__name__)

# Initialize router
router = APIRouter()

_file_handler: Optional[FileHandler] = None
_analysis_service: Optional[AnalysisService] = None


def get_file_handler() -> FileHandler:
    global _file_handler
    if _file_handler is None:
        _file_handler = FileHandler()
    return _file_handler


def get_analysis_service() -> AnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService(file_handler=get_file_handler())
    return _analysis_service


# Pydantic models
class DocumentResponse(BaseModel):
    """Document response model."""
    id: int
    filename: str
    file_size: Optional[int]
    file_type: Optional[str]
    document_type: str
    status: str
    error_message: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]
    latest_analysis: Optional[dict] = None


class DocumentUploadResponse(BaseModel):
    """Document upload response model."""
    message: str
    document: DocumentResponse


class DocumentListResponse(BaseModel):
    documents: List[DocumentResponse]
    total: int
    limit: int
    offset: int


def document_response(document: Document, latest_analysis=None) -> DocumentResponse:
    data = document.to_dict()
    data.pop("owner_id", None)
    return DocumentResponse(
        **data,
        latest_analysis=latest_analysis.summary_dict() if latest_analysis else None,
    )


def get_owned_document(db: Session, document_id: int, owner_id: str) -> Document:
    """
    Load a document owned by the caller.

    Raises:
        HTTPException: 404 for missing documents and for other users' documents
    """
    document = (
        db.query(Document)
        .filter(Document.id == document_id, Document.owner_id == owner_id)
        .first()
    )
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document


# Document endpoints
@router.post("/upload", response_model=DocumentUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    file_handler: FileHandler = Depends(get_file_handler),
):
    """
    Upload a contract for analysis.

    Args:
        file (UploadFile): PDF, DOCX or plain text file
        current_user (CurrentUser): Authenticated caller
        db (Session): Database session

    Returns:
        DocumentUploadResponse: The stored document

    Raises:
        HTTPException: 400 if the file fails validation
    """
    content = await file.read()

    try:
        document_type = file_handler.validate_upload(file.filename, file.content_type, content)
    except FileValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    file_path = file_handler.save_file(content, file.filename, current_user.id)

    try:
        document = Document(
            owner_id=current_user.id,
            filename=file.filename,
            file_path=file_path,
            file_size=len(content),
            file_type=file.content_type,
            document_type=DocumentType(document_type),
            status=DocumentStatus.UPLOADED,
        )
        db.add(document)
        db.commit()
        db.refresh(document)
    except Exception:
        # Remove the stored file if the row could not be written
        file_handler.delete_file(file_path)
        raise

    logger.info(f"Document {document.id} uploaded by {current_user.id}")
    return DocumentUploadResponse(
        message="Document uploaded successfully",
        document=document_response(document),
    )


@router.get("/", response_model=DocumentListResponse)
async def list_documents(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: Optional[DocumentStatus] = Query(None, alias="status"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the caller's documents, newest first."""
    query = db.query(Document).filter(Document.owner_id == current_user.id)
    if status_filter:
        query = query.filter(Document.status == status_filter)

    total = query.count()
    documents = (
        query.order_by(Document.created_at.desc(), Document.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    return DocumentListResponse(
        documents=[document_response(document) for document in documents],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    analysis_service: AnalysisService = Depends(get_analysis_service),
):
    """Get one document with a summary of its latest analysis."""
    document = get_owned_document(db, document_id, current_user.id)
    return document_response(document, analysis_service.get_latest_analysis(db, document.id))


@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    file_handler: FileHandler = Depends(get_file_handler),
):
    """
    Delete a document with its file, analyses, annotations and conversations.
    """
    document = get_owned_document(db, document_id, current_user.id)

    file_handler.delete_file(document.file_path)
    db.delete(document)
    db.commit()

    logger.info(f"Document {document_id} deleted by {current_user.id}")
    return {"message": "Document deleted successfully"}


@router.post("/{document_id}/analyze")
async def analyze_document(
    document_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    analysis_service: AnalysisService = Depends(get_analysis_service),
):
    """
    Run the analysis pipeline on a document.

    Returns:
        dict: The stored analysis

    Raises:
        HTTPException: 409 while another analysis runs, 422 for extraction or
            schema failures, 502 when the model could not be reached
    """
    document = get_owned_document(db, document_id, current_user.id)

    try:
        analysis = await analysis_service.analyze_document(db, document)
    except AnalysisConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except SchemaValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Analysis validation failed",
                "field_errors": [error.to_dict() for error in e.field_errors],
            },
        )
    except (DocumentExtractionError, DocumentTooLargeError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except ModelTransportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return {
        "success": True,
        "analysis": analysis.to_export_dict(include_content=False),
        "message": "Document analyzed successfully",
    }


@router.get("/{document_id}/analyze")
async def get_analysis_status(
    document_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    analysis_service: AnalysisService = Depends(get_analysis_service),
):
    """Report a document's status and its latest analysis, if any."""
    document = get_owned_document(db, document_id, current_user.id)
    latest = analysis_service.get_latest_analysis(db, document.id)

    return {
        "status": document.status.value,
        "error_message": document.error_message,
        "analysis": latest.summary_dict() if latest else None,
    }
