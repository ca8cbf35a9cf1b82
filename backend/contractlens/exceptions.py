"""
Exception types for the ContractLens analysis pipeline.

Pipeline-stage errors abort an analysis request and roll the document back to
a retryable state. Per-highlight problems are never raised; the reconciler
reports them as rejections instead.

Author: ContractLens Team
Version: 1.0.0
"""

from typing import List, Optional


class AnalysisPipelineError(Exception):
    """Base class for errors that abort a whole analysis request."""

    stage = "pipeline"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DocumentExtractionError(AnalysisPipelineError):
    """The uploaded file could not be turned into plain text."""

    stage = "extraction"


class DocumentTooLargeError(AnalysisPipelineError):
    """The extracted text exceeds the model's token budget."""

    stage = "extraction"


class ModelTransportError(AnalysisPipelineError):
    """The LLM request failed (timeout, rate limit, HTTP or network error)."""

    stage = "model"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ModelResponseError(ModelTransportError):
    """The LLM answered, but the body was not a usable JSON object."""


class SchemaValidationError(AnalysisPipelineError):
    """Required top-level analysis fields were missing or malformed."""

    stage = "validation"

    def __init__(self, field_errors: List):
        # FieldError instances from contractlens.services.analysis_validator
        self.field_errors = list(field_errors)
        joined = "; ".join(f"{error.field}: {error.message}" for error in self.field_errors)
        super().__init__(f"Analysis validation failed: {joined}")


class AnalysisConflictError(Exception):
    """A document was submitted while a previous analysis is still in flight."""

    def __init__(self, document_id: int):
        super().__init__(f"Document {document_id} is already being analyzed")
        self.document_id = document_id


class FileValidationError(Exception):
    """An upload was rejected before it reached storage."""
