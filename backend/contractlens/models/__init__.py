"""
Database models package for ContractLens.

Importing this package registers every table on ``Base.metadata``.

Author: ContractLens Team
Version: 1.0.0
"""

from .document import Document, DocumentStatus, DocumentType
from .analysis import Analysis
from .annotation import AnnotationType, UserAnnotation
from .chat import ChatConversation

__all__ = [
    "Document",
    "DocumentStatus",
    "DocumentType",
    "Analysis",
    "AnnotationType",
    "UserAnnotation",
    "ChatConversation",
]
