"""
Whole-analysis validation for model output.

The Analysis Requestor returns one untrusted JSON object. validate_analysis()
checks the required top-level fields field by field and either returns
AnalysisOk with a strongly-typed ValidatedAnalysis, or SchemaError listing
every field that was missing or malformed. Nothing is coerced.

Individual highlights and AI comments never fail the analysis; they are
repaired or dropped and reported.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from contractlens.services.highlight_reconciler import (
    Highlight,
    HighlightReconciler,
    Rejection,
    Severity,
    parse_enum,
    is_number,
)

# Configure logging
logger = logging.getLogger(__name__)

RISK_AXES = ("termination", "liability", "intellectualProperty", "payment", "renewal")


class CommentType(str, Enum):
    """Kinds of contextual AI comments."""
    WARNING = "warning"
    INFO = "info"
    SUGGESTION = "suggestion"


@dataclass(frozen=True)
class FieldError:
    """One field-level reason an analysis was rejected."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class AIComment:
    """A contextual note anchored to a single document offset."""
    position: int
    text: str
    type: CommentType
    severity: Severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "text": self.text,
            "type": self.type.value,
            "severity": self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIComment":
        return cls(
            position=data["position"],
            text=data["text"],
            type=CommentType(data["type"]),
            severity=Severity(data["severity"]),
        )


@dataclass
class ValidatedAnalysis:
    """Typed view of an analysis that passed validation."""
    summary: str
    key_obligations: List[str]
    risk_assessment: Dict[str, float]
    highlights: List[Highlight]
    ai_comments: List[AIComment]
    confidence_score: float
    document_structure: Dict[str, Any] = field(default_factory=lambda: {"sections": []})
    plain_english_explanations: Dict[str, str] = field(default_factory=dict)
    rejections: List[Rejection] = field(default_factory=list)
    dropped_comments: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AnalysisOk:
    analysis: ValidatedAnalysis
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class SchemaError:
    field_errors: List[FieldError]
    ok: ClassVar[bool] = False


ValidationOutcome = Union[AnalysisOk, SchemaError]


def _check_top_level(raw: Dict[str, Any]) -> List[FieldError]:
    errors = []

    summary = raw.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        errors.append(FieldError("summary", "missing or invalid summary"))

    obligations = raw.get("keyObligations")
    if not isinstance(obligations, list):
        errors.append(FieldError("keyObligations", "missing or invalid keyObligations array"))
    else:
        for index, obligation in enumerate(obligations):
            if not isinstance(obligation, str):
                errors.append(FieldError(f"keyObligations[{index}]", "must be a string"))

    risk = raw.get("riskAssessment")
    if not isinstance(risk, dict):
        errors.append(FieldError("riskAssessment", "missing or invalid riskAssessment object"))
    else:
        for axis in RISK_AXES:
            value = risk.get(axis)
            if not is_number(value) or not 0 <= value <= 10:
                errors.append(FieldError(f"riskAssessment.{axis}", "must be number between 0-10"))

    if not isinstance(raw.get("highlightedSections"), list):
        errors.append(FieldError("highlightedSections", "missing or invalid highlightedSections array"))

    confidence = raw.get("confidenceScore")
    if not is_number(confidence) or not 0 <= confidence <= 100:
        errors.append(FieldError("confidenceScore", "must be number between 0-100"))

    return errors


def _validate_comments(raw_comments: Any, document_length: int):
    comments = []
    dropped = []

    if raw_comments is None:
        return comments, dropped
    if not isinstance(raw_comments, list):
        dropped.append("aiComments: not an array")
        return comments, dropped

    for index, raw in enumerate(raw_comments):
        label = f"aiComments[{index}]"
        if not isinstance(raw, dict):
            dropped.append(f"{label}: not an object")
            continue

        position = raw.get("position")
        if isinstance(position, bool) or not isinstance(position, int) or not 0 <= position <= document_length:
            dropped.append(f"{label}: position must be an offset within the document")
            continue

        text = raw.get("text")
        if not isinstance(text, str) or not text.strip():
            dropped.append(f"{label}: missing text")
            continue

        comment_type = parse_enum(CommentType, raw.get("type"))
        severity = parse_enum(Severity, raw.get("severity"))
        if comment_type is None or severity is None:
            dropped.append(f"{label}: unknown type or severity")
            continue

        comments.append(AIComment(position=position, text=text, type=comment_type, severity=severity))

    return comments, dropped


def _document_structure(raw_structure: Any) -> Dict[str, Any]:
    if isinstance(raw_structure, dict) and isinstance(raw_structure.get("sections"), list):
        return raw_structure
    return {"sections": []}


def _explanations(raw_explanations: Any) -> Dict[str, str]:
    if not isinstance(raw_explanations, dict):
        return {}
    return {key: value for key, value in raw_explanations.items() if isinstance(value, str)}


def validate_analysis(
    raw: Any,
    document: str,
    reconciler: Optional[HighlightReconciler] = None,
) -> ValidationOutcome:
    """
    Validate a parsed model response against the document it describes.

    Args:
        raw: Parsed JSON from the model (expected to be an object)
        document (str): The exact text the model analyzed
        reconciler (HighlightReconciler, optional): Reconciler to use for
            highlightedSections; defaults to first-occurrence relocation

    Returns:
        AnalysisOk | SchemaError: Tagged validation outcome
    """
    if not isinstance(raw, dict):
        return SchemaError([FieldError("analysis", "response must be a JSON object")])

    errors = _check_top_level(raw)
    if errors:
        logger.error(f"Analysis failed schema validation with {len(errors)} field errors")
        return SchemaError(errors)

    reconciler = reconciler or HighlightReconciler()
    reconciliation = reconciler.reconcile(document, raw["highlightedSections"])

    comments, dropped_comments = _validate_comments(raw.get("aiComments"), len(document))
    for reason in dropped_comments:
        logger.warning(f"Dropped AI comment: {reason}")

    analysis = ValidatedAnalysis(
        summary=raw["summary"],
        key_obligations=list(raw["keyObligations"]),
        risk_assessment={axis: raw["riskAssessment"][axis] for axis in RISK_AXES},
        highlights=reconciliation.highlights,
        ai_comments=comments,
        confidence_score=raw["confidenceScore"],
        document_structure=_document_structure(raw.get("documentStructure")),
        plain_english_explanations=_explanations(raw.get("plainEnglishExplanations")),
        rejections=reconciliation.rejections,
        dropped_comments=dropped_comments,
    )
    return AnalysisOk(analysis)
