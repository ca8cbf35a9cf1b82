"""
Highlight reconciliation for ContractLens.

The model is asked to copy the exact text of every risky passage it wants to
highlight, and to report where that text sits in the document. Both claims are
untrusted. This module turns each raw highlight candidate into a Highlight
whose positions are guaranteed to slice the document back to its text:

    document[highlight.start_position:highlight.end_position] == highlight.text

Resolution order per candidate, stopping at the first success:

1. Declared positions already slice to the text.
2. The full text is found verbatim in the document.
3. A bounded prefix of the text is found; positions are rebuilt from the
   match and the text is rewritten to what the document actually contains.
4. Otherwise the candidate is dropped and a Rejection is recorded.

When a phrase occurs more than once, the RelocationStrategy decides which
occurrence wins.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_PREFIX_LENGTH = 30


class HighlightType(str, Enum):
    """Legal risk areas a highlight can belong to."""
    TERMINATION = "termination"
    LIABILITY = "liability"
    INTELLECTUAL_PROPERTY = "intellectual_property"
    PAYMENT = "payment"
    RENEWAL = "renewal"
    GENERAL = "general"


class Severity(str, Enum):
    """Severity levels shared by highlights and AI comments."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RelocationStrategy(str, Enum):
    """How to choose between repeated occurrences of a highlight's text."""
    FIRST_OCCURRENCE = "first_occurrence"
    NEAREST_TO_HINT = "nearest_to_hint"


class RepairMethod(str, Enum):
    """Which resolution step produced a highlight's final positions."""
    DECLARED = "declared"
    EXACT = "exact"
    PREFIX = "prefix"


@dataclass(frozen=True)
class Highlight:
    """A reconciled highlight. Positions are half-open character offsets."""
    text: str
    start_position: int
    end_position: int
    type: HighlightType
    risk_level: float
    severity: Optional[Severity] = None
    comment: str = ""
    suggestion: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase names of the analysis JSON."""
        data = {
            "text": self.text,
            "startPosition": self.start_position,
            "endPosition": self.end_position,
            "type": self.type.value,
            "riskLevel": self.risk_level,
            "comment": self.comment,
            "suggestion": self.suggestion,
        }
        if self.severity is not None:
            data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Highlight":
        """Load a highlight previously produced by to_dict()."""
        severity = data.get("severity")
        return cls(
            text=data["text"],
            start_position=data["startPosition"],
            end_position=data["endPosition"],
            type=HighlightType(data["type"]),
            risk_level=data["riskLevel"],
            severity=Severity(severity) if severity is not None else None,
            comment=data.get("comment", ""),
            suggestion=data.get("suggestion", ""),
        )


@dataclass(frozen=True)
class Rejection:
    """A candidate that could not be turned into a valid highlight."""
    index: int
    reason: str

    def describe(self) -> str:
        return f"highlightedSections[{self.index}]: {self.reason}"

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "reason": self.reason}


@dataclass(frozen=True)
class Repair:
    """Records how an accepted candidate was resolved."""
    index: int
    method: RepairMethod


@dataclass
class ReconciliationResult:
    """Accepted highlights (candidate order preserved) plus what was dropped."""
    highlights: List[Highlight] = field(default_factory=list)
    rejections: List[Rejection] = field(default_factory=list)
    repairs: List[Repair] = field(default_factory=list)

    @property
    def relocated_count(self) -> int:
        return sum(1 for repair in self.repairs if repair.method is not RepairMethod.DECLARED)


class _CandidateRejected(Exception):
    pass


def is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _as_offset(value: Any) -> Optional[int]:
    """Interpret a declared position, or None when it is unusable as a hint."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


def parse_enum(enum_cls, value: Any):
    """Case-insensitive enum lookup; None when the value is not a member."""
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        return None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class HighlightReconciler:
    """
    Converts raw highlight candidates into trustworthy Highlights.

    The reconciler is a pure function of (document, candidates): it keeps no
    state between calls and never mutates its inputs, so it is safe to share
    across requests.
    """

    def __init__(
        self,
        strategy: RelocationStrategy = RelocationStrategy.FIRST_OCCURRENCE,
        prefix_length: int = DEFAULT_PREFIX_LENGTH,
    ):
        if prefix_length < 1:
            raise ValueError("prefix_length must be at least 1")
        self.strategy = RelocationStrategy(strategy)
        self.prefix_length = prefix_length

    def reconcile(self, document: str, candidates: Sequence[Any]) -> ReconciliationResult:
        """
        Reconcile every candidate against the document text.

        Args:
            document (str): The exact text the analysis was generated from
            candidates (Sequence): Raw highlightedSections entries from the model

        Returns:
            ReconciliationResult: Accepted highlights, rejections and repairs
        """
        result = ReconciliationResult()

        for index, candidate in enumerate(candidates):
            try:
                highlight, method = self._reconcile_candidate(document, candidate)
            except _CandidateRejected as rejected:
                rejection = Rejection(index=index, reason=str(rejected))
                result.rejections.append(rejection)
                logger.warning(f"Rejected highlight candidate: {rejection.describe()}")
                continue

            result.highlights.append(highlight)
            result.repairs.append(Repair(index=index, method=method))
            if method is not RepairMethod.DECLARED:
                logger.debug(f"Relocated highlightedSections[{index}] using {method.value} match")

        logger.info(
            f"Reconciled {len(candidates)} highlight candidates: "
            f"{len(result.highlights)} accepted ({result.relocated_count} relocated), "
            f"{len(result.rejections)} rejected"
        )
        return result

    def _reconcile_candidate(self, document: str, candidate: Any):
        if not isinstance(candidate, dict):
            raise _CandidateRejected("candidate is not an object")

        text = candidate.get("text")
        if not isinstance(text, str) or not text.strip():
            raise _CandidateRejected("missing or empty text")

        raw_type = candidate.get("type")
        highlight_type = parse_enum(HighlightType, raw_type)
        if highlight_type is None:
            raise _CandidateRejected(f"unknown type {raw_type!r}")

        raw_severity = candidate.get("severity")
        severity = None
        if raw_severity is not None:
            severity = parse_enum(Severity, raw_severity)
            if severity is None:
                raise _CandidateRejected(f"unknown severity {raw_severity!r}")

        risk_level = candidate.get("riskLevel")
        if not is_number(risk_level) or not 0 <= risk_level <= 10:
            raise _CandidateRejected(f"riskLevel must be a number between 0-10, got {risk_level!r}")

        start, end, text, method = self._locate(
            document,
            text,
            _as_offset(candidate.get("startPosition")),
            _as_offset(candidate.get("endPosition")),
        )

        if not 0 <= start < end <= len(document) or document[start:end] != text:
            raise _CandidateRejected(f"invalid range [{start}, {end}) after relocation")

        highlight = Highlight(
            text=text,
            start_position=start,
            end_position=end,
            type=highlight_type,
            risk_level=risk_level,
            severity=severity,
            comment=_as_text(candidate.get("comment")),
            suggestion=_as_text(candidate.get("suggestion")),
        )
        return highlight, method

    def _locate(self, document: str, text: str, start: Optional[int], end: Optional[int]):
        """Resolve positions for a candidate's text, returning (start, end, text, method)."""
        if (
            start is not None
            and end is not None
            and 0 <= start < end <= len(document)
            and document[start:end] == text
        ):
            return start, end, text, RepairMethod.DECLARED

        position = self._find_occurrence(document, text, start)
        if position != -1:
            return position, position + len(text), text, RepairMethod.EXACT

        # Prefix starts at the first non-blank character
        body = text.lstrip()
        prefix = body[:self.prefix_length]
        position = self._find_occurrence(document, prefix, start)
        if position != -1:
            new_end = min(position + len(body), len(document))
            return position, new_end, document[position:new_end], RepairMethod.PREFIX

        raise _CandidateRejected("text not found in document")

    def _find_occurrence(self, document: str, needle: str, hint: Optional[int]) -> int:
        """Find needle according to the relocation strategy; -1 when absent."""
        first = document.find(needle)
        if first == -1 or hint is None or self.strategy is RelocationStrategy.FIRST_OCCURRENCE:
            return first

        best = first
        best_distance = abs(first - hint)
        position = document.find(needle, first + 1)
        while position != -1:
            distance = abs(position - hint)
            if distance < best_distance:
                best, best_distance = position, distance
            elif position > hint:
                # Later occurrences only move further away
                break
            position = document.find(needle, position + 1)
        return best


def reconcile_highlights(
    document: str,
    candidates: Sequence[Any],
    strategy: RelocationStrategy = RelocationStrategy.FIRST_OCCURRENCE,
    prefix_length: int = DEFAULT_PREFIX_LENGTH,
) -> ReconciliationResult:
    """Convenience wrapper around HighlightReconciler.reconcile()."""
    return HighlightReconciler(strategy=strategy, prefix_length=prefix_length).reconcile(
        document, candidates
    )
