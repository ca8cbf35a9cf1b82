"""
Highlight projection for ContractLens renderers.

Every view that decorates a document (the analysis page, the editor, the
side panel preview) consumes the same RenderSpan list produced here instead of
deriving its own severity colors or searching for highlight text.

Contract for renderers:

* Spans are half-open ``[start, end)`` offsets into the analyzed text and are
  ordered by ``start``, then ``stack_order``, then longer spans first.
* Spans may overlap. Nothing is merged: two highlights covering the same
  characters are two spans, and user annotations are separate spans layered
  over highlights.
* Paint spans in ascending ``stack_order``: low (0), medium (1), high (2),
  the selected highlight (3), then annotations (4). The highest severity is
  therefore drawn last and wins visually. ``flatten_spans`` already returns
  the active spans of each segment in that order (outermost first).
* ``source_kind`` + ``source_index`` point back into the highlight and
  annotation lists passed to ``project``; keep those lists unchanged between
  rendering the document and rendering the side panel so indices line up.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from contractlens.services.highlight_reconciler import Highlight, Severity

# Configure logging
logger = logging.getLogger(__name__)

HIGH_RISK_THRESHOLD = 7
MEDIUM_RISK_THRESHOLD = 4

HIGHLIGHT_STYLES = {
    Severity.LOW: "risk-low",
    Severity.MEDIUM: "risk-medium",
    Severity.HIGH: "risk-high",
}
SELECTED_STYLE = "risk-selected"

ANNOTATION_STYLES = {
    "note": "annotation-note",
    "question": "annotation-question",
    "important": "annotation-important",
}
DEFAULT_ANNOTATION_STYLE = ANNOTATION_STYLES["note"]

SEVERITY_STACK_ORDER = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
}
SELECTED_STACK_ORDER = 3
ANNOTATION_STACK_ORDER = 4


class SpanSource(str, Enum):
    """What a render span was derived from."""
    HIGHLIGHT = "highlight"
    ANNOTATION = "annotation"


@dataclass(frozen=True)
class RenderSpan:
    """A decorated range of the document, derived on every render."""
    start: int
    end: int
    source_kind: SpanSource
    source_index: int
    style: str
    stack_order: int
    severity: Optional[Severity] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "sourceKind": self.source_kind.value,
            "sourceIndex": self.source_index,
            "style": self.style,
            "stackOrder": self.stack_order,
            "severity": self.severity.value if self.severity is not None else None,
        }


@dataclass(frozen=True)
class Segment:
    """A contiguous run of text covered by the same set of spans."""
    start: int
    end: int
    text: str
    span_indices: Tuple[int, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "spans": list(self.span_indices),
        }


def severity_bucket(highlight: Highlight) -> Severity:
    """Severity if the model supplied one, otherwise bucketed from riskLevel."""
    if highlight.severity is not None:
        return highlight.severity
    if highlight.risk_level >= HIGH_RISK_THRESHOLD:
        return Severity.HIGH
    if highlight.risk_level >= MEDIUM_RISK_THRESHOLD:
        return Severity.MEDIUM
    return Severity.LOW


def _clamp(start: int, end: int, document_length: int) -> Optional[Tuple[int, int]]:
    start = min(max(start, 0), document_length)
    end = min(max(end, 0), document_length)
    if end <= start:
        return None
    return start, end


def _annotation_style(annotation: Any) -> str:
    annotation_type = getattr(annotation, "annotation_type", None)
    annotation_type = getattr(annotation_type, "value", annotation_type)
    return ANNOTATION_STYLES.get(annotation_type, DEFAULT_ANNOTATION_STYLE)


def project(
    document_length: int,
    highlights: Sequence[Highlight],
    annotations: Sequence[Any] = (),
    selected_index: Optional[int] = None,
) -> List[RenderSpan]:
    """
    Compute the spans a renderer decorates the document with.

    Args:
        document_length (int): Length of the analyzed text
        highlights (Sequence[Highlight]): Reconciled highlights, in list order
        annotations (Sequence): User annotations exposing ``text_start``,
            ``text_end`` and ``annotation_type``
        selected_index (int, optional): Index of the focused highlight; only
            its style changes

    Returns:
        List[RenderSpan]: Spans ordered for rendering
    """
    spans = []

    for index, highlight in enumerate(highlights):
        bounds = _clamp(highlight.start_position, highlight.end_position, document_length)
        if bounds is None:
            logger.warning(f"Skipping highlight {index} with empty range after clamping")
            continue

        bucket = severity_bucket(highlight)
        if selected_index == index:
            style, stack_order = SELECTED_STYLE, SELECTED_STACK_ORDER
        else:
            style, stack_order = HIGHLIGHT_STYLES[bucket], SEVERITY_STACK_ORDER[bucket]

        spans.append(RenderSpan(
            start=bounds[0],
            end=bounds[1],
            source_kind=SpanSource.HIGHLIGHT,
            source_index=index,
            style=style,
            stack_order=stack_order,
            severity=bucket,
        ))

    # Annotations may predate a document change, so clamp instead of trusting them
    for index, annotation in enumerate(annotations):
        bounds = _clamp(annotation.text_start, annotation.text_end, document_length)
        if bounds is None:
            logger.info(f"Annotation {index} falls outside the document and was not rendered")
            continue

        spans.append(RenderSpan(
            start=bounds[0],
            end=bounds[1],
            source_kind=SpanSource.ANNOTATION,
            source_index=index,
            style=_annotation_style(annotation),
            stack_order=ANNOTATION_STACK_ORDER,
        ))

    spans.sort(key=lambda span: (span.start, span.stack_order, -span.end, span.source_index))
    return spans


def flatten_spans(document: str, spans: Sequence[RenderSpan]) -> List[Segment]:
    """
    Split the document at every span boundary.

    Each returned segment lists the indices (into ``spans``) of the spans that
    cover it, lowest stack order first, so a renderer can open nested marks
    in that order. Segments cover the whole document, including text with no
    decoration.
    """
    boundaries = {0, len(document)}
    for span in spans:
        boundaries.add(span.start)
        boundaries.add(span.end)
    ordered = sorted(boundaries)

    segments = []
    for start, end in zip(ordered, ordered[1:]):
        active = [
            index for index, span in enumerate(spans)
            if span.start <= start and span.end >= end
        ]
        active.sort(key=lambda index: (spans[index].stack_order, index))
        segments.append(Segment(start=start, end=end, text=document[start:end], span_indices=tuple(active)))
    return segments


def resolve_span_source(span: RenderSpan, highlights: Sequence[Highlight], annotations: Sequence[Any]):
    """Map a clicked span back to the Highlight or annotation it came from."""
    source = highlights if span.source_kind is SpanSource.HIGHLIGHT else annotations
    if 0 <= span.source_index < len(source):
        return source[span.source_index]
    return None
