"""
Tests for projecting highlights and annotations into render spans.
"""

from types import SimpleNamespace

import pytest

from contractlens.services.highlight_projector import (
    ANNOTATION_STACK_ORDER,
    SELECTED_STACK_ORDER,
    SELECTED_STYLE,
    SpanSource,
    flatten_spans,
    project,
    resolve_span_source,
    severity_bucket,
)
from contractlens.services.highlight_reconciler import Highlight, HighlightType, Severity

DOCUMENT = "The term is 12 months. Liability is capped at $500."


def highlight(start, end, risk_level=5, severity=None):
    return Highlight(
        text=DOCUMENT[start:end],
        start_position=start,
        end_position=end,
        type=HighlightType.GENERAL,
        risk_level=risk_level,
        severity=severity,
    )


def annotation(start, end, annotation_type="note"):
    return SimpleNamespace(text_start=start, text_end=end, annotation_type=annotation_type)


class TestSeverityBucket:
    """Style derivation from severity and riskLevel."""

    @pytest.mark.parametrize(
        "risk_level, expected",
        [(0, Severity.LOW), (3.9, Severity.LOW), (4, Severity.MEDIUM), (6.5, Severity.MEDIUM),
         (7, Severity.HIGH), (10, Severity.HIGH)],
    )
    def test_from_risk_level(self, risk_level, expected):
        assert severity_bucket(highlight(0, 3, risk_level=risk_level)) is expected

    def test_explicit_severity_wins(self):
        assert severity_bucket(highlight(0, 3, risk_level=9, severity=Severity.LOW)) is Severity.LOW


class TestProject:
    """Span geometry, ordering and back references."""

    def test_spans_carry_back_references(self):
        highlights = [highlight(23, 51, risk_level=8), highlight(0, 8, risk_level=2)]
        spans = project(len(DOCUMENT), highlights)

        assert [(span.start, span.end) for span in spans] == [(0, 8), (23, 51)]
        for span in spans:
            source = resolve_span_source(span, highlights, [])
            assert (source.start_position, source.end_position) == (span.start, span.end)

    def test_overlapping_highlights_of_different_severity_both_kept(self):
        highlights = [highlight(0, 21, severity=Severity.LOW), highlight(0, 21, severity=Severity.HIGH)]
        spans = project(len(DOCUMENT), highlights)

        assert len(spans) == 2
        assert {span.style for span in spans} == {"risk-low", "risk-high"}
        # Higher severity stacks above lower severity
        assert spans[0].severity is Severity.LOW
        assert spans[1].severity is Severity.HIGH
        assert spans[1].stack_order > spans[0].stack_order

    def test_annotations_layered_over_highlights(self):
        highlights = [highlight(0, 21, severity=Severity.HIGH)]
        annotations = [annotation(4, 8, "question")]
        spans = project(len(DOCUMENT), highlights, annotations)

        kinds = [span.source_kind for span in spans]
        assert kinds == [SpanSource.HIGHLIGHT, SpanSource.ANNOTATION]
        assert spans[1].style == "annotation-question"
        assert spans[1].stack_order == ANNOTATION_STACK_ORDER
        assert spans[1].severity is None

    def test_selected_index_changes_style_only(self):
        highlights = [highlight(0, 8, severity=Severity.LOW), highlight(23, 51, severity=Severity.HIGH)]
        plain = project(len(DOCUMENT), highlights)
        selected = project(len(DOCUMENT), highlights, selected_index=0)

        assert [(s.start, s.end, s.source_index) for s in plain] == [(s.start, s.end, s.source_index) for s in selected]
        assert selected[0].style == SELECTED_STYLE
        assert selected[0].stack_order == SELECTED_STACK_ORDER
        assert selected[0].severity is Severity.LOW
        assert selected[1].style == "risk-high"

    def test_sorted_by_start_then_stack_order_then_longer_first(self):
        highlights = [
            highlight(10, 20, severity=Severity.HIGH),
            highlight(0, 5, severity=Severity.HIGH),
            highlight(0, 10, severity=Severity.HIGH),
            highlight(0, 5, severity=Severity.LOW),
        ]
        spans = project(len(DOCUMENT), highlights)

        assert [span.source_index for span in spans] == [3, 2, 1, 0]

    def test_annotation_past_end_is_clamped(self):
        spans = project(len(DOCUMENT), [], [annotation(40, 500)])

        assert (spans[0].start, spans[0].end) == (40, len(DOCUMENT))

    def test_negative_annotation_start_is_clamped(self):
        spans = project(len(DOCUMENT), [], [annotation(-5, 3)])

        assert (spans[0].start, spans[0].end) == (0, 3)

    def test_annotation_entirely_outside_is_omitted(self):
        spans = project(len(DOCUMENT), [], [annotation(100, 120), annotation(0, 3)])

        assert len(spans) == 1
        assert spans[0].source_index == 1

    def test_unknown_annotation_type_uses_note_style(self):
        spans = project(len(DOCUMENT), [], [annotation(0, 3, "doodle")])

        assert spans[0].style == "annotation-note"

    def test_empty_inputs(self):
        assert project(0, [], []) == []

    def test_deterministic(self):
        highlights = [highlight(0, 21, severity=Severity.LOW), highlight(5, 30, risk_level=7)]
        annotations = [annotation(2, 9)]

        assert project(len(DOCUMENT), highlights, annotations) == project(len(DOCUMENT), highlights, annotations)

    def test_resolve_out_of_range_index(self):
        span = project(len(DOCUMENT), [highlight(0, 3)])[0]

        assert resolve_span_source(span, [], []) is None


class TestFlattenSpans:
    """Offset-sliced segments for renderers."""

    def test_segments_cover_document(self):
        highlights = [highlight(0, 8, severity=Severity.LOW), highlight(4, 21, severity=Severity.HIGH)]
        spans = project(len(DOCUMENT), highlights, [annotation(12, 14)])

        segments = flatten_spans(DOCUMENT, spans)

        assert "".join(segment.text for segment in segments) == DOCUMENT
        assert segments[0].start == 0
        assert segments[-1].end == len(DOCUMENT)
        for left, right in zip(segments, segments[1:]):
            assert left.end == right.start

    def test_active_spans_listed_in_stack_order(self):
        highlights = [highlight(0, 21, severity=Severity.HIGH), highlight(0, 21, severity=Severity.LOW)]
        spans = project(len(DOCUMENT), highlights, [annotation(0, 21)])

        segments = flatten_spans(DOCUMENT, spans)

        covered = segments[0]
        assert covered.text == DOCUMENT[:21]
        orders = [spans[index].stack_order for index in covered.span_indices]
        assert orders == sorted(orders)
        assert len(covered.span_indices) == 3
        assert segments[1].span_indices == ()

    def test_no_spans_is_one_plain_segment(self):
        segments = flatten_spans(DOCUMENT, [])

        assert len(segments) == 1
        assert segments[0].text == DOCUMENT
        assert segments[0].to_dict()["spans"] == []
