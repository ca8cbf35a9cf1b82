"""
Tests for highlight reconciliation against the analyzed text.
"""

import pytest

from contractlens.services.highlight_reconciler import (
    Highlight,
    HighlightReconciler,
    HighlightType,
    RelocationStrategy,
    RepairMethod,
    Severity,
    reconcile_highlights,
)

DOCUMENT = "The term is 12 months. Liability is capped at $500."


def candidate(text, start=0, end=None, **fields):
    data = {
        "text": text,
        "startPosition": start,
        "endPosition": len(text) if end is None else end,
        "riskLevel": 5,
        "type": "liability",
        "severity": "medium",
        "comment": "",
        "suggestion": "",
    }
    data.update(fields)
    return data


def assert_slices_match(document, highlights):
    for highlight in highlights:
        assert 0 <= highlight.start_position < highlight.end_position <= len(document)
        assert document[highlight.start_position:highlight.end_position] == highlight.text


class TestResolutionOrder:
    """Each resolution step, in order."""

    def test_declared_positions_kept_when_they_match(self):
        result = reconcile_highlights(DOCUMENT, [candidate("The term", 0, 8)])

        assert result.highlights[0].start_position == 0
        assert result.highlights[0].end_position == 8
        assert result.repairs[0].method is RepairMethod.DECLARED
        assert result.relocated_count == 0

    def test_wrong_positions_relocated_to_exact_text(self):
        result = reconcile_highlights(DOCUMENT, [candidate("Liability is capped at $500.", 0, 5)])

        highlight = result.highlights[0]
        assert highlight.start_position == 23
        assert highlight.end_position == 51
        assert highlight.text == "Liability is capped at $500."
        assert result.repairs[0].method is RepairMethod.EXACT
        assert_slices_match(DOCUMENT, result.highlights)

    def test_prefix_relocation_rewrites_text_from_document(self):
        # Same first 30 characters as the document, different tail
        drifted = "The term is 12 months. Liabili-ty is limited"
        result = reconcile_highlights(DOCUMENT, [candidate(drifted, 3, 9)])

        highlight = result.highlights[0]
        assert highlight.start_position == 0
        assert highlight.end_position == len(drifted)
        assert highlight.text == DOCUMENT[:len(drifted)]
        assert result.repairs[0].method is RepairMethod.PREFIX
        assert_slices_match(DOCUMENT, result.highlights)

    def test_prefix_relocation_clamps_end_to_document_length(self):
        drifted = "months. Liability is capped at $500. Extra"
        result = reconcile_highlights(DOCUMENT, [candidate(drifted, 0, 5)])

        highlight = result.highlights[0]
        assert highlight.start_position == 15
        assert highlight.end_position == len(DOCUMENT)
        assert highlight.text == "months. Liability is capped at $500."

    def test_prefix_skips_leading_whitespace(self):
        document = "Recitals." + " " * 40 + "\nLiability is capped at $500. Notices follow."
        padded = " " * 35 + "Liability is capped at $500. No notice is required."
        result = reconcile_highlights(document, [candidate(padded, 0, 5)])

        highlight = result.highlights[0]
        assert highlight.start_position == document.index("Liability")
        assert highlight.text.startswith("Liability is capped at $500.")
        assert result.repairs[0].method is RepairMethod.PREFIX
        assert_slices_match(document, result.highlights)

    def test_custom_prefix_length(self):
        reconciler = HighlightReconciler(prefix_length=8)
        result = reconciler.reconcile(DOCUMENT, [candidate("The term lasts forever", 40, 45)])

        assert result.highlights[0].text == DOCUMENT[:len("The term lasts forever")]

    def test_text_not_found_is_rejected_with_reason(self):
        candidates = [
            candidate("The term", 0, 8),
            candidate("Indemnification survives termination.", 0, 10),
            candidate("Liability is capped at $500.", 23, 51),
        ]
        result = reconcile_highlights(DOCUMENT, candidates)

        assert len(result.highlights) == len(candidates) - 1
        assert len(result.rejections) == 1
        assert result.rejections[0].index == 1
        assert "not found" in result.rejections[0].reason

    def test_output_preserves_candidate_order(self):
        candidates = [
            candidate("Liability is capped at $500.", 0, 0),
            candidate("The term", 0, 8),
        ]
        result = reconcile_highlights(DOCUMENT, candidates)

        assert [h.text for h in result.highlights] == ["Liability is capped at $500.", "The term"]


class TestStructuralValidation:
    """Candidates rejected before any matching."""

    @pytest.mark.parametrize(
        "bad_candidate, reason",
        [
            ("not a dict", "not an object"),
            (candidate("", 0, 0), "empty text"),
            (candidate("   ", 0, 3), "empty text"),
            (candidate("The term", 0, 8, riskLevel=11), "riskLevel"),
            (candidate("The term", 0, 8, riskLevel=-1), "riskLevel"),
            (candidate("The term", 0, 8, riskLevel="high"), "riskLevel"),
            (candidate("The term", 0, 8, riskLevel=True), "riskLevel"),
            (candidate("The term", 0, 8, type="indemnity"), "unknown type"),
            (candidate("The term", 0, 8, severity="critical"), "unknown severity"),
        ],
    )
    def test_rejected(self, bad_candidate, reason):
        result = reconcile_highlights(DOCUMENT, [bad_candidate])

        assert result.highlights == []
        assert reason in result.rejections[0].reason

    def test_reversed_positions_with_unlocatable_text_are_dropped(self):
        result = reconcile_highlights(DOCUMENT, [candidate("No such clause exists here", 30, 10)])

        assert result.highlights == []
        assert len(result.rejections) == 1

    def test_reversed_positions_are_only_a_hint(self):
        result = reconcile_highlights(DOCUMENT, [candidate("The term", 8, 0)])

        assert result.highlights[0].start_position == 0
        assert result.highlights[0].end_position == 8

    def test_out_of_range_positions_are_only_a_hint(self):
        result = reconcile_highlights(DOCUMENT, [candidate("$500.", 900, 1000)])

        assert DOCUMENT[result.highlights[0].start_position:result.highlights[0].end_position] == "$500."

    def test_severity_is_optional(self):
        data = candidate("The term", 0, 8)
        del data["severity"]
        result = reconcile_highlights(DOCUMENT, [data])

        assert result.highlights[0].severity is None

    def test_enum_values_are_case_insensitive(self):
        result = reconcile_highlights(DOCUMENT, [candidate("The term", 0, 8, type="Termination", severity="HIGH")])

        assert result.highlights[0].type is HighlightType.TERMINATION
        assert result.highlights[0].severity is Severity.HIGH

    def test_float_positions_accepted_as_hints(self):
        result = reconcile_highlights(DOCUMENT, [candidate("The term", 0.0, 8.0)])

        assert result.repairs[0].method is RepairMethod.DECLARED


class TestRelocationStrategy:
    """Choosing between repeated occurrences."""

    REPEATED = "Notice must be in writing. Notice must be in writing. Notice must be in writing."

    def test_first_occurrence_is_default(self):
        result = reconcile_highlights(self.REPEATED, [candidate("Notice", 60, 70)])

        assert result.highlights[0].start_position == 0

    def test_nearest_to_hint_picks_closest_occurrence(self):
        result = reconcile_highlights(
            self.REPEATED,
            [candidate("Notice", 60, 70)],
            strategy=RelocationStrategy.NEAREST_TO_HINT,
        )

        assert result.highlights[0].start_position == self.REPEATED.rindex("Notice")

    def test_nearest_to_hint_ties_go_to_earlier_occurrence(self):
        document = "ab--ab"
        # Occurrences at 0 and 4; hint 2 is equidistant
        result = reconcile_highlights(
            document,
            [candidate("ab", 2, 1)],
            strategy=RelocationStrategy.NEAREST_TO_HINT,
        )

        assert result.highlights[0].start_position == 0

    def test_nearest_to_hint_accepts_strategy_name(self):
        reconciler = HighlightReconciler(strategy="nearest_to_hint")

        assert reconciler.strategy is RelocationStrategy.NEAREST_TO_HINT

    def test_invalid_prefix_length(self):
        with pytest.raises(ValueError):
            HighlightReconciler(prefix_length=0)


class TestInvariants:
    """Properties that hold for every reconciliation."""

    def test_every_accepted_highlight_slices_back_to_its_text(self):
        candidates = [
            candidate("The term", 0, 8),
            candidate("12 months", 0, 3),
            candidate("Liability is capped at $500. And more words here.", 0, 1),
            candidate("The term is 12 months. Liability is something else entirely", 5, 2),
            candidate("missing", 0, 7),
        ]
        for strategy in RelocationStrategy:
            result = reconcile_highlights(DOCUMENT, candidates, strategy=strategy)
            assert len(result.highlights) + len(result.rejections) == len(candidates)
            assert_slices_match(DOCUMENT, result.highlights)

    def test_idempotent(self):
        candidates = [candidate("Liability is capped at $500.", 0, 5), candidate("gone", 0, 4)]

        first = reconcile_highlights(DOCUMENT, candidates)
        second = reconcile_highlights(DOCUMENT, candidates)

        assert first == second

    def test_inputs_not_mutated(self):
        data = candidate("Liability is capped at $500.", 0, 5)
        snapshot = dict(data)

        reconcile_highlights(DOCUMENT, [data])

        assert data == snapshot

    def test_zero_highlights_is_valid(self):
        result = reconcile_highlights(DOCUMENT, [])

        assert result.highlights == []
        assert result.rejections == []

    def test_highlight_dict_round_trip(self):
        result = reconcile_highlights(DOCUMENT, [candidate("The term", 0, 8)])
        highlight = result.highlights[0]

        assert Highlight.from_dict(highlight.to_dict()) == highlight
