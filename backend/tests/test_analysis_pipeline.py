"""
Tests for the extraction, model and validation pipeline.
"""

import asyncio
import time

import pytest

from contractlens.agents.analysis_pipeline import AnalysisPipeline
from contractlens.config import settings
from contractlens.exceptions import (
    DocumentExtractionError,
    DocumentTooLargeError,
    ModelResponseError,
    ModelTransportError,
    SchemaValidationError,
)
from contractlens.llm_client import CompletionResult
from contractlens.services.analysis_prompt import LEGAL_ANALYSIS_SYSTEM_PROMPT, parse_model_output

from conftest import FakeCompletion, build_analysis


def run(pipeline, text, file_type="txt"):
    content = text.encode("utf-8") if isinstance(text, str) else text
    return asyncio.run(pipeline.run(content, file_type))


class TestPipelineRun:
    """End-to-end runs with a fake model."""

    def test_successful_run(self, contract_text, fake_completion):
        result = run(AnalysisPipeline(completion_fn=fake_completion), contract_text)

        assert result.parsed_document.text == contract_text
        assert len(result.analysis.highlights) == 2
        assert result.model == settings.llm_model
        assert result.usage == {"total_tokens": 42}
        assert result.processing_time >= 0

        call = fake_completion.calls[0]
        assert call["response_format"] == {"type": "json_object"}
        assert call["messages"][0] == {"role": "system", "content": LEGAL_ANALYSIS_SYSTEM_PROMPT}
        assert contract_text in call["messages"][1]["content"]

    def test_highlights_relocated_against_extracted_text(self, contract_text):
        raw = build_analysis(contract_text)
        raw["highlightedSections"][0]["startPosition"] = 0
        raw["highlightedSections"][0]["endPosition"] = 4

        result = run(AnalysisPipeline(completion_fn=FakeCompletion(raw)), contract_text)

        highlight = result.analysis.highlights[0]
        assert contract_text[highlight.start_position:highlight.end_position] == highlight.text

    def test_schema_error_carries_field_errors(self, contract_text):
        raw = build_analysis(contract_text)
        del raw["riskAssessment"]["payment"]

        with pytest.raises(SchemaValidationError) as excinfo:
            run(AnalysisPipeline(completion_fn=FakeCompletion(raw)), contract_text)

        assert [error.field for error in excinfo.value.field_errors] == ["riskAssessment.payment"]
        assert excinfo.value.stage == "validation"

    def test_invalid_json_reply(self, contract_text):
        with pytest.raises(ModelResponseError):
            run(AnalysisPipeline(completion_fn=FakeCompletion("I could not analyze this.")), contract_text)

    def test_transport_error_propagates(self, contract_text):
        completion = FakeCompletion(ModelTransportError("rate limited", status_code=429))

        with pytest.raises(ModelTransportError) as excinfo:
            run(AnalysisPipeline(completion_fn=completion), contract_text)

        assert excinfo.value.status_code == 429

    def test_extraction_failure_skips_model(self, fake_completion):
        with pytest.raises(DocumentExtractionError):
            run(AnalysisPipeline(completion_fn=fake_completion), "   ")

        assert fake_completion.calls == []

    def test_document_too_large(self, contract_text, fake_completion):
        pipeline = AnalysisPipeline(completion_fn=fake_completion, max_document_tokens=10)

        with pytest.raises(DocumentTooLargeError):
            run(pipeline, contract_text)

        assert fake_completion.calls == []

    def test_model_timeout(self, contract_text):
        def slow_completion(**kwargs):
            time.sleep(0.5)
            return CompletionResult(content="{}")

        pipeline = AnalysisPipeline(completion_fn=slow_completion, llm_timeout=0.05)

        with pytest.raises(ModelTransportError, match="did not respond"):
            run(pipeline, contract_text)

    def test_long_documents_use_large_model(self):
        document = "The supplier shall deliver goods. " * 1700
        completion = FakeCompletion(build_analysis(document, highlights=[]))

        result = run(AnalysisPipeline(completion_fn=completion), document)

        assert result.model == settings.llm_large_model
        assert completion.calls[0]["model"] == settings.llm_large_model


class TestParseModelOutput:
    """Reply parsing ahead of validation."""

    def test_plain_json(self):
        assert parse_model_output('{"summary": "ok"}') == {"summary": "ok"}

    def test_fenced_json(self):
        assert parse_model_output('```json\n{"summary": "ok"}\n```') == {"summary": "ok"}

    @pytest.mark.parametrize("reply", ["", "   ", "not json", "[1, 2, 3]"])
    def test_unusable_replies(self, reply):
        with pytest.raises(ModelResponseError):
            parse_model_output(reply)
