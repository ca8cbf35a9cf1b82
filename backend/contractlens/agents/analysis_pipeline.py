"""
Contract analysis pipeline for ContractLens.

A LangGraph workflow with three steps:

    extract_text -> request_analysis -> validate_analysis

Each step raises an AnalysisPipelineError subclass on failure, which aborts
the whole run; callers see the original exception from ``ainvoke``.

Author: ContractLens Team
Version: 1.0.0
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from langgraph.graph import END, StateGraph
from typing_extensions import TypedDict

from contractlens.config import settings
from contractlens.exceptions import DocumentTooLargeError, ModelTransportError, SchemaValidationError
from contractlens.llm_client import (
    CompletionResult,
    chat_completion,
    estimate_token_count,
    validate_token_limit,
)
from contractlens.services.analysis_prompt import (
    create_analysis_messages,
    estimate_analysis_complexity,
    parse_model_output,
)
from contractlens.services.analysis_validator import ValidatedAnalysis, validate_analysis
from contractlens.services.document_processor import DocumentProcessor, ParsedDocument
from contractlens.services.highlight_reconciler import HighlightReconciler

# Configure logging
logger = logging.getLogger(__name__)

CompletionFn = Callable[..., CompletionResult]


@dataclass
class PipelineResult:
    """Everything an analysis run produced."""
    parsed_document: ParsedDocument
    analysis: ValidatedAnalysis
    model: str
    usage: Dict[str, Any] = field(default_factory=dict)
    processing_time: float = 0.0


class PipelineState(TypedDict):
    """State passed between the pipeline nodes."""
    file_content: bytes
    file_type: str
    parsed_document: Optional[ParsedDocument]
    model: Optional[str]
    raw_analysis: Optional[Dict[str, Any]]
    usage: Dict[str, Any]
    analysis: Optional[ValidatedAnalysis]
    current_step: str


class AnalysisPipeline:
    """
    Runs one document through extraction, the model and validation.

    The completion function is injectable; it is called with ``messages``,
    ``model``, ``temperature``, ``max_tokens`` and ``response_format`` keyword
    arguments and must return a CompletionResult.
    """

    def __init__(
        self,
        completion_fn: Optional[CompletionFn] = None,
        document_processor: Optional[DocumentProcessor] = None,
        reconciler: Optional[HighlightReconciler] = None,
        llm_timeout: Optional[float] = None,
        max_document_tokens: Optional[int] = None,
    ):
        self.completion_fn = completion_fn or chat_completion
        self.document_processor = document_processor or DocumentProcessor()
        self.reconciler = reconciler or HighlightReconciler(
            strategy=settings.relocation_strategy,
            prefix_length=settings.relocation_prefix_length,
        )
        self.llm_timeout = llm_timeout or settings.llm_timeout_seconds
        self.max_document_tokens = max_document_tokens or settings.max_document_tokens
        self.graph = self._build_graph()

    def _build_graph(self):
        """Build the LangGraph workflow."""

        async def extract_text(state: PipelineState) -> Dict[str, Any]:
            parsed = await asyncio.to_thread(
                self.document_processor.parse_document,
                state["file_content"],
                state["file_type"],
            )

            if not validate_token_limit(parsed.text, self.max_document_tokens):
                raise DocumentTooLargeError(
                    f"Document is too large to analyze: about {estimate_token_count(parsed.text)} tokens "
                    f"(limit {self.max_document_tokens})"
                )

            logger.info(f"Extracted {parsed.metadata.get('word_count', 0)} words for analysis")
            return {"parsed_document": parsed, "current_step": "text_extracted"}

        async def request_analysis(state: PipelineState) -> Dict[str, Any]:
            text = state["parsed_document"].text
            complexity = estimate_analysis_complexity(text)
            logger.info(
                f"Requesting {complexity.complexity.value} complexity analysis "
                f"with {complexity.recommended_model}"
            )

            call = asyncio.to_thread(
                self.completion_fn,
                messages=create_analysis_messages(text),
                model=complexity.recommended_model,
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
                response_format={"type": "json_object"},
            )
            try:
                completion = await asyncio.wait_for(call, timeout=self.llm_timeout)
            except asyncio.TimeoutError as e:
                raise ModelTransportError(
                    f"Model did not respond within {self.llm_timeout:g} seconds"
                ) from e

            return {
                "model": complexity.recommended_model,
                "raw_analysis": parse_model_output(completion.content),
                "usage": completion.usage or {},
                "current_step": "analysis_received",
            }

        async def validate(state: PipelineState) -> Dict[str, Any]:
            outcome = validate_analysis(
                state["raw_analysis"],
                state["parsed_document"].text,
                reconciler=self.reconciler,
            )
            if not outcome.ok:
                raise SchemaValidationError(outcome.field_errors)
            return {"analysis": outcome.analysis, "current_step": "validated"}

        workflow = StateGraph(PipelineState)

        workflow.add_node("extract_text", extract_text)
        workflow.add_node("request_analysis", request_analysis)
        workflow.add_node("validate_analysis", validate)

        workflow.set_entry_point("extract_text")
        workflow.add_edge("extract_text", "request_analysis")
        workflow.add_edge("request_analysis", "validate_analysis")
        workflow.add_edge("validate_analysis", END)

        return workflow.compile()

    async def run(self, file_content: bytes, file_type: str) -> PipelineResult:
        """
        Analyze one document.

        Args:
            file_content (bytes): Raw uploaded file
            file_type (str): ``pdf``, ``docx`` or ``txt``

        Returns:
            PipelineResult: Parsed document, validated analysis and run info

        Raises:
            AnalysisPipelineError: From whichever step failed
        """
        start_time = time.time()

        initial_state = PipelineState(
            file_content=file_content,
            file_type=file_type,
            parsed_document=None,
            model=None,
            raw_analysis=None,
            usage={},
            analysis=None,
            current_step="initialized",
        )
        final_state = await self.graph.ainvoke(initial_state)

        processing_time = time.time() - start_time
        analysis = final_state["analysis"]
        logger.info(
            f"Analysis pipeline finished in {processing_time:.2f}s with "
            f"{len(analysis.highlights)} highlights and {len(analysis.rejections)} rejections"
        )

        return PipelineResult(
            parsed_document=final_state["parsed_document"],
            analysis=analysis,
            model=final_state["model"],
            usage=final_state["usage"],
            processing_time=processing_time,
        )
