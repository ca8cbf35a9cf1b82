"""
Prompt construction and output parsing for contract analysis.

Author: ContractLens Team
Version: 1.0.0
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from langchain_core.exceptions import OutputParserException
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import PromptTemplate

from contractlens.config import Constants, settings
from contractlens.exceptions import ModelResponseError

# Configure logging
logger = logging.getLogger(__name__)

LEGAL_ANALYSIS_SYSTEM_PROMPT = """You are an expert legal document analyzer specializing in contract review and risk assessment. Analyze the contract you are given and return structured insights.

Requirements:
1. Every highlightedSections "text" value must be copied EXACTLY from the document, including punctuation and spacing. Never paraphrase it.
2. Focus on termination, liability, intellectual property, payment and renewal terms.
3. Keep each highlighted section to a meaningful phrase, sentence or short paragraph.
4. Give practical suggestions and plain English explanations.

Respond with a single JSON object with this structure:

{
  "summary": "Brief overview of the document and its purpose",
  "keyObligations": ["Key obligations for each party"],
  "riskAssessment": {
    "termination": 0-10,
    "liability": 0-10,
    "intellectualProperty": 0-10,
    "payment": 0-10,
    "renewal": 0-10
  },
  "highlightedSections": [
    {
      "startPosition": 0,
      "endPosition": 100,
      "text": "EXACT text copied from the document",
      "riskLevel": 0-10,
      "type": "termination|liability|intellectual_property|payment|renewal|general",
      "comment": "Why this section matters",
      "suggestion": "Recommended action or negotiation point",
      "severity": "low|medium|high"
    }
  ],
  "aiComments": [
    {
      "position": 0,
      "text": "Contextual comment about this position",
      "type": "warning|info|suggestion",
      "severity": "low|medium|high"
    }
  ],
  "documentStructure": {
    "sections": [
      {"title": "Section name", "startPosition": 0, "endPosition": 0, "subsections": []}
    ]
  },
  "plainEnglishExplanations": {
    "termination": "Plain English explanation of termination terms",
    "liability": "Plain English explanation of liability terms",
    "payment": "Plain English explanation of payment terms",
    "other_key_terms": "Explanations of other important sections"
  },
  "confidenceScore": 85
}

Character positions are zero-based offsets into the document text with an exclusive end. They are checked against the text you quote, so the quoted text always takes precedence."""

DOCUMENT_ANALYSIS_USER_PROMPT = PromptTemplate(
    input_variables=["document_text"],
    template="""Please analyze the following legal document and provide a comprehensive risk assessment.

Document Content:
{document_text}

Focus on identifying:
1. Termination clauses and notice requirements
2. Liability limitations and indemnification terms
3. Intellectual property ownership and licensing
4. Payment terms, penalties, and collection procedures
5. Renewal and modification procedures
6. Compliance and regulatory requirements
7. Dispute resolution mechanisms""",
)


class ComplexityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class AnalysisComplexity:
    """How heavy an analysis is expected to be, and which model should run it."""
    complexity: ComplexityLevel
    estimated_processing_time: int
    recommended_model: str
    word_count: int


def create_analysis_messages(document_text: str) -> List[Dict[str, str]]:
    """
    Build the chat messages for one analysis request.

    Args:
        document_text (str): The exact text positions will refer to

    Returns:
        list: System and user messages
    """
    return [
        {"role": "system", "content": LEGAL_ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": DOCUMENT_ANALYSIS_USER_PROMPT.format(document_text=document_text)},
    ]


def estimate_analysis_complexity(document_text: str) -> AnalysisComplexity:
    """Bucket a document by word count."""
    word_count = len(document_text.split())

    if word_count < Constants.LOW_COMPLEXITY_WORDS:
        return AnalysisComplexity(ComplexityLevel.LOW, 30, settings.llm_model, word_count)
    if word_count < Constants.MEDIUM_COMPLEXITY_WORDS:
        return AnalysisComplexity(ComplexityLevel.MEDIUM, 60, settings.llm_model, word_count)
    return AnalysisComplexity(ComplexityLevel.HIGH, 120, settings.llm_large_model, word_count)


def parse_model_output(raw_text: str) -> Dict[str, Any]:
    """
    Parse the model's reply into a JSON object.

    Markdown code fences around the JSON are tolerated.

    Raises:
        ModelResponseError: If the reply is empty, unparsable or not an object
    """
    if not raw_text or not raw_text.strip():
        raise ModelResponseError("Empty response from model")

    try:
        parsed = JsonOutputParser().parse(raw_text)
    except OutputParserException as e:
        logger.error(f"Model returned invalid JSON: {e}")
        raise ModelResponseError("Invalid JSON response from model") from e

    if not isinstance(parsed, dict):
        raise ModelResponseError("Model response must be a JSON object")

    return parsed
