"""
LangGraph workflows for ContractLens.

Author: ContractLens Team
Version: 1.0.0
"""

from .analysis_pipeline import AnalysisPipeline, PipelineResult

__all__ = [
    "AnalysisPipeline",
    "PipelineResult",
]
