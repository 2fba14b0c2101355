"""
MedSight Orchestration Layer

LangGraph pipeline and the run_analysis entry point.
"""

from medsight.orchestration.graph import (
    AnalysisRunner,
    build_analysis_graph,
    resolve_judge,
    run_analysis,
    validate_request,
)

__all__ = [
    "AnalysisRunner",
    "build_analysis_graph",
    "resolve_judge",
    "run_analysis",
    "validate_request",
]
