"""
MedSight Orchestration Layer

LangGraph workflow for one analysis request:

    fetch_papers -> rank -> (assess_quality | assess_statistics | assess_applicability)
                 -> veto -> synthesize

The three assessments fan out from rank and run concurrently; veto waits
for all of them. Node functions live in the `nodes/` package.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping

from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph

from medsight.config import get_settings
from medsight.core.enums import AnalysisMode, GraphNode
from medsight.core.exceptions import ConfigurationError, RequestValidationError
from medsight.core.schemas import AnalysisRequest, AnalysisState, AnalyzeResult, PatientProfile
from medsight.interface.request_parser import require_valid
from medsight.llm.judge import StructuredJudge, get_default_judge
from medsight.observability.metrics import get_metrics
from medsight.observability.tracer import tracer
from medsight.orchestration.nodes import (
    assess_applicability_node,
    assess_quality_node,
    assess_statistics_node,
    fetch_papers_node,
    rank_node,
    synthesize_node,
    veto_node,
)
from medsight.retrieval.sources import PaperSource, StaticPaperSource

logger = logging.getLogger(__name__)

ASSESSMENT_NODES = [
    GraphNode.ASSESS_QUALITY.value,
    GraphNode.ASSESS_STATISTICS.value,
    GraphNode.ASSESS_APPLICABILITY.value,
]


# =============================================================================
# GRAPH BUILDER
# =============================================================================


def build_analysis_graph() -> CompiledStateGraph:
    """Build the analysis workflow graph.

    Returns:
        Compiled LangGraph StateGraph
    """
    graph = StateGraph(AnalysisState)

    graph.add_node(GraphNode.FETCH.value, fetch_papers_node)
    graph.add_node(GraphNode.RANK.value, rank_node)
    graph.add_node(GraphNode.ASSESS_QUALITY.value, assess_quality_node)
    graph.add_node(GraphNode.ASSESS_STATISTICS.value, assess_statistics_node)
    graph.add_node(GraphNode.ASSESS_APPLICABILITY.value, assess_applicability_node)
    graph.add_node(GraphNode.VETO.value, veto_node)
    graph.add_node(GraphNode.SYNTHESIZE.value, synthesize_node)

    graph.add_edge(START, GraphNode.FETCH.value)
    graph.add_edge(GraphNode.FETCH.value, GraphNode.RANK.value)

    # Fan out: the assessments only read the ranked list
    for node in ASSESSMENT_NODES:
        graph.add_edge(GraphNode.RANK.value, node)

    # Join: veto runs once all three assessments have written their keys
    graph.add_edge(ASSESSMENT_NODES, GraphNode.VETO.value)

    graph.add_edge(GraphNode.VETO.value, GraphNode.SYNTHESIZE.value)
    graph.add_edge(GraphNode.SYNTHESIZE.value, END)

    return graph.compile()


def resolve_judge() -> StructuredJudge | None:
    """Default judge from configured providers, or None when none is configured.

    With no judge every assessment takes its deterministic fallback.
    """
    try:
        return get_default_judge()
    except ConfigurationError as e:
        logger.warning("No judgment provider configured, using fallbacks only: %s", e)
        return None


# =============================================================================
# RUNNER
# =============================================================================


class AnalysisRunner:
    """Run the analysis workflow.

    Collaborators are injected once and passed to nodes through the
    LangGraph configurable dict:
    - judge: StructuredJudge used by quality, statistics, safety and synthesis
    - paper_source: PaperSource queried by the fetch node

    A runner holds no per-request state, so one instance may serve
    concurrent requests.
    """

    def __init__(
        self,
        judge: StructuredJudge | None = None,
        paper_source: PaperSource | None = None,
        current_year: int | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            judge: Judgment collaborator. None means every stage falls back.
            paper_source: Literature source. Defaults to an empty static source.
            current_year: Year used for recency scoring (default: today).
        """
        self.judge = judge
        self.paper_source = paper_source or StaticPaperSource()
        self.current_year = current_year
        self.graph = build_analysis_graph()

    async def run(self, request: AnalysisRequest, run_id: str | None = None) -> AnalyzeResult:
        """Run the pipeline for an already validated request.

        Raises:
            RetrievalError: The paper source failed.
            SynthesisError: Synthesis failed with no veto in effect.
        """
        metrics = get_metrics()
        run_id = run_id or str(uuid.uuid4())[:8]

        with tracer.span("analysis.run") as span:
            span.set_attribute("run_id", run_id)
            span.set_attribute("mode", request.mode.value)
            span.set_attribute("has_patient", request.patient is not None)

            initial_state = AnalysisState(
                run_id=run_id,
                query=request.query,
                mode=request.mode,
                patient=request.patient,
            )
            config = {
                "judge": self.judge,
                "paper_source": self.paper_source,
                "current_year": self.current_year,
            }

            metrics.analyses.inc(labels={"mode": request.mode.value})
            metrics.analyses_active.inc()
            logger.info("[%s] Starting %s analysis: %s", run_id, request.mode.value, request.query)
            try:
                result = await self.graph.ainvoke(initial_state, config={"configurable": config})
            finally:
                metrics.analyses_active.dec()

            # LangGraph returns a dict, convert to AnalysisState
            if isinstance(result, dict):
                final_state = AnalysisState.model_validate(result)
            else:
                final_state = result

            span.set_attribute("veto_type", final_state.veto_status.type.value)
            span.set_attribute("degraded_stages", sorted(set(final_state.degraded_stages)))

        return final_state.to_result()

    async def analyze(self, body: Mapping[str, Any]) -> AnalyzeResult:
        """Validate a raw request body, then run it.

        Raises:
            RequestValidationError: Before any stage executes.
        """
        request = validate_request(body)
        return await self.run(request)


def validate_request(body: Mapping[str, Any]) -> AnalysisRequest:
    """require_valid with the configured default mode, counting rejections."""
    try:
        return require_valid(body, default_mode=get_settings().pipeline.default_mode)
    except RequestValidationError as e:
        get_metrics().rejected_requests.inc()
        logger.info("Rejected analysis request: %s", e.message)
        raise


async def run_analysis(
    query: str,
    mode: AnalysisMode | str,
    patient: PatientProfile | Mapping[str, Any] | None = None,
    *,
    judge: StructuredJudge | None = None,
    paper_source: PaperSource | None = None,
    current_year: int | None = None,
) -> AnalyzeResult:
    """
    Run one analysis end to end.

    Args:
        query: Free-text clinical question.
        mode: "clinical" or "research".
        patient: Patient profile (required with age, sex and condition in
            clinical mode).
        judge: Judgment collaborator; None runs every stage on its fallback.
        paper_source: Literature source; None means no papers.
        current_year: Year used for recency scoring.

    Returns:
        AnalyzeResult with every stage output and the veto decision.

    Raises:
        RequestValidationError: Invalid request; no paper is fetched.
        RetrievalError: The paper source failed.
        SynthesisError: Synthesis failed with no veto in effect.
    """
    if isinstance(patient, PatientProfile):
        patient = patient.model_dump(by_alias=True, exclude_none=True, mode="json")
    body = {
        "query": query,
        "mode": mode.value if isinstance(mode, AnalysisMode) else mode,
        "patient": patient,
    }
    request = validate_request(body)

    runner = AnalysisRunner(judge=judge, paper_source=paper_source, current_year=current_year)
    return await runner.run(request)
