"""
MedSight Analysis Nodes

Node functions for the three assessments that run concurrently once the
ranked paper list exists: trial quality, statistics, and patient
applicability (legacy match + safety).
"""

from __future__ import annotations

from langchain_core.runnables import RunnableConfig

from medsight.applicability.patient_match import compute_patient_match
from medsight.applicability.safety import SafetyAssessor
from medsight.core.enums import GraphNode
from medsight.core.schemas import AnalysisState
from medsight.observability.metrics import get_metrics
from medsight.observability.tracer import tracer
from medsight.quality.assessor import TrialQualityAssessor
from medsight.statistics.assessor import StatisticsAssessor


def _judge(config: RunnableConfig):
    return config.get("configurable", {}).get("judge")


async def assess_quality_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """Assess trial quality of every ranked paper.

    Node: ASSESS_QUALITY
    Input: literature
    Output: trial_quality
    """
    with tracer.span("node.assess_quality"), get_metrics().stage_latency.time(
        labels={"stage": GraphNode.ASSESS_QUALITY.value}
    ):
        output, degraded = await TrialQualityAssessor(_judge(config)).assess(state.ranked_papers())

    update: dict = {"trial_quality": output}
    if degraded:
        update["degraded_stages"] = ["quality"]
    return update


async def assess_statistics_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """Judge statistical strength of the top-ranked papers.

    Node: ASSESS_STATISTICS
    Input: literature
    Output: statistics
    """
    with tracer.span("node.assess_statistics"), get_metrics().stage_latency.time(
        labels={"stage": GraphNode.ASSESS_STATISTICS.value}
    ):
        output, degraded = await StatisticsAssessor(_judge(config)).assess(
            state.query, state.ranked_papers()
        )

    update: dict = {"statistics": output}
    if degraded:
        update["degraded_stages"] = ["statistics"]
    return update


async def assess_applicability_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """Legacy patient match and patient safety analysis.

    Node: ASSESS_APPLICABILITY
    Input: literature, patient
    Output: patient_match, patient_safety
    """
    with tracer.span("node.assess_applicability") as span, get_metrics().stage_latency.time(
        labels={"stage": GraphNode.ASSESS_APPLICABILITY.value}
    ):
        papers = state.ranked_papers()
        match = compute_patient_match(papers, state.patient)
        safety, degraded = await SafetyAssessor(_judge(config)).assess(
            state.query, papers, state.patient
        )
        span.set_attribute("match_score", match.match_score)
        span.set_attribute("safety_tier", safety.safety_tier.value)

    update: dict = {"patient_match": match, "patient_safety": safety}
    if degraded:
        update["degraded_stages"] = ["safety"]
    return update
