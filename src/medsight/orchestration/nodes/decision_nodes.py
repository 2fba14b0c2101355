"""
MedSight Decision Nodes

Node functions for the veto gate and the final synthesis.
"""

from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig

from medsight.core.enums import GraphNode
from medsight.core.schemas import AnalysisState
from medsight.observability.metrics import get_metrics
from medsight.observability.tracer import tracer
from medsight.synthesis.synthesizer import SynthesisAggregator
from medsight.veto.gate import determine_veto

logger = logging.getLogger(__name__)


async def veto_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """Decide the veto from safety, quality and statistics.

    Node: VETO
    Input: patient_safety, trial_quality, statistics
    Output: veto_status
    """
    with tracer.span("node.veto") as span:
        veto = determine_veto(
            state.patient_safety.safety_tier,
            state.trial_quality.summary,
            state.statistics.statistical_strength,
            state.mode,
            safety_summary=state.patient_safety.plain_language_summary,
            statistics_explanation=state.statistics.explanation,
        )
        span.set_attribute("veto_type", veto.type.value)

    get_metrics().vetoes.inc(labels={"type": veto.type.value})
    logger.info(
        "[%s] Veto decision: %s (%s), %d objection(s)",
        state.run_id,
        veto.type.value,
        veto.reason,
        len(veto.objections),
    )
    return {"veto_status": veto}


async def synthesize_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """Produce the final recommendation under the veto.

    Node: SYNTHESIZE
    Input: every stage output, veto_status
    Output: synthesis

    SynthesisError propagates and fails the request.
    """
    judge = config.get("configurable", {}).get("judge")

    with tracer.span("node.synthesize"), get_metrics().stage_latency.time(
        labels={"stage": GraphNode.SYNTHESIZE.value}
    ):
        result, degraded = await SynthesisAggregator(judge).synthesize(
            state.query,
            state.ranked_papers(),
            state.literature,
            state.trial_quality,
            state.statistics,
            state.patient_match,
            state.veto_status,
        )

    update: dict = {"synthesis": result}
    if degraded:
        update["degraded_stages"] = ["synthesis"]
    return update
