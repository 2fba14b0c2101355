"""MedSight Orchestration Nodes Package."""

from medsight.orchestration.nodes.analysis_nodes import (
    assess_applicability_node,
    assess_quality_node,
    assess_statistics_node,
)
from medsight.orchestration.nodes.decision_nodes import synthesize_node, veto_node
from medsight.orchestration.nodes.retrieval_nodes import fetch_papers_node, rank_node

__all__ = [
    "fetch_papers_node",
    "rank_node",
    "assess_quality_node",
    "assess_statistics_node",
    "assess_applicability_node",
    "veto_node",
    "synthesize_node",
]
