"""
MedSight Retrieval Nodes

Node functions for fetching and ranking papers.
"""

from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig

from medsight.core.enums import GraphNode
from medsight.core.schemas import AnalysisState
from medsight.observability.metrics import get_metrics
from medsight.observability.tracer import tracer
from medsight.ranking.ranker import rank_papers
from medsight.retrieval.sources import StaticPaperSource, fetch_with

logger = logging.getLogger(__name__)


async def fetch_papers_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """Fetch normalized papers from the configured source.

    Node: FETCH
    Output: papers

    An empty list is a valid outcome. Source failures raise RetrievalError.
    """
    configurable = config.get("configurable", {})
    source = configurable.get("paper_source") or StaticPaperSource()

    with tracer.span("node.fetch_papers") as span, get_metrics().stage_latency.time(
        labels={"stage": GraphNode.FETCH.value}
    ):
        papers = await fetch_with(source, state.query)
        span.set_attribute("papers", len(papers))
        logger.info("[%s] Fetched %d papers", state.run_id, len(papers))

    return {"papers": papers}


async def rank_node(state: AnalysisState, config: RunnableConfig) -> dict:
    """Rank papers by relevance.

    Node: RANK
    Input: papers
    Output: literature
    """
    configurable = config.get("configurable", {})

    with tracer.span("node.rank") as span, get_metrics().stage_latency.time(
        labels={"stage": GraphNode.RANK.value}
    ):
        literature = rank_papers(
            state.query, state.papers, current_year=configurable.get("current_year")
        )
        span.set_attribute("ranked", literature.total_count)

    return {"literature": literature}
