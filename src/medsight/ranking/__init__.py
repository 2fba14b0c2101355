"""
MedSight Ranking Layer

Relevance scoring of normalized papers.
"""

from medsight.ranking.ranker import (
    HIGH_REPUTATION_JOURNALS,
    journal_reputation,
    keyword_overlap,
    rank_papers,
    recency_score,
)

__all__ = [
    "HIGH_REPUTATION_JOURNALS",
    "journal_reputation",
    "keyword_overlap",
    "rank_papers",
    "recency_score",
]
