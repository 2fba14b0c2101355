"""
Relevance Ranker

Deterministic relevance scoring: keyword overlap, recency and venue
reputation. Pure functions, no I/O.
"""

from datetime import date
from typing import Sequence

from medsight.config import get_settings
from medsight.core.schemas import LiteratureOutput, NormalizedPaper, RankedPaper

HIGH_REPUTATION_JOURNALS = (
    "lancet",
    "jama",
    "nejm",
    "bmj",
    "nature",
    "science",
    "annals of internal medicine",
    "plos medicine",
    "jama oncology",
    "nature medicine",
    "the lancet digital health",
)

KEYWORD_WEIGHT = 0.5
RECENCY_WEIGHT = 0.3
JOURNAL_WEIGHT = 0.2

UNKNOWN_SCORE = 0.5


def query_tokens(query: str) -> set[str]:
    """Distinct case-folded query words longer than two characters."""
    return {w for w in query.lower().split() if len(w) > 2}


def keyword_overlap(query: str, text: str) -> float:
    """Fraction of query tokens found as substrings of text."""
    tokens = query_tokens(query)
    if not tokens:
        return 0.0
    lower = text.lower()
    return sum(1 for t in tokens if t in lower) / len(tokens)


def recency_score(year: int | None, current_year: int, horizon: int) -> float:
    """Linear decay to zero over `horizon` years; 0.5 for unknown years."""
    if year is None:
        return UNKNOWN_SCORE
    return min(1.0, max(0.0, 1 - (current_year - year) / horizon))


def journal_reputation(journal: str | None) -> float:
    if not journal:
        return UNKNOWN_SCORE
    name = journal.lower()
    return 1.0 if any(j in name for j in HIGH_REPUTATION_JOURNALS) else UNKNOWN_SCORE


def score_paper(
    query: str, paper: NormalizedPaper, current_year: int, horizon: int
) -> RankedPaper:
    kw = keyword_overlap(query, paper.text)
    recency = recency_score(paper.year, current_year, horizon)
    journal = journal_reputation(paper.journal)
    relevance = round(kw * KEYWORD_WEIGHT + recency * RECENCY_WEIGHT + journal * JOURNAL_WEIGHT, 2)
    reason = f"keywords: {kw * 100:.0f}%, recency: {recency * 100:.0f}%, journal: {journal * 100:.0f}%"
    return RankedPaper(paper=paper, relevance_score=relevance, reason=reason)


def rank_papers(
    query: str, papers: Sequence[NormalizedPaper], current_year: int | None = None
) -> LiteratureOutput:
    """
    Score and order papers by relevance.

    Args:
        query: Free-text clinical query.
        papers: Normalized papers in source order.
        current_year: Reference year for recency (defaults to today).

    Returns:
        LiteratureOutput sorted non-increasing by relevance_score. Equal
        scores keep their input order.
    """
    current_year = current_year or date.today().year
    horizon = get_settings().pipeline.recency_horizon_years

    scored = [score_paper(query, p, current_year, horizon) for p in papers]
    # sorted() is stable
    ranked = sorted(scored, key=lambda r: r.relevance_score, reverse=True)
    return LiteratureOutput(ranked_papers=ranked, total_count=len(ranked))
