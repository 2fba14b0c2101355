"""
Tests for the Relevance Ranker.
"""

import pytest

from medsight.ranking.ranker import (
    journal_reputation,
    keyword_overlap,
    query_tokens,
    rank_papers,
    recency_score,
)

from conftest import make_paper

YEAR = 2024


# =============================================================================
# SUB-SCORES
# =============================================================================


class TestSubScores:
    """Keyword, recency and journal sub-scores."""

    def test_query_tokens_drop_short_words_and_fold_case(self):
        assert query_tokens("Is AF in the Elderly a risk") == {"the", "elderly", "risk"}

    def test_keyword_overlap_counts_distinct_tokens(self):
        assert keyword_overlap("apixaban apixaban warfarin", "Apixaban only") == 0.5

    def test_keyword_overlap_without_qualifying_tokens_is_zero(self):
        assert keyword_overlap("is an of", "is an of") == 0.0

    def test_recency_unknown_year(self):
        assert recency_score(None, YEAR, 15) == 0.5

    @pytest.mark.parametrize(
        "year,expected",
        [(2024, 1.0), (2009, 0.0), (1990, 0.0), (2030, 1.0)],
    )
    def test_recency_is_clamped(self, year, expected):
        assert recency_score(year, YEAR, 15) == expected

    @pytest.mark.parametrize(
        "journal,expected",
        [
            ("The Lancet", 1.0),
            ("JAMA Oncology", 1.0),
            ("nejm", 1.0),
            ("Journal of Regional Cardiology", 0.5),
            (None, 0.5),
            ("", 0.5),
        ],
    )
    def test_journal_reputation(self, journal, expected):
        assert journal_reputation(journal) == expected


# =============================================================================
# RANKING
# =============================================================================


class TestRankPapers:
    """rank_papers ordering and score invariants."""

    def test_scores_in_range_and_rounded(self, sample_papers):
        output = rank_papers("apixaban stroke atrial fibrillation", sample_papers, YEAR)

        assert output.total_count == len(sample_papers)
        for ranked in output.ranked_papers:
            assert 0.0 <= ranked.relevance_score <= 1.0
            assert ranked.relevance_score == round(ranked.relevance_score, 2)

    def test_sorted_non_increasing(self, sample_papers):
        output = rank_papers("apixaban stroke atrial fibrillation", sample_papers, YEAR)
        scores = [r.relevance_score for r in output.ranked_papers]

        assert scores == sorted(scores, reverse=True)

    def test_ties_keep_input_order(self):
        papers = [
            make_paper(f"pubmed-{i}", f"Unrelated title {i}", year=2020, journal="BMJ")
            for i in range(5)
        ]

        forward = rank_papers("apixaban", papers, YEAR)
        backward = rank_papers("apixaban", list(reversed(papers)), YEAR)

        assert [p.id for p in forward.papers()] == [p.id for p in papers]
        assert [p.id for p in backward.papers()] == [p.id for p in reversed(papers)]

    def test_weighted_combination(self):
        paper = make_paper("pubmed-1", "Apixaban in practice", year=2019)

        ranked = rank_papers("apixaban warfarin", [paper], YEAR).ranked_papers[0]

        # 0.5 * 0.5 + 0.3 * (1 - 5/15) + 0.2 * 0.5
        assert ranked.relevance_score == pytest.approx(0.55)

    def test_reason_string(self):
        paper = make_paper(
            "pubmed-1", "Apixaban trial", "Apixaban reduced stroke.", year=YEAR, journal="JAMA"
        )

        ranked = rank_papers("apixaban stroke", [paper], YEAR).ranked_papers[0]

        assert ranked.relevance_score == 1.0
        assert ranked.reason == "keywords: 100%, recency: 100%, journal: 100%"

    def test_empty_paper_list(self):
        output = rank_papers("apixaban", [], YEAR)

        assert output.ranked_papers == []
        assert output.total_count == 0
