"""
Tests for the Trial Quality Assessor.
"""

import asyncio

import pytest

from medsight.core.enums import BiasRisk, StudyDesign
from medsight.core.exceptions import LLMProviderError
from medsight.core.schemas import TrialQualityAssessment
from medsight.observability import get_metrics
from medsight.quality.assessor import (
    DEFAULT_CONFIDENCE,
    TrialQualityAssessor,
    infer_study_design,
    parse_quality_judgment,
    summarize_quality,
)

from conftest import make_paper


def _assessment(design: StudyDesign, bias: BiasRisk) -> TrialQualityAssessment:
    return TrialQualityAssessment(study_design=design, bias_risk=bias)


# =============================================================================
# STUDY DESIGN INFERENCE
# =============================================================================


class TestInferStudyDesign:
    """Keyword priority and study_type fallback."""

    @pytest.mark.parametrize(
        "title,expected",
        [
            ("A randomised trial and meta-analysis", StudyDesign.RCT),
            ("Systematic review of cohort studies", StudyDesign.META_ANALYSIS),
            ("Case-control analysis of outcomes", StudyDesign.OBSERVATIONAL),
            ("A case report of rare bleeding", StudyDesign.CASE_STUDY),
        ],
    )
    def test_keyword_priority(self, title, expected):
        assert infer_study_design(make_paper("pubmed-1", title)) == expected

    def test_abstract_is_searched(self):
        paper = make_paper("pubmed-1", "Outcomes of therapy", "An observational registry.")
        assert infer_study_design(paper) == StudyDesign.OBSERVATIONAL

    def test_falls_back_to_supplied_study_type(self):
        paper = make_paper("pubmed-1", "Outcomes of therapy", study_type="Meta-analysis")
        assert infer_study_design(paper) == StudyDesign.META_ANALYSIS

    def test_unknown_study_type_is_other(self):
        paper = make_paper("pubmed-1", "Outcomes of therapy", study_type="Editorial")
        assert infer_study_design(paper) == StudyDesign.OTHER


# =============================================================================
# SUMMARY
# =============================================================================


class TestSummarizeQuality:
    """Cohort counts and overall bias risk."""

    def test_high_if_any_high(self):
        summary = summarize_quality(
            [
                _assessment(StudyDesign.RCT, BiasRisk.LOW),
                _assessment(StudyDesign.RCT, BiasRisk.HIGH),
                _assessment(StudyDesign.RCT, BiasRisk.MODERATE),
            ]
        )
        assert summary.overall_bias_risk == BiasRisk.HIGH

    def test_moderate_if_any_moderate_and_none_high(self):
        summary = summarize_quality(
            [
                _assessment(StudyDesign.RCT, BiasRisk.LOW),
                _assessment(StudyDesign.RCT, BiasRisk.MODERATE),
            ]
        )
        assert summary.overall_bias_risk == BiasRisk.MODERATE

    def test_low_if_all_low(self):
        summary = summarize_quality([_assessment(StudyDesign.RCT, BiasRisk.LOW)])
        assert summary.overall_bias_risk == BiasRisk.LOW

    def test_empty_is_low(self):
        summary = summarize_quality([])
        assert summary.overall_bias_risk == BiasRisk.LOW
        assert summary.rct_count == 0

    def test_case_studies_count_as_observational(self):
        summary = summarize_quality(
            [
                _assessment(StudyDesign.RCT, BiasRisk.LOW),
                _assessment(StudyDesign.OBSERVATIONAL, BiasRisk.LOW),
                _assessment(StudyDesign.CASE_STUDY, BiasRisk.LOW),
                _assessment(StudyDesign.META_ANALYSIS, BiasRisk.LOW),
                _assessment(StudyDesign.OTHER, BiasRisk.LOW),
            ]
        )
        assert summary.rct_count == 1
        assert summary.observational_count == 2
        assert summary.meta_analysis_count == 1


# =============================================================================
# PAYLOAD VALIDATION
# =============================================================================


class TestParseQualityJudgment:
    """Field-by-field validation of collaborator payloads."""

    def test_valid_payload(self):
        fields = parse_quality_judgment(
            {
                "biasRisk": "low",
                "confidenceScore": 0.9,
                "sampleSizeAdequate": False,
                "internalValidityNotes": "Well concealed allocation",
            }
        )
        assert fields["bias_risk"] == BiasRisk.LOW
        assert fields["confidence_score"] == 0.9
        assert fields["sample_size_adequate"] is False
        assert fields["internal_validity_notes"] == "Well concealed allocation"

    def test_invalid_fields_take_defaults(self):
        fields = parse_quality_judgment(
            {"biasRisk": "terrible", "confidenceScore": "high", "sampleSizeAdequate": "yes"}
        )
        assert fields["bias_risk"] == BiasRisk.MODERATE
        assert fields["confidence_score"] == DEFAULT_CONFIDENCE
        assert fields["sample_size_adequate"] is True
        assert fields["internal_validity_notes"] is None

    @pytest.mark.parametrize("raw,expected", [(1.7, 1.0), (-0.3, 0.0), (1, 1.0)])
    def test_confidence_is_clamped(self, raw, expected):
        assert parse_quality_judgment({"confidenceScore": raw})["confidence_score"] == expected

    def test_boolean_confidence_rejected(self):
        assert parse_quality_judgment({"confidenceScore": True})["confidence_score"] == 0.6


# =============================================================================
# ASSESSOR
# =============================================================================


class TestTrialQualityAssessor:
    """Per-paper judgment with per-paper fallback."""

    def test_one_failure_does_not_abort_others(self, sample_papers, make_judge):
        def respond(request):
            if request.context["paper_id"] == "openalex-W2002":
                raise LLMProviderError("upstream 500", provider="stub", status_code=500)
            return {"biasRisk": "low", "confidenceScore": 0.9, "sampleSizeAdequate": True}

        judge = make_judge({"quality": respond})
        output, degraded = asyncio.run(TrialQualityAssessor(judge).assess(sample_papers))

        assert degraded is True
        assert len(output.assessments) == len(sample_papers)
        by_id = {a.paper_id: a.assessment for a in output.assessments}
        assert by_id["pubmed-1001"].bias_risk == BiasRisk.LOW
        assert by_id["pubmed-1001"].confidence_score == 0.9
        assert by_id["openalex-W2002"].bias_risk == BiasRisk.MODERATE
        assert by_id["openalex-W2002"].confidence_score == 0.6
        assert output.summary.overall_bias_risk == BiasRisk.MODERATE
        assert get_metrics().judgment_fallbacks.get({"stage": "quality"}) == 1

    def test_designs_come_from_text(self, sample_papers, make_judge):
        judge = make_judge({"quality": {"biasRisk": "low"}})
        output, _ = asyncio.run(TrialQualityAssessor(judge).assess(sample_papers))

        designs = [a.assessment.study_design for a in output.assessments]
        assert designs == [StudyDesign.RCT, StudyDesign.OBSERVATIONAL, StudyDesign.META_ANALYSIS]
        assert output.summary.rct_count == 1
        assert output.summary.meta_analysis_count == 1

    def test_no_judge_uses_defaults(self, sample_papers):
        output, degraded = asyncio.run(TrialQualityAssessor(None).assess(sample_papers))

        assert degraded is True
        for item in output.assessments:
            assert item.assessment.bias_risk == BiasRisk.MODERATE
            assert item.assessment.confidence_score == 0.6
            assert item.assessment.sample_size_adequate is True

    def test_no_papers(self, make_judge):
        judge = make_judge()
        output, degraded = asyncio.run(TrialQualityAssessor(judge).assess([]))

        assert degraded is False
        assert output.assessments == []
        assert output.summary.overall_bias_risk == BiasRisk.LOW
        assert judge.calls == []

    def test_request_uses_title_when_abstract_missing(self):
        paper = make_paper("pubmed-9", "Only a title here")
        request = TrialQualityAssessor(None).build_request(paper)

        assert request.stage == "quality"
        assert "Only a title here" in request.user_prompt

    def test_request_truncates_abstract(self):
        paper = make_paper("pubmed-9", "Title", "x" * 5000)
        request = TrialQualityAssessor(None).build_request(paper)

        assert len(request.context["abstract"]) == 3000
