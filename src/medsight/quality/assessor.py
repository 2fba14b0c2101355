"""
Trial Quality Assessor

Rule-based study design inference plus a per-paper bias/validity judgment.

Each paper is judged independently and concurrently; a failed judgment only
falls back for that paper.
"""

import asyncio
from typing import Any, Sequence

from medsight.config import get_settings
from medsight.core.enums import BiasRisk, StudyDesign
from medsight.core.schemas import (
    NormalizedPaper,
    PaperAssessment,
    QualitySummary,
    TrialQualityAssessment,
    TrialQualityOutput,
)
from medsight.llm.judge import JudgmentRequest, StructuredJudge, record_fallback, request_judgment
from medsight.observability import get_tracer
from medsight.retrieval.sources import match_study_design

STAGE = "quality"

QUALITY_SYSTEM_PROMPT = "You are a clinical trial quality assessor. Output only valid JSON."

QUALITY_USER_PROMPT = """Assess this abstract for internal validity, sample size adequacy, and bias risk. Respond with a JSON object with keys: biasRisk (one of "low","moderate","high"), confidenceScore (0-1), sampleSizeAdequate (boolean), internalValidityNotes (short string). Abstract:

{abstract}"""

DEFAULT_BIAS_RISK = BiasRisk.MODERATE
DEFAULT_CONFIDENCE = 0.6
DEFAULT_SAMPLE_SIZE_ADEQUATE = True

_DESIGN_VALUES = {d.value: d for d in StudyDesign}


def infer_study_design(paper: NormalizedPaper) -> StudyDesign:
    """
    Study design from title + abstract keywords.

    Priority: RCT, meta-analysis, observational, case study. Falls back to
    the source-supplied study_type, then "Other".
    """
    design = match_study_design(paper.text)
    if design is not None:
        return design
    return _DESIGN_VALUES.get(paper.study_type, StudyDesign.OTHER)


def parse_quality_judgment(payload: dict[str, Any]) -> dict[str, Any]:
    """
    Validate a judgment payload field by field.

    Fields with the wrong type or value are replaced by their defaults.
    """
    bias = payload.get("biasRisk")
    bias_risk = BiasRisk(bias) if bias in {b.value for b in BiasRisk} else DEFAULT_BIAS_RISK

    confidence = payload.get("confidenceScore")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        confidence_score = min(1.0, max(0.0, float(confidence)))
    else:
        confidence_score = DEFAULT_CONFIDENCE

    adequate = payload.get("sampleSizeAdequate")
    sample_size_adequate = adequate if isinstance(adequate, bool) else DEFAULT_SAMPLE_SIZE_ADEQUATE

    notes = payload.get("internalValidityNotes")
    return {
        "bias_risk": bias_risk,
        "confidence_score": confidence_score,
        "sample_size_adequate": sample_size_adequate,
        "internal_validity_notes": notes if isinstance(notes, str) and notes else None,
    }


def summarize_quality(assessments: Sequence[TrialQualityAssessment]) -> QualitySummary:
    """
    Cohort summary: design bucket counts and the worst bias risk.

    Case studies count as observational. No assessments means low risk.
    """
    rct = sum(1 for a in assessments if a.study_design == StudyDesign.RCT)
    observational = sum(
        1
        for a in assessments
        if a.study_design in (StudyDesign.OBSERVATIONAL, StudyDesign.CASE_STUDY)
    )
    meta = sum(1 for a in assessments if a.study_design == StudyDesign.META_ANALYSIS)
    overall = max((a.bias_risk for a in assessments), key=lambda b: b.rank, default=BiasRisk.LOW)

    return QualitySummary(
        rct_count=rct,
        observational_count=observational,
        meta_analysis_count=meta,
        overall_bias_risk=overall,
    )


class TrialQualityAssessor:
    """
    Assess trial quality for a ranked paper list.

    Usage:
        assessor = TrialQualityAssessor(judge)
        output, degraded = await assessor.assess(papers)
    """

    def __init__(self, judge: StructuredJudge | None = None) -> None:
        self._judge = judge
        self._settings = get_settings().pipeline
        self._tracer = get_tracer("medsight.quality")

    def build_request(self, paper: NormalizedPaper) -> JudgmentRequest:
        abstract = (paper.abstract or paper.title)[: self._settings.quality_abstract_chars]
        return JudgmentRequest(
            stage=STAGE,
            system_prompt=QUALITY_SYSTEM_PROMPT,
            user_prompt=QUALITY_USER_PROMPT.format(abstract=abstract),
            context={"paper_id": paper.id, "abstract": abstract},
        )

    async def _assess_paper(self, paper: NormalizedPaper) -> tuple[PaperAssessment, bool]:
        design = infer_study_design(paper)
        degraded = False
        try:
            payload = await request_judgment(self._judge, self.build_request(paper))
            fields = parse_quality_judgment(payload)
        except Exception as e:
            record_fallback(STAGE, e, subject=paper.id)
            degraded = True
            fields = {
                "bias_risk": DEFAULT_BIAS_RISK,
                "confidence_score": DEFAULT_CONFIDENCE,
                "sample_size_adequate": DEFAULT_SAMPLE_SIZE_ADEQUATE,
                "internal_validity_notes": None,
            }

        assessment = TrialQualityAssessment(study_design=design, **fields)
        return PaperAssessment(paper_id=paper.id, assessment=assessment), degraded

    async def assess(self, papers: Sequence[NormalizedPaper]) -> tuple[TrialQualityOutput, bool]:
        """
        Assess every paper.

        Returns:
            (TrialQualityOutput, degraded) where degraded is True if any
            paper fell back to the default judgment.
        """
        with self._tracer.span("assess", attributes={"papers": len(papers)}) as span:
            results = await asyncio.gather(*(self._assess_paper(p) for p in papers))
            assessments = [a for a, _ in results]
            degraded = any(d for _, d in results)

            summary = summarize_quality([a.assessment for a in assessments])
            span.set_attribute("overall_bias_risk", summary.overall_bias_risk.value)
            span.set_attribute("degraded", degraded)

        return TrialQualityOutput(assessments=assessments, summary=summary), degraded
