"""
MedSight Core Schemas

This module defines all Pydantic models (schemas) used throughout the pipeline.
These schemas represent the domain model and enforce invariants via validators.

Key Design Principles:
1. Every entity is created fresh per analysis request
2. Stage outputs are immutable once produced (frozen=True)
3. Scores are range-checked at construction, never trusted from callers
4. Field names are snake_case in Python and camelCase on the wire
"""

from __future__ import annotations

import operator
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from medsight.core.enums import (
    AlertCategory,
    AlertSeverity,
    AnalysisMode,
    BiasRisk,
    ExclusionSeverity,
    GapSeverity,
    GapType,
    ObjectionSource,
    PaperSourceName,
    SafetyTier,
    Sex,
    StudyDesign,
    VetoType,
)


class WireModel(BaseModel):
    """Base for models exchanged with the API and the judgment collaborator."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# =============================================================================
# PAPERS
# =============================================================================


class NormalizedPaper(WireModel):
    """
    Paper record in the common shape produced by the source adapter.

    Invariants:
    - id is globally unique and source-prefixed (e.g. "pubmed-123")
    - read-only after creation
    """

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    abstract: str = ""
    year: int | None = None
    journal: str | None = None
    study_type: str = "Other"
    source: PaperSourceName = PaperSourceName.LOCAL
    doi: str | None = None
    pmid: str | None = None
    url: str | None = None

    @property
    def text(self) -> str:
        """Title and abstract joined, as matched by every text heuristic."""
        return f"{self.title} {self.abstract}"


class RankedPaper(WireModel):
    """Paper with its relevance score. Ordering lives in the containing list."""

    paper: NormalizedPaper
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    reason: str = ""


class LiteratureOutput(WireModel):
    """Ranker output, sorted non-increasing by relevance_score."""

    ranked_papers: list[RankedPaper] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0)

    def papers(self) -> list[NormalizedPaper]:
        """Papers in ranked order."""
        return [r.paper for r in self.ranked_papers]


# =============================================================================
# TRIAL QUALITY
# =============================================================================


class TrialQualityAssessment(WireModel):
    """Per-paper quality assessment."""

    study_design: StudyDesign
    bias_risk: BiasRisk = BiasRisk.MODERATE
    confidence_score: float = Field(default=0.6, ge=0.0, le=1.0)
    sample_size_adequate: bool = True
    internal_validity_notes: str | None = None


class PaperAssessment(WireModel):
    """Assessment keyed by paper id."""

    paper_id: str
    assessment: TrialQualityAssessment


class QualitySummary(WireModel):
    """Cohort-level quality summary."""

    rct_count: int = Field(default=0, ge=0)
    observational_count: int = Field(default=0, ge=0)
    meta_analysis_count: int = Field(default=0, ge=0)
    overall_bias_risk: BiasRisk = BiasRisk.LOW
    total_sample_size: int | None = None


class TrialQualityOutput(WireModel):
    """Trial quality stage output."""

    assessments: list[PaperAssessment] = Field(default_factory=list)
    summary: QualitySummary = Field(default_factory=QualitySummary)


# =============================================================================
# STATISTICS
# =============================================================================


class OutcomeComparison(WireModel):
    """One outcome bar for display."""

    label: str
    value: str
    bar: float = Field(..., ge=0.0, le=100.0)


class StatisticsOutput(WireModel):
    """Statistical strength judgment."""

    explanation: str
    statistical_strength: float = Field(..., ge=0.0, le=1.0)
    outcome_comparisons: list[OutcomeComparison] = Field(default_factory=list)


# =============================================================================
# PATIENT
# =============================================================================


class PatientProfile(WireModel):
    """
    Patient profile for one analysis request.

    Every field is optional at the type level; the request parser requires
    age, sex and primary_condition in clinical mode.
    """

    age: int | None = Field(default=None, ge=0, le=120)
    sex: Sex | None = None
    primary_condition: str | None = None
    comorbidities: list[str] = Field(default_factory=list)
    medications: list[str] = Field(default_factory=list)

    @field_validator("primary_condition")
    @classmethod
    def strip_condition(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("comorbidities", "medications")
    @classmethod
    def drop_blank(cls, v: list[str]) -> list[str]:
        return [item.strip() for item in v if item and item.strip()]

    def is_complete(self) -> bool:
        """All fields required by clinical mode are present."""
        return self.age is not None and self.sex is not None and bool(self.primary_condition)


class PatientMatchOutput(WireModel):
    """Legacy patient match score."""

    match_score: float = Field(..., ge=0.0, le=1.0)
    mismatch_reasons: list[str] = Field(default_factory=list)
    plain_language_summary: str | None = None
    questions_for_doctor: list[str] = Field(default_factory=list)


# =============================================================================
# SAFETY
# =============================================================================


class ClinicalAlert(WireModel):
    """Safety alert raised for the clinician."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    severity: AlertSeverity
    message: str = Field(..., min_length=1)
    citations: list[str] = Field(default_factory=list)
    category: AlertCategory


class ExclusionMatch(WireModel):
    """A study exclusion criterion that the patient matches."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    criterion: str = Field(..., min_length=1)
    patient_match: str
    paper_id: str
    severity: ExclusionSeverity


class DemographicGap(WireModel):
    """Difference between the patient and the study populations."""

    type: GapType
    patient_value: str | int | float
    study_value: str | int | float
    severity: GapSeverity
    explanation: str
    impact: str


class SafetyAssessment(WireModel):
    """Patient-specific safety analysis. Drives the veto gate."""

    safety_tier: SafetyTier
    clinical_alerts: list[ClinicalAlert] = Field(default_factory=list)
    exclusion_matches: list[ExclusionMatch] = Field(default_factory=list)
    demographic_gaps: list[DemographicGap] = Field(default_factory=list)
    alternative_options: list[str] = Field(default_factory=list)
    plain_language_summary: str = ""
    questions_for_clinician: list[str] = Field(default_factory=list)


# =============================================================================
# VETO
# =============================================================================


class Objection(WireModel):
    """Objection raised against proceeding with a recommendation."""

    source: ObjectionSource
    severity: AlertSeverity
    message: str
    details: str | None = None


class VetoStatus(WireModel):
    """Veto gate decision. Recomputed per request, never persisted."""

    type: VetoType
    reason: str
    objections: list[Objection] = Field(default_factory=list)

    @property
    def is_hard(self) -> bool:
        return self.type == VetoType.HARD

    @property
    def is_active(self) -> bool:
        return self.type != VetoType.NONE


# =============================================================================
# SYNTHESIS
# =============================================================================


class ObjectionResponse(WireModel):
    """Explicit answer to one objection."""

    objection: str
    response: str


class SynthesisResult(WireModel):
    """
    Final recommendation for one analysis request.

    Invariants:
    - confidence-like figures are integers in [0, 100]
    - veto_applied is True iff a soft or hard veto was in effect
    """

    summary: str
    overall_confidence: int = Field(..., ge=0, le=100)
    disagreement_level: int = Field(..., ge=0, le=100)
    clinical_readiness: int = Field(..., ge=0, le=100)
    conflicting_evidence: str | None = None
    key_findings: list[str] = Field(default_factory=list)
    key_citations: list[str] = Field(default_factory=list)
    clinician_summary: str
    patient_explanation: str
    supporting_evidence: list[str] = Field(default_factory=list)
    contradicting_evidence: list[str] = Field(default_factory=list)
    objection_responses: list[ObjectionResponse] = Field(default_factory=list)
    confidence_justification: str
    bias_and_uncertainty: str
    veto_applied: bool = False
    veto_reason: str | None = None


# =============================================================================
# REQUEST / RESULT
# =============================================================================


class AnalysisRequest(WireModel):
    """Validated analysis request. Built only by the request parser."""

    query: str = Field(..., min_length=1)
    mode: AnalysisMode
    patient: PatientProfile | None = None


class AnalyzeResult(WireModel):
    """Every stage output for one request plus the veto decision."""

    query: str
    mode: AnalysisMode
    papers: list[NormalizedPaper]
    literature: LiteratureOutput
    trial_quality: TrialQualityOutput
    statistics: StatisticsOutput
    patient_match: PatientMatchOutput
    patient_safety: SafetyAssessment
    synthesis: SynthesisResult
    veto_status: VetoStatus
    degraded_stages: list[str] = Field(default_factory=list)


class AnalysisState(BaseModel):
    """
    State flowing through the analysis graph.

    Parallel stages write disjoint keys; degraded_stages is merged with a
    list-concatenation reducer because several stages may append to it.
    """

    run_id: str
    query: str
    mode: AnalysisMode
    patient: PatientProfile | None = None

    papers: list[NormalizedPaper] = Field(default_factory=list)
    literature: LiteratureOutput | None = None
    trial_quality: TrialQualityOutput | None = None
    statistics: StatisticsOutput | None = None
    patient_match: PatientMatchOutput | None = None
    patient_safety: SafetyAssessment | None = None
    veto_status: VetoStatus | None = None
    synthesis: SynthesisResult | None = None

    degraded_stages: Annotated[list[str], operator.add] = Field(default_factory=list)

    def ranked_papers(self) -> list[NormalizedPaper]:
        """Papers in ranked order (empty before the rank node ran)."""
        return self.literature.papers() if self.literature else []

    def to_result(self) -> AnalyzeResult:
        """Bundle a completed state into the public result."""
        return AnalyzeResult(
            query=self.query,
            mode=self.mode,
            papers=self.ranked_papers(),
            literature=self.literature,
            trial_quality=self.trial_quality,
            statistics=self.statistics,
            patient_match=self.patient_match,
            patient_safety=self.patient_safety,
            synthesis=self.synthesis,
            veto_status=self.veto_status,
            degraded_stages=sorted(set(self.degraded_stages)),
        )
