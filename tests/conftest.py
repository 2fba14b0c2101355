"""
MedSight Test Configuration

Shared fixtures and test utilities. No test touches the network: the
judgment collaborator is always a StubJudge and papers come from memory.
"""

import copy
import os
from typing import Any, Callable, Generator

import pytest

from medsight.core.enums import PaperSourceName, Sex
from medsight.core.schemas import NormalizedPaper, PatientProfile
from medsight.llm.judge import JudgmentRequest

os.environ.setdefault("LOG_LEVEL", "DEBUG")

PROVIDER_KEYS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "OPENAI_API_KEY")


class StubJudge:
    """
    Deterministic judgment collaborator.

    responses maps a stage name to one of:
    - a dict payload (deep-copied per call)
    - an exception instance, raised
    - a callable taking the JudgmentRequest
    - None (the judge has nothing to say)
    Stages without an entry get None.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[JudgmentRequest] = []

    async def judge(self, request: JudgmentRequest) -> dict[str, Any] | None:
        self.calls.append(request)
        response = self.responses.get(request.stage)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(request)
        return copy.deepcopy(response)

    @property
    def stages(self) -> list[str]:
        return [c.stage for c in self.calls]

    def calls_for(self, stage: str) -> list[JudgmentRequest]:
        return [c for c in self.calls if c.stage == stage]


def make_paper(
    paper_id: str,
    title: str,
    abstract: str = "",
    year: int | None = None,
    journal: str | None = None,
    study_type: str = "Other",
    source: PaperSourceName = PaperSourceName.PUBMED,
) -> NormalizedPaper:
    return NormalizedPaper(
        id=paper_id,
        title=title,
        abstract=abstract,
        year=year,
        journal=journal,
        study_type=study_type,
        source=source,
    )


# =============================================================================
# ENVIRONMENT
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch) -> Generator[None, None, None]:
    """Fresh settings, metrics and tracers per test; no real provider keys."""
    from medsight.config import reset_settings
    from medsight.observability import reset_metrics, reset_tracers

    for key in PROVIDER_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("MEDSIGHT_DEBUG", raising=False)

    reset_settings()
    reset_metrics()
    reset_tracers()
    yield
    reset_settings()
    reset_metrics()
    reset_tracers()


# =============================================================================
# COLLABORATORS
# =============================================================================


@pytest.fixture
def make_judge() -> Callable[..., StubJudge]:
    """Factory for StubJudge instances."""
    return StubJudge


@pytest.fixture
def paper_factory() -> Callable[..., NormalizedPaper]:
    return make_paper


# =============================================================================
# PAPERS
# =============================================================================


@pytest.fixture
def sample_papers() -> list[NormalizedPaper]:
    """Adult anticoagulation evidence with no pediatric or sex-specific wording."""
    return [
        make_paper(
            "pubmed-1001",
            "Randomized controlled trial of apixaban for stroke prevention in atrial fibrillation",
            "In this randomized trial of 5000 adults with atrial fibrillation, apixaban reduced "
            "stroke compared with warfarin (HR 0.79, 95% CI 0.66-0.95). Major bleeding was lower.",
            year=2022,
            journal="NEJM",
            study_type="RCT",
        ),
        make_paper(
            "openalex-W2002",
            "Anticoagulation outcomes in a national cohort",
            "A retrospective cohort of 12000 adults with atrial fibrillation followed for 3 years. "
            "Direct oral anticoagulants were associated with fewer strokes.",
            year=2016,
            journal="BMJ",
            study_type="Observational",
            source=PaperSourceName.OPENALEX,
        ),
        make_paper(
            "pubmed-1003",
            "Systematic review and meta-analysis of oral anticoagulants",
            "We pooled 14 trials of oral anticoagulants in atrial fibrillation. Stroke risk was "
            "reduced by 19% with consistent effects across subgroups.",
            year=None,
            journal=None,
            study_type="Meta-analysis",
        ),
    ]


# =============================================================================
# PATIENTS
# =============================================================================


@pytest.fixture
def adult_patient() -> PatientProfile:
    return PatientProfile(
        age=45,
        sex=Sex.MALE,
        primary_condition="atrial fibrillation",
    )


@pytest.fixture
def child_patient() -> PatientProfile:
    return PatientProfile(age=10, sex=Sex.FEMALE, primary_condition="asthma")


@pytest.fixture
def ckd_patient() -> PatientProfile:
    return PatientProfile(
        age=58,
        sex=Sex.FEMALE,
        primary_condition="atrial fibrillation",
        comorbidities=["chronic kidney disease"],
        medications=["amiodarone"],
    )


# =============================================================================
# PAYLOADS
# =============================================================================


@pytest.fixture
def synthesis_payload() -> dict[str, Any]:
    """A complete, well-formed synthesis judgment."""
    return {
        "summary": "Apixaban is a reasonable option for stroke prevention.",
        "overallConfidence": 72,
        "disagreementLevel": 20,
        "clinicalReadiness": 68,
        "conflictingEvidence": "Minor heterogeneity across cohorts.",
        "keyFindings": ["Stroke risk reduced", "Less major bleeding", "Consistent across trials"],
        "keyCitations": ["NEJM 2022", "BMJ 2016"],
        "clinicianSummary": "Evidence favours apixaban over warfarin in adults with AF.",
        "patientExplanation": "This medicine lowers stroke risk for people like you.",
        "supportingEvidence": ["Large RCT"],
        "contradictingEvidence": ["Observational data"],
        "objectionResponses": [],
        "confidenceJustification": "Large trials with low bias.",
        "biasAndUncertainty": "Some observational confounding.",
    }
