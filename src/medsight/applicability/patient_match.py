"""
Legacy Patient Match

Cheap, deterministic population match score. Kept separate from the safety
analysis: it has no severity semantics and never drives the veto.
"""

from dataclasses import dataclass, field
from typing import Sequence

from medsight.core.schemas import NormalizedPaper, PatientMatchOutput, PatientProfile

NO_PATIENT_REASON = "No patient parameters provided; assuming general adult population."
DEFAULT_ALIGNMENT_REASON = "Study populations align reasonably with provided profile."
NEUTRAL_SCORE = 0.75

PEDIATRIC_TERMS = ("pediatric", "children", "adolescent")
GERIATRIC_TERMS = ("elderly", "older adults", "geriatric")
ADULT_TERMS = ("adult", "middle-aged")

CONDITION_PREFIX_CHARS = 20


@dataclass(frozen=True)
class AgeRange:
    min: int | None = None
    max: int | None = None


@dataclass(frozen=True)
class MatchParams:
    """Patient parameters as the match score reads them."""

    age_range: AgeRange | None = None
    sex: str | None = None
    condition: str | None = None
    comorbidities: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_profile(cls, patient: PatientProfile | None) -> "MatchParams | None":
        """A profile's age becomes the point range [age, age]."""
        if patient is None:
            return None
        return cls(
            age_range=AgeRange(patient.age, patient.age) if patient.age is not None else None,
            sex=patient.sex.value if patient.sex else None,
            condition=patient.primary_condition,
            comorbidities=tuple(patient.comorbidities),
        )

    def is_empty(self) -> bool:
        return not (self.age_range or self.sex or self.condition or self.comorbidities)


def _contains_any(text: str, terms: Sequence[str]) -> bool:
    return any(t in text for t in terms)


def compute_patient_match(
    papers: Sequence[NormalizedPaper], patient: PatientProfile | MatchParams | None
) -> PatientMatchOutput:
    """
    Score how well the evidence populations match the patient.

    Starts at 1.0 and subtracts for each missing population: pediatric
    (0.2), geriatric (0.15), named condition (0.1), any comorbidity (0.1).
    With no usable patient fields the score is a neutral 0.75.
    """
    params = patient if isinstance(patient, MatchParams) else MatchParams.from_profile(patient)

    if params is None or params.is_empty():
        return PatientMatchOutput(
            match_score=NEUTRAL_SCORE,
            mismatch_reasons=[NO_PATIENT_REASON],
            plain_language_summary=(
                "Research summaries are general. For personalized relevance, add age, sex, "
                "condition, or comorbidities."
            ),
            questions_for_doctor=[
                "Does this evidence apply to my age group and condition?",
                "Are there studies that match my specific situation?",
            ],
        )

    text = " ".join(p.text for p in papers).lower()
    score = 1.0
    reasons: list[str] = []

    if params.age_range:
        age = params.age_range
        wants_pediatric = age.max is not None and age.max < 18
        wants_geriatric = age.min is not None and age.min >= 65
        if wants_pediatric and not _contains_any(text, PEDIATRIC_TERMS):
            reasons.append("Limited data for pediatric population.")
            score -= 0.2
        if (
            wants_geriatric
            and not _contains_any(text, GERIATRIC_TERMS)
            and not _contains_any(text, ADULT_TERMS)
        ):
            reasons.append("Limited data for older adults.")
            score -= 0.15

    if params.condition and params.condition.lower()[:CONDITION_PREFIX_CHARS] not in text:
        reasons.append(f"Study populations may not specifically address {params.condition}.")
        score -= 0.1

    if params.comorbidities and not all(c.lower() in text for c in params.comorbidities):
        reasons.append("Comorbidity-specific evidence may be limited.")
        score -= 0.1

    return PatientMatchOutput(
        match_score=round(min(1.0, max(0.0, score)), 4),
        mismatch_reasons=reasons or [DEFAULT_ALIGNMENT_REASON],
        plain_language_summary=(
            "Consider discussing with your doctor how well the study populations match your "
            "situation."
        ),
        questions_for_doctor=[
            "Do these studies include people like me in terms of age and condition?",
            "Are there known differences in outcomes for my demographic?",
        ],
    )
