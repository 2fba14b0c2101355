"""
Patient Safety Analysis

Finds contraindications, exclusion criteria and demographic gaps between a
patient and the study populations, and assigns the safety tier that drives
the veto gate.

The judgment collaborator does the reading. Its payload is validated item by
item, and the tier it reports is never allowed to be milder than the tier the
validated findings imply. When the collaborator is unavailable a rule-based
analysis is used instead.
"""

import logging
import re
from typing import Any, Sequence

from pydantic import ValidationError as PydanticValidationError

from medsight.config import get_settings
from medsight.core.enums import (
    AlertCategory,
    AlertSeverity,
    ExclusionSeverity,
    GapSeverity,
    GapType,
    SafetyTier,
)
from medsight.core.schemas import (
    ClinicalAlert,
    DemographicGap,
    ExclusionMatch,
    NormalizedPaper,
    PatientProfile,
    SafetyAssessment,
)
from medsight.llm.judge import JudgmentRequest, StructuredJudge, record_fallback, request_judgment
from medsight.observability import get_tracer

logger = logging.getLogger(__name__)

STAGE = "safety"

PEDIATRIC_TERMS = ("pediatric", "children", "adolescent")
GERIATRIC_TERMS = ("elderly", "geriatric", "older adult")

_MALE_TERMS = re.compile(r"\b(?:males?|men)\b")
_FEMALE_TERMS = re.compile(r"\b(?:females?|women)\b")
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")

FALLBACK_QUESTIONS = [
    "How well do these studies represent my patient population?",
    "Are there patient-specific factors that affect applicability?",
    "Should we seek additional evidence or specialist consultation?",
]

UNSAFE_ALTERNATIVES = [
    "Consult specialist for patient-specific guidance",
    "Consider alternative interventions",
]

TIER_SENTENCES = {
    SafetyTier.SAFE: "No major safety concerns identified.",
    SafetyTier.CAUTION: "Some demographic differences noted - discuss with clinician.",
    SafetyTier.NOT_RECOMMENDED: "Significant demographic gaps - evidence may not apply.",
    SafetyTier.CONTRAINDICATED: (
        "Contraindications detected - do not proceed without specialist consultation."
    ),
}

SAFETY_PROMPT = """You are a medical safety expert analyzing research papers for patient-specific contraindications and safety concerns.

PATIENT PROFILE:
{patient}

QUERY: {query}

PAPERS TO ANALYZE:
{papers}

TASK: Analyze these papers for patient safety concerns. Identify:

1. CONTRAINDICATIONS: Explicit contraindications or exclusion criteria that match this patient
2. DEMOGRAPHIC GAPS: Differences between patient and study populations (age, sex, comorbidities)
3. SAFETY CONCERNS: Any warnings, adverse events, or safety signals relevant to this patient

Provide your analysis in JSON format:

{{
  "contraindications": [
    {{
      "criterion": "string - the exclusion criterion",
      "patientMatch": "string - how patient matches",
      "paperId": "string - paper ID",
      "severity": "absolute" or "relative"
    }}
  ],
  "demographicGaps": [
    {{
      "type": "age" | "sex" | "comorbidity" | "geographic",
      "patientValue": "string or number",
      "studyValue": "string or number",
      "severity": "minor" | "moderate" | "severe",
      "explanation": "string",
      "impact": "string"
    }}
  ],
  "clinicalAlerts": [
    {{
      "severity": "info" | "warning" | "critical",
      "message": "string",
      "citations": ["paper IDs"],
      "category": "contraindication" | "exclusion" | "demographic" | "interaction"
    }}
  ],
  "safetyTier": "safe" | "caution" | "not-recommended" | "contraindicated",
  "plainLanguageSummary": "string - plain language summary for clinician",
  "questionsForClinician": ["array of questions"],
  "alternativeOptions": ["array of alternative approaches if unsafe"]
}}

SAFETY TIER GUIDELINES:
- "contraindicated": Explicit contraindications match patient
- "not-recommended": Severe demographic gaps (age >20 years, sex <20% representation)
- "caution": Moderate gaps (age 10-20 years, sex 20-40% representation)
- "safe": No significant concerns"""

SAFETY_SYSTEM_PROMPT = "You are a medical safety expert. Output only valid JSON."


# =============================================================================
# FIXED OUTCOMES
# =============================================================================


def no_patient_safety() -> SafetyAssessment:
    """Placeholder when no complete patient profile was supplied."""
    return SafetyAssessment(
        safety_tier=SafetyTier.SAFE,
        clinical_alerts=[
            ClinicalAlert(
                severity=AlertSeverity.INFO,
                message="No patient profile provided - general analysis only",
                category=AlertCategory.DEMOGRAPHIC,
            )
        ],
        plain_language_summary="No patient-specific safety analysis performed.",
        questions_for_clinician=["Would patient-specific analysis be beneficial?"],
    )


def no_papers_safety() -> SafetyAssessment:
    """Zero papers: nothing to contradict the patient, so safe with a notice."""
    return SafetyAssessment(
        safety_tier=SafetyTier.SAFE,
        clinical_alerts=[
            ClinicalAlert(
                severity=AlertSeverity.INFO,
                message="No papers available for safety analysis",
                category=AlertCategory.DEMOGRAPHIC,
            )
        ],
        plain_language_summary="No literature available to assess safety for this patient.",
        questions_for_clinician=["Should alternative sources be consulted?"],
    )


# =============================================================================
# TIER DERIVATION
# =============================================================================


def derive_tier(
    exclusions: Sequence[ExclusionMatch],
    gaps: Sequence[DemographicGap],
    alerts: Sequence[ClinicalAlert],
) -> SafetyTier:
    """
    Tier implied by the findings alone.

    absolute exclusion -> contraindicated; severe gap -> not-recommended;
    moderate gap or warning/critical alert -> caution; otherwise safe.
    """
    if any(e.severity == ExclusionSeverity.ABSOLUTE for e in exclusions):
        return SafetyTier.CONTRAINDICATED
    if any(g.severity == GapSeverity.SEVERE for g in gaps):
        return SafetyTier.NOT_RECOMMENDED
    if any(g.severity == GapSeverity.MODERATE for g in gaps) or any(
        a.severity in (AlertSeverity.WARNING, AlertSeverity.CRITICAL) for a in alerts
    ):
        return SafetyTier.CAUTION
    return SafetyTier.SAFE


def most_severe(*tiers: SafetyTier) -> SafetyTier:
    return max(tiers, key=lambda t: t.rank)


# =============================================================================
# PAYLOAD VALIDATION
# =============================================================================


# Severity values that still set the tier floor when the rest of the item is invalid
DROPPED_ITEM_FLOORS: dict[type, tuple[str, SafetyTier]] = {
    ExclusionMatch: (ExclusionSeverity.ABSOLUTE.value, SafetyTier.CONTRAINDICATED),
    DemographicGap: (GapSeverity.SEVERE.value, SafetyTier.NOT_RECOMMENDED),
    ClinicalAlert: (AlertSeverity.CRITICAL.value, SafetyTier.CAUTION),
}


def _valid_items(raw: Any, model: type, kind: str, floors: list[SafetyTier]) -> list:
    """Validate list items one by one; escalating severities of dropped items go to floors."""
    if not isinstance(raw, list):
        return []
    items = []
    for item in raw:
        try:
            items.append(model.model_validate(item))
        except PydanticValidationError as e:
            severity = item.get("severity") if isinstance(item, dict) else None
            escalating, floor = DROPPED_ITEM_FLOORS[model]
            if severity == escalating:
                floors.append(floor)
                logger.warning("Dropping invalid %s with %s severity: %s", kind, severity, e.errors()[:1])
            else:
                logger.debug("Dropping invalid %s: %s", kind, e.errors()[:1])
    return items


def _strings(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [s for s in raw if isinstance(s, str) and s.strip()]


def parse_safety_judgment(payload: dict[str, Any]) -> SafetyAssessment:
    """
    Build a SafetyAssessment from a collaborator payload.

    Invalid list items are dropped. A missing or unknown tier counts as
    safe, then the tier is raised to what the findings imply, including
    the severity of dropped items.
    """
    floors: list[SafetyTier] = []
    exclusions = _valid_items(payload.get("contraindications"), ExclusionMatch, "exclusion", floors)
    gaps = _valid_items(payload.get("demographicGaps"), DemographicGap, "demographic gap", floors)
    alerts = _valid_items(payload.get("clinicalAlerts"), ClinicalAlert, "clinical alert", floors)

    raw_tier = payload.get("safetyTier")
    reported = SafetyTier(raw_tier) if raw_tier in {t.value for t in SafetyTier} else SafetyTier.SAFE
    tier = most_severe(reported, derive_tier(exclusions, gaps, alerts), *floors)
    if tier != reported:
        logger.info("Safety tier raised from %s to %s by validated findings", reported.value, tier.value)

    summary = payload.get("plainLanguageSummary")
    return SafetyAssessment(
        safety_tier=tier,
        clinical_alerts=alerts,
        exclusion_matches=exclusions,
        demographic_gaps=gaps,
        alternative_options=_strings(payload.get("alternativeOptions")),
        plain_language_summary=summary if isinstance(summary, str) and summary else "Safety analysis completed.",
        questions_for_clinician=_strings(payload.get("questionsForClinician")),
    )


# =============================================================================
# RULE-BASED FALLBACK
# =============================================================================


def find_exclusion_matches(
    papers: Sequence[NormalizedPaper], patient: PatientProfile
) -> list[ExclusionMatch]:
    """
    Sentences stating a contraindication or exclusion that names one of the
    patient's comorbidities or medications.

    "contraindicated" sentences are absolute, "excluded" sentences relative.
    """
    terms = [t for t in (*patient.comorbidities, *patient.medications) if t]
    if not terms:
        return []

    matches: list[ExclusionMatch] = []
    for paper in papers:
        for sentence in _SENTENCE_SPLIT.split(paper.abstract or ""):
            lower = sentence.lower()
            if "contraindicat" in lower:
                severity = ExclusionSeverity.ABSOLUTE
            elif "exclud" in lower or "exclusion" in lower:
                severity = ExclusionSeverity.RELATIVE
            else:
                continue
            for term in terms:
                if term.lower() in lower:
                    matches.append(
                        ExclusionMatch(
                            criterion=sentence.strip()[:300],
                            patient_match=f"Patient has {term}",
                            paper_id=paper.id,
                            severity=severity,
                        )
                    )
    return matches


def rule_based_safety(
    papers: Sequence[NormalizedPaper], patient: PatientProfile
) -> SafetyAssessment:
    """Deterministic substitute for the collaborator's safety analysis."""
    text = " ".join(p.text.lower() for p in papers)
    alerts: list[ClinicalAlert] = []
    gaps: list[DemographicGap] = []
    exclusions = find_exclusion_matches(papers, patient)

    for match in exclusions:
        absolute = match.severity == ExclusionSeverity.ABSOLUTE
        alerts.append(
            ClinicalAlert(
                severity=AlertSeverity.CRITICAL if absolute else AlertSeverity.WARNING,
                message=f"{match.patient_match}: {match.criterion}",
                citations=[match.paper_id],
                category=AlertCategory.CONTRAINDICATION if absolute else AlertCategory.EXCLUSION,
            )
        )

    age = patient.age
    if age is not None and age < 18:
        if not any(t in text for t in PEDIATRIC_TERMS):
            gaps.append(
                DemographicGap(
                    type=GapType.AGE,
                    patient_value=age,
                    study_value="Adult populations",
                    severity=GapSeverity.SEVERE,
                    explanation="Studies primarily focus on adult populations",
                    impact="Evidence may not apply to pediatric patients",
                )
            )
            alerts.append(
                ClinicalAlert(
                    severity=AlertSeverity.WARNING,
                    message="Limited pediatric data available",
                    category=AlertCategory.DEMOGRAPHIC,
                )
            )
    elif age is not None and age >= 65:
        if not any(t in text for t in GERIATRIC_TERMS):
            gaps.append(
                DemographicGap(
                    type=GapType.AGE,
                    patient_value=age,
                    study_value="Younger adult populations",
                    severity=GapSeverity.MODERATE,
                    explanation="Studies may underrepresent older adults",
                    impact="Outcomes may differ in elderly population",
                )
            )
            alerts.append(
                ClinicalAlert(
                    severity=AlertSeverity.INFO,
                    message="Consider age-specific evidence for older adults",
                    category=AlertCategory.DEMOGRAPHIC,
                )
            )

    has_male = bool(_MALE_TERMS.search(text))
    has_female = bool(_FEMALE_TERMS.search(text))
    sex = patient.sex.value if patient.sex else None
    if sex == "female" and has_male and not has_female:
        gaps.append(
            DemographicGap(
                type=GapType.SEX,
                patient_value="female",
                study_value="Predominantly male",
                severity=GapSeverity.MODERATE,
                explanation="Studies may have limited female representation",
                impact="Sex-specific outcomes may differ",
            )
        )
    elif sex == "male" and has_female and not has_male:
        gaps.append(
            DemographicGap(
                type=GapType.SEX,
                patient_value="male",
                study_value="Predominantly female",
                severity=GapSeverity.MODERATE,
                explanation="Studies may have limited male representation",
                impact="Sex-specific outcomes may differ",
            )
        )

    tier = derive_tier(exclusions, gaps, alerts)

    if not alerts:
        alerts.append(
            ClinicalAlert(
                severity=AlertSeverity.INFO,
                message="Basic safety analysis completed (LLM unavailable)",
                category=AlertCategory.DEMOGRAPHIC,
            )
        )

    unsafe = tier.at_least(SafetyTier.NOT_RECOMMENDED)
    return SafetyAssessment(
        safety_tier=tier,
        clinical_alerts=alerts,
        exclusion_matches=exclusions,
        demographic_gaps=gaps,
        alternative_options=list(UNSAFE_ALTERNATIVES) if unsafe else [],
        plain_language_summary=(
            f"Safety analysis for {age}-year-old {sex} patient with "
            f"{patient.primary_condition}. {TIER_SENTENCES[tier]}"
        ),
        questions_for_clinician=list(FALLBACK_QUESTIONS),
    )


# =============================================================================
# ASSESSOR
# =============================================================================


def format_patient(patient: PatientProfile) -> str:
    lines = [
        f"- Age: {patient.age} years",
        f"- Sex: {patient.sex.value if patient.sex else 'unknown'}",
        f"- Primary Condition: {patient.primary_condition}",
    ]
    if patient.comorbidities:
        lines.append(f"- Comorbidities: {', '.join(patient.comorbidities)}")
    if patient.medications:
        lines.append(f"- Medications: {', '.join(patient.medications)}")
    return "\n".join(lines)


class SafetyAssessor:
    """
    Patient-specific safety analysis.

    Usage:
        assessor = SafetyAssessor(judge)
        safety, degraded = await assessor.assess(query, ranked_papers, patient)
    """

    def __init__(self, judge: StructuredJudge | None = None) -> None:
        self._judge = judge
        self._settings = get_settings().pipeline
        self._tracer = get_tracer("medsight.safety")

    def build_request(
        self, query: str, papers: Sequence[NormalizedPaper], patient: PatientProfile
    ) -> JudgmentRequest:
        limit = self._settings.safety_abstract_chars
        top = list(papers)[: self._settings.safety_top_n]
        blocks = [
            f"Paper {i} (ID: {p.id}):\nTitle: {p.title}\n"
            f"Abstract: {(p.abstract or 'No abstract available')[:limit]}..."
            for i, p in enumerate(top, start=1)
        ]
        return JudgmentRequest(
            stage=STAGE,
            system_prompt=SAFETY_SYSTEM_PROMPT,
            user_prompt=SAFETY_PROMPT.format(
                patient=format_patient(patient), query=query, papers="\n\n".join(blocks)
            ),
            context={
                "query": query,
                "patient": patient.model_dump(mode="json"),
                "paper_ids": [p.id for p in top],
            },
        )

    async def assess(
        self,
        query: str,
        papers: Sequence[NormalizedPaper],
        patient: PatientProfile | None,
    ) -> tuple[SafetyAssessment, bool]:
        """
        Returns:
            (SafetyAssessment, degraded). degraded is True when the
            rule-based fallback replaced the collaborator.
        """
        with self._tracer.span("assess", attributes={"papers": len(papers)}) as span:
            if patient is None or not patient.is_complete():
                safety, degraded = no_patient_safety(), False
            elif not papers:
                safety, degraded = no_papers_safety(), False
            else:
                try:
                    payload = await request_judgment(
                        self._judge, self.build_request(query, papers, patient)
                    )
                    safety, degraded = parse_safety_judgment(payload), False
                except Exception as e:
                    record_fallback(STAGE, e)
                    safety, degraded = rule_based_safety(papers, patient), True

            span.set_attribute("safety_tier", safety.safety_tier.value)
            span.set_attribute("degraded", degraded)
            return safety, degraded
