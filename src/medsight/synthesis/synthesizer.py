"""
Synthesis Aggregator

Combines every stage output and the veto decision into one SynthesisResult.

- Hard veto: fixed DO NOT PROCEED result; the collaborator is not consulted.
- Otherwise: the evidence ledger and summary figures go to the collaborator,
  whose payload is validated and clamped, with defaults for missing fields.
- Collaborator failure: a conservative result when a veto is in effect,
  SynthesisError when none is.
"""

import logging
import re
from typing import Any, Sequence

from pydantic import ValidationError as PydanticValidationError

from medsight.core.enums import VetoType
from medsight.core.exceptions import SynthesisError
from medsight.core.schemas import (
    LiteratureOutput,
    NormalizedPaper,
    ObjectionResponse,
    PatientMatchOutput,
    StatisticsOutput,
    SynthesisResult,
    TrialQualityOutput,
    VetoStatus,
)
from medsight.llm.judge import JudgmentRequest, StructuredJudge, request_judgment
from medsight.observability import get_tracer
from medsight.synthesis.ledger import EvidenceLedger, build_ledger

logger = logging.getLogger(__name__)

STAGE = "synthesis"

DEFAULT_CONFIDENCE = 65
DEFAULT_DISAGREEMENT = 40
DEFAULT_READINESS = 50

CITATION_PAPERS = 5

DEFAULT_OBJECTION_RESPONSE = (
    "This concern has been noted and should be discussed with your healthcare provider."
)
HARD_VETO_OBJECTION_RESPONSE = (
    "This is a critical safety concern that cannot be overridden. "
    "Alternative approaches should be considered."
)

SYNTHESIS_SYSTEM_PROMPT = (
    "You are a medical evidence synthesis expert. "
    "You must address all safety concerns and objections explicitly."
)
SOFT_VETO_INSTRUCTION = (
    "SOFT VETO ACTIVE: You must justify why evidence might still be considered "
    "despite significant safety concerns."
)

SYNTHESIS_USER_PROMPT = """Query: {query}

EVIDENCE SUMMARY:
- Papers: {total_count}
- Trial Quality: {rct_count} RCTs, {observational_count} observational
- Overall Bias Risk: {bias_risk}
- Statistical Strength: {strength}
- Patient Match Score: {match_score}
- Statistics: {explanation}

VETO STATUS: {veto_type}
{veto_reason}

OBJECTIONS TO ADDRESS:
{objections}

SUPPORTING EVIDENCE:
{supporting}

CONTRADICTING EVIDENCE:
{contradicting}

{conflicts}

Respond with JSON containing:
{{
  "summary": "2-4 sentence final recommendation or 'Evidence insufficient' or 'Recommendation unsafe'",
  "overallConfidence": 0-100,
  "disagreementLevel": 0-100,
  "clinicalReadiness": 0-100,
  "conflictingEvidence": "string describing conflicts",
  "keyFindings": ["3-5 key findings"],
  "keyCitations": ["2-4 citations"],
  "clinicianSummary": "Technical summary for clinicians with all caveats",
  "patientExplanation": "Plain language explanation suitable for patients",
  "supportingEvidence": ["list of supporting points"],
  "contradictingEvidence": ["list of contradicting points"],
  "objectionResponses": [{{"objection": "string", "response": "explicit response to each objection"}}],
  "confidenceJustification": "Explain how trial quality, statistics, patient match, and disagreement affect confidence",
  "biasAndUncertainty": "List bias sources, uncertainty, conflicts, and gaps"
}}"""


# =============================================================================
# FIXED RESULTS
# =============================================================================


def hard_veto_result(veto: VetoStatus) -> SynthesisResult:
    """DO NOT PROCEED result for a hard veto."""
    messages = [o.message for o in veto.objections]
    return SynthesisResult(
        summary="DO NOT PROCEED - Contraindications detected for this patient.",
        overall_confidence=0,
        disagreement_level=100,
        clinical_readiness=0,
        conflicting_evidence=veto.reason,
        key_findings=messages,
        key_citations=[],
        clinician_summary=f"SAFETY ALERT: {veto.reason}. {' '.join(messages)}".strip(),
        patient_explanation=(
            "Based on your specific health profile, this intervention is not recommended. "
            "Please discuss alternative options with your healthcare provider."
        ),
        supporting_evidence=[],
        contradicting_evidence=[f"{o.source.value}: {o.message}" for o in veto.objections],
        objection_responses=[
            ObjectionResponse(objection=o.message, response=HARD_VETO_OBJECTION_RESPONSE)
            for o in veto.objections
        ],
        confidence_justification=(
            "Confidence is zero due to explicit contraindications for this patient."
        ),
        bias_and_uncertainty="Safety concerns override evidence quality assessment.",
        veto_applied=True,
        veto_reason=veto.reason,
    )


def incomplete_veto_result(veto: VetoStatus) -> SynthesisResult:
    """Conservative result when synthesis failed while a veto was in effect."""
    return SynthesisResult(
        summary=f"DO NOT PROCEED - analysis incomplete: {veto.reason}.",
        overall_confidence=0,
        disagreement_level=100,
        clinical_readiness=0,
        conflicting_evidence=veto.reason,
        key_findings=["Synthesis incomplete", veto.reason],
        key_citations=[],
        clinician_summary=(
            "SAFETY ALERT: Synthesis could not be completed while a safety veto was in "
            "effect. Do not proceed without specialist review."
        ),
        patient_explanation=(
            "Because of safety concerns for your profile, this option should not be pursued "
            "until you have discussed it with your healthcare provider."
        ),
        supporting_evidence=[],
        contradicting_evidence=[o.message for o in veto.objections],
        objection_responses=[
            ObjectionResponse(
                objection=o.message,
                response="Safety concern unresolved - alternative approaches required.",
            )
            for o in veto.objections
        ],
        confidence_justification="Confidence is zero because synthesis did not complete under a safety veto.",
        bias_and_uncertainty="Analysis incomplete due to a synthesis failure.",
        veto_applied=True,
        veto_reason=veto.reason,
    )


# =============================================================================
# PAYLOAD VALIDATION
# =============================================================================


def _percent(value: Any, default: int) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(round(min(100.0, max(0.0, float(value)))))
    return default


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _text_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    items = [v for v in value if isinstance(v, str) and v.strip()]
    return items or None


def default_citations(papers: Sequence[NormalizedPaper]) -> list[str]:
    """'{journal} {year}' or the title, for the top papers."""
    citations = []
    for paper in papers[:CITATION_PAPERS]:
        if paper.journal:
            citations.append(f"{paper.journal} {paper.year or ''}".strip())
        else:
            citations.append(paper.title)
    return citations


def _objection_key(text: str) -> str:
    return " ".join(re.findall(r"[a-z0-9]+", text.lower()))


def _objection_responses(raw: Any, veto: VetoStatus) -> list[ObjectionResponse]:
    """
    Exactly one response per veto objection, in objection order.

    A collaborator response is matched to its objection by normalised text,
    or else by list position when its text is a paraphrase of no objection.
    Unanswered objections get the default response.
    """
    responses: dict[int, ObjectionResponse] = {}
    if isinstance(raw, list):
        for position, item in enumerate(raw):
            try:
                responses[position] = ObjectionResponse.model_validate(item)
            except PydanticValidationError:
                continue

    if not veto.objections:
        return list(responses.values())

    objection_keys = {_objection_key(o.message) for o in veto.objections}
    by_text = {_objection_key(r.objection): r for r in responses.values()}

    matched: list[ObjectionResponse] = []
    for position, objection in enumerate(veto.objections):
        answer = by_text.get(_objection_key(objection.message))
        if answer is None:
            candidate = responses.get(position)
            if candidate is not None and _objection_key(candidate.objection) not in objection_keys:
                answer = candidate
        matched.append(
            ObjectionResponse(
                objection=objection.message,
                response=answer.response if answer else DEFAULT_OBJECTION_RESPONSE,
            )
        )
    return matched


def parse_synthesis_judgment(
    payload: dict[str, Any],
    *,
    papers: Sequence[NormalizedPaper],
    statistics: StatisticsOutput,
    quality: TrialQualityOutput,
    patient_match: PatientMatchOutput,
    veto: VetoStatus,
    ledger: EvidenceLedger,
) -> SynthesisResult:
    """Validate a synthesis payload, clamping figures and filling defaults."""
    summary = _text(payload.get("summary"))
    bias = quality.summary.overall_bias_risk.value
    strength = f"{statistics.statistical_strength:g}"
    match = f"{patient_match.match_score:g}"

    return SynthesisResult(
        summary=summary or "Evidence was synthesized; see the individual stage outputs for details.",
        overall_confidence=_percent(payload.get("overallConfidence"), DEFAULT_CONFIDENCE),
        disagreement_level=_percent(payload.get("disagreementLevel"), DEFAULT_DISAGREEMENT),
        clinical_readiness=_percent(payload.get("clinicalReadiness"), DEFAULT_READINESS),
        conflicting_evidence=_text(payload.get("conflictingEvidence")) or ledger.conflict_text(),
        key_findings=_text_list(payload.get("keyFindings")) or [statistics.explanation],
        key_citations=_text_list(payload.get("keyCitations")) or default_citations(papers),
        clinician_summary=(
            _text(payload.get("clinicianSummary")) or summary or "See detailed analysis above."
        ),
        patient_explanation=_text(payload.get("patientExplanation"))
        or (
            "Discuss these findings with your healthcare provider to understand how they "
            "apply to your situation."
        ),
        supporting_evidence=_text_list(payload.get("supportingEvidence")) or list(ledger.supporting),
        contradicting_evidence=(
            _text_list(payload.get("contradictingEvidence")) or list(ledger.contradicting)
        ),
        objection_responses=_objection_responses(payload.get("objectionResponses"), veto),
        confidence_justification=_text(payload.get("confidenceJustification"))
        or (
            f"Confidence based on: trial quality ({bias} bias), statistical strength "
            f"({strength}), patient match ({match})."
        ),
        bias_and_uncertainty=_text(payload.get("biasAndUncertainty"))
        or ledger.conflict_text()
        or "See individual stage assessments for detailed bias and uncertainty analysis.",
        veto_applied=veto.is_active,
        veto_reason=veto.reason if veto.is_active else None,
    )


# =============================================================================
# AGGREGATOR
# =============================================================================


class SynthesisAggregator:
    """
    Produce the final recommendation.

    Usage:
        aggregator = SynthesisAggregator(judge)
        result, degraded = await aggregator.synthesize(...)
    """

    def __init__(self, judge: StructuredJudge | None = None) -> None:
        self._judge = judge
        self._tracer = get_tracer("medsight.synthesis")

    def build_request(
        self,
        query: str,
        literature: LiteratureOutput,
        quality: TrialQualityOutput,
        statistics: StatisticsOutput,
        patient_match: PatientMatchOutput,
        veto: VetoStatus,
        ledger: EvidenceLedger,
    ) -> JudgmentRequest:
        system = SYNTHESIS_SYSTEM_PROMPT
        if veto.type == VetoType.SOFT:
            system = f"{system}\n\n{SOFT_VETO_INSTRUCTION}"

        objections = "\n".join(
            f"{i}. [{o.source.value}] {o.message}{': ' + o.details if o.details else ''}"
            for i, o in enumerate(veto.objections, start=1)
        )
        summary = quality.summary
        user = SYNTHESIS_USER_PROMPT.format(
            query=query,
            total_count=literature.total_count,
            rct_count=summary.rct_count,
            observational_count=summary.observational_count,
            bias_risk=summary.overall_bias_risk.value,
            strength=f"{statistics.statistical_strength:g}",
            match_score=f"{patient_match.match_score:g}",
            explanation=statistics.explanation,
            veto_type=veto.type.value,
            veto_reason=f"Reason: {veto.reason}" if veto.is_active else "",
            objections=objections,
            supporting="\n".join(ledger.supporting),
            contradicting="\n".join(ledger.contradicting),
            conflicts=f"CONFLICTS: {'; '.join(ledger.conflicts)}" if ledger.conflicts else "",
        )
        return JudgmentRequest(
            stage=STAGE,
            system_prompt=system,
            user_prompt=user,
            context={
                "query": query,
                "veto_type": veto.type.value,
                "supporting": list(ledger.supporting),
                "contradicting": list(ledger.contradicting),
                "conflicts": list(ledger.conflicts),
            },
        )

    async def synthesize(
        self,
        query: str,
        papers: Sequence[NormalizedPaper],
        literature: LiteratureOutput,
        quality: TrialQualityOutput,
        statistics: StatisticsOutput,
        patient_match: PatientMatchOutput,
        veto: VetoStatus,
    ) -> tuple[SynthesisResult, bool]:
        """
        Returns:
            (SynthesisResult, degraded).

        Raises:
            SynthesisError: The collaborator failed and no veto is in effect.
        """
        with self._tracer.span("synthesize", attributes={"veto": veto.type.value}) as span:
            if veto.is_hard:
                span.add_event("hard_veto_short_circuit")
                return hard_veto_result(veto), False

            ledger = build_ledger(statistics, quality.summary, patient_match, veto)
            span.set_attribute("conflicts", len(ledger.conflicts))
            request = self.build_request(
                query, literature, quality, statistics, patient_match, veto, ledger
            )

            try:
                payload = await request_judgment(self._judge, request)
                result = parse_synthesis_judgment(
                    payload,
                    papers=papers,
                    statistics=statistics,
                    quality=quality,
                    patient_match=patient_match,
                    veto=veto,
                    ledger=ledger,
                )
            except Exception as e:
                if veto.is_active:
                    logger.warning("Synthesis failed under %s veto: %s", veto.type.value, e)
                    return incomplete_veto_result(veto), True
                logger.error("Synthesis failed with no veto in effect: %s", e)
                raise SynthesisError(
                    "Synthesis failed and no safe default recommendation exists",
                    {"error": str(e)},
                ) from e

            span.set_attribute("overall_confidence", result.overall_confidence)
            return result, False
