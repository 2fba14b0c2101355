"""
Evidence Ledger

Supporting points, contradicting points and conflict candidates derived
deterministically from the upstream stage outputs.
"""

from dataclasses import dataclass

from medsight.core.enums import BiasRisk
from medsight.core.schemas import PatientMatchOutput, QualitySummary, StatisticsOutput, VetoStatus

STRONG_STATISTICS = 0.7
WEAK_STATISTICS = 0.5
GOOD_PATIENT_MATCH = 0.7

STRONG_STATS_BIAS_CONFLICT = "Strong statistical results but trial quality or bias risk is not low."
HIGH_BIAS_CONFLICT = "High bias risk may affect reliability of findings."


def _fmt(value: float) -> str:
    return f"{value:g}"


@dataclass(frozen=True)
class EvidenceLedger:
    """Immutable evidence tally handed to the synthesis collaborator."""

    supporting: tuple[str, ...] = ()
    contradicting: tuple[str, ...] = ()
    conflicts: tuple[str, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def conflict_text(self) -> str | None:
        return " ".join(self.conflicts) if self.conflicts else None


def build_ledger(
    statistics: StatisticsOutput,
    quality: QualitySummary,
    patient_match: PatientMatchOutput,
    veto: VetoStatus,
) -> EvidenceLedger:
    """
    Tally the evidence.

    - statistics >= 0.7 supports, < 0.5 contradicts
    - low bias supports, high bias contradicts and is a conflict
    - patient match >= 0.7 supports, otherwise contradicts and is a conflict
    - strong statistics with non-low bias is a conflict
    - every veto objection contradicts, whatever the veto type
    """
    supporting: list[str] = []
    contradicting: list[str] = []
    conflicts: list[str] = []

    strength = statistics.statistical_strength
    if strength >= STRONG_STATISTICS:
        supporting.append(f"Strong statistical evidence (strength: {_fmt(strength)})")
    elif strength < WEAK_STATISTICS:
        contradicting.append(f"Weak statistical evidence (strength: {_fmt(strength)})")

    if quality.overall_bias_risk == BiasRisk.LOW:
        supporting.append(f"Low bias risk with {quality.rct_count} RCTs")
    elif quality.overall_bias_risk == BiasRisk.HIGH:
        contradicting.append("High bias risk in studies")
        conflicts.append(HIGH_BIAS_CONFLICT)

    score = patient_match.match_score
    if score >= GOOD_PATIENT_MATCH:
        supporting.append(f"Good patient population match (score: {_fmt(score)})")
    else:
        contradicting.append(f"Limited patient match (score: {_fmt(score)})")
        conflicts.append("Patient match is limited: " + " ".join(patient_match.mismatch_reasons))

    if strength >= STRONG_STATISTICS and quality.overall_bias_risk != BiasRisk.LOW:
        conflicts.append(STRONG_STATS_BIAS_CONFLICT)

    for objection in veto.objections:
        contradicting.append(f"{objection.source.value}: {objection.message}")

    return EvidenceLedger(
        supporting=tuple(supporting),
        contradicting=tuple(contradicting),
        conflicts=tuple(conflicts),
    )
