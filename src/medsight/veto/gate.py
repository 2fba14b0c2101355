"""
Veto Decision Gate

Pure function from (safety tier, quality summary, statistical strength, mode)
to a VetoStatus. Safety is always evaluated before quality and statistics.
"""

from medsight.core.enums import (
    AlertSeverity,
    AnalysisMode,
    BiasRisk,
    ObjectionSource,
    SafetyTier,
    VetoType,
)
from medsight.core.schemas import Objection, QualitySummary, VetoStatus

WEAK_STATISTICS_THRESHOLD = 0.5

RESEARCH_REASON = "Research mode - vetoes suppressed"
HARD_REASON = "Explicit contraindications detected"
SOFT_REASON = "Significant safety concerns require justification"
NO_VETO_REASON = "No veto triggered"


def determine_veto(
    safety_tier: SafetyTier,
    quality: QualitySummary,
    statistical_strength: float,
    mode: AnalysisMode,
    *,
    safety_summary: str | None = None,
    statistics_explanation: str | None = None,
) -> VetoStatus:
    """
    Decide the veto for one request.

    - research: never vetoes; contraindicated / not-recommended tiers
      still yield a warning objection.
    - clinical + contraindicated: hard veto.
    - clinical + not-recommended: soft veto.
    - otherwise: no veto, with non-blocking quality (high bias) and
      statistics (strength < 0.5) objections.

    The keyword arguments only fill objection details.
    """
    unsafe = safety_tier.at_least(SafetyTier.NOT_RECOMMENDED)

    if mode == AnalysisMode.RESEARCH:
        objections = []
        if unsafe:
            objections.append(
                Objection(
                    source=ObjectionSource.SAFETY,
                    severity=AlertSeverity.WARNING,
                    message=f"Safety tier: {safety_tier.value}",
                    details=safety_summary,
                )
            )
        return VetoStatus(type=VetoType.NONE, reason=RESEARCH_REASON, objections=objections)

    if safety_tier == SafetyTier.CONTRAINDICATED:
        return VetoStatus(
            type=VetoType.HARD,
            reason=HARD_REASON,
            objections=[
                Objection(
                    source=ObjectionSource.SAFETY,
                    severity=AlertSeverity.CRITICAL,
                    message="Patient has contraindications for this intervention",
                    details=safety_summary,
                )
            ],
        )

    if safety_tier == SafetyTier.NOT_RECOMMENDED:
        return VetoStatus(
            type=VetoType.SOFT,
            reason=SOFT_REASON,
            objections=[
                Objection(
                    source=ObjectionSource.SAFETY,
                    severity=AlertSeverity.WARNING,
                    message="Significant demographic gaps or concerning evidence patterns",
                    details=safety_summary,
                )
            ],
        )

    objections = []
    if quality.overall_bias_risk == BiasRisk.HIGH:
        objections.append(
            Objection(
                source=ObjectionSource.QUALITY,
                severity=AlertSeverity.WARNING,
                message="High overall bias risk in studies",
                details=(
                    f"RCT count: {quality.rct_count}, "
                    f"Observational: {quality.observational_count}"
                ),
            )
        )
    if statistical_strength < WEAK_STATISTICS_THRESHOLD:
        objections.append(
            Objection(
                source=ObjectionSource.STATISTICS,
                severity=AlertSeverity.WARNING,
                message="Weak statistical evidence",
                details=statistics_explanation,
            )
        )
    return VetoStatus(type=VetoType.NONE, reason=NO_VETO_REASON, objections=objections)
