"""
MedSight Applicability Layer

Legacy patient match score and patient safety analysis.
"""

from medsight.applicability.patient_match import (
    NO_PATIENT_REASON,
    MatchParams,
    compute_patient_match,
)
from medsight.applicability.safety import (
    SafetyAssessor,
    derive_tier,
    no_papers_safety,
    no_patient_safety,
    parse_safety_judgment,
    rule_based_safety,
)

__all__ = [
    # Legacy match
    "NO_PATIENT_REASON",
    "MatchParams",
    "compute_patient_match",
    # Safety
    "SafetyAssessor",
    "derive_tier",
    "no_papers_safety",
    "no_patient_safety",
    "parse_safety_judgment",
    "rule_based_safety",
]
