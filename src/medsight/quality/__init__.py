"""
MedSight Quality Layer

Trial quality assessment.
"""

from medsight.quality.assessor import (
    TrialQualityAssessor,
    infer_study_design,
    parse_quality_judgment,
    summarize_quality,
)

__all__ = [
    "TrialQualityAssessor",
    "infer_study_design",
    "parse_quality_judgment",
    "summarize_quality",
]
