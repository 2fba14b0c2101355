"""
MedSight Statistics Layer

Statistical strength assessment.
"""

from medsight.statistics.assessor import (
    FALLBACK_EXPLANATION,
    FALLBACK_STRENGTH,
    StatisticsAssessor,
    fallback_statistics,
    parse_statistics_judgment,
)

__all__ = [
    "FALLBACK_EXPLANATION",
    "FALLBACK_STRENGTH",
    "StatisticsAssessor",
    "fallback_statistics",
    "parse_statistics_judgment",
]
