"""
MedSight Core Enumerations

This module defines all enumerations used throughout the pipeline.
Values are the literal strings exchanged with the judgment collaborator
and returned over the API, so they must not change.
"""

from enum import Enum


class AnalysisMode(str, Enum):
    """Analysis mode.

    - CLINICAL: complete patient profile required, safety vetoes enforced
    - RESEARCH: patient profile optional, vetoes suppressed (objections kept)
    """

    CLINICAL = "clinical"
    RESEARCH = "research"


class PaperSourceName(str, Enum):
    """Bibliographic source of a normalized paper."""

    PUBMED = "pubmed"
    OPENALEX = "openalex"
    LOCAL = "local"


class StudyDesign(str, Enum):
    """Study design buckets inferred by the trial quality assessor."""

    RCT = "RCT"
    META_ANALYSIS = "Meta-analysis"
    OBSERVATIONAL = "Observational"
    CASE_STUDY = "Case study"
    OTHER = "Other"


class BiasRisk(str, Enum):
    """Per-paper risk of bias, ordered by severity."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _BIAS_RANK[self]


_BIAS_RANK = {BiasRisk.LOW: 1, BiasRisk.MODERATE: 2, BiasRisk.HIGH: 3}


class Sex(str, Enum):
    """Patient sex as accepted in clinical mode."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class SafetyTier(str, Enum):
    """Safety tier of a recommendation, ordered by severity."""

    SAFE = "safe"
    CAUTION = "caution"
    NOT_RECOMMENDED = "not-recommended"
    CONTRAINDICATED = "contraindicated"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    def at_least(self, other: "SafetyTier") -> bool:
        """True if this tier is as severe as or more severe than `other`."""
        return self.rank >= other.rank


_TIER_RANK = {
    SafetyTier.SAFE: 0,
    SafetyTier.CAUTION: 1,
    SafetyTier.NOT_RECOMMENDED: 2,
    SafetyTier.CONTRAINDICATED: 3,
}


class AlertSeverity(str, Enum):
    """Severity shared by clinical alerts and veto objections."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertCategory(str, Enum):
    """Category of a clinical alert."""

    CONTRAINDICATION = "contraindication"
    EXCLUSION = "exclusion"
    DEMOGRAPHIC = "demographic"
    INTERACTION = "interaction"


class ExclusionSeverity(str, Enum):
    """How binding a matched exclusion criterion is."""

    ABSOLUTE = "absolute"
    RELATIVE = "relative"


class GapType(str, Enum):
    """Dimension on which patient and study populations differ."""

    AGE = "age"
    SEX = "sex"
    COMORBIDITY = "comorbidity"
    GEOGRAPHIC = "geographic"


class GapSeverity(str, Enum):
    """Severity of a demographic gap."""

    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"


class VetoType(str, Enum):
    """Veto states. Hard is terminal for synthesis."""

    NONE = "none"
    SOFT = "soft"
    HARD = "hard"


class ObjectionSource(str, Enum):
    """Stage that raised a veto objection."""

    SAFETY = "safety"
    QUALITY = "quality"
    STATISTICS = "statistics"


class GraphNode(str, Enum):
    """Names of nodes in the analysis graph.

    These MUST match the nodes registered in orchestration/graph.py.
    """

    FETCH = "fetch_papers"
    RANK = "rank"
    ASSESS_QUALITY = "assess_quality"
    ASSESS_STATISTICS = "assess_statistics"
    ASSESS_APPLICABILITY = "assess_applicability"
    VETO = "veto"
    SYNTHESIZE = "synthesize"
