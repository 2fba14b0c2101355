"""
MedSight Retrieval Layer

Paper source contract and normalization helpers.
"""

from medsight.retrieval.sources import (
    CompositePaperSource,
    PaperSource,
    StaticPaperSource,
    deduplicate_papers,
    fetch_with,
    infer_study_type,
    match_study_design,
    normalize_openalex_work,
    rebuild_inverted_abstract,
)

__all__ = [
    "PaperSource",
    "StaticPaperSource",
    "CompositePaperSource",
    "deduplicate_papers",
    "fetch_with",
    "infer_study_type",
    "match_study_design",
    "normalize_openalex_work",
    "rebuild_inverted_abstract",
]
