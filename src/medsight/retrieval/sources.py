"""
Paper Sources

The paper source collaborator contract plus the normalization helpers shared
by every source adapter: study-type inference, OpenAlex abstract rebuild and
near-title deduplication.

Network clients are outside this package; anything implementing PaperSource
can be plugged into the pipeline.
"""

import asyncio
import logging
from typing import Any, Iterable, Protocol, runtime_checkable

from medsight.config import get_settings
from medsight.core.enums import PaperSourceName, StudyDesign
from medsight.core.exceptions import RetrievalError
from medsight.core.schemas import NormalizedPaper

logger = logging.getLogger(__name__)

# Checked in order; first hit wins.
STUDY_TYPE_KEYWORDS: list[tuple[StudyDesign, tuple[str, ...]]] = [
    (StudyDesign.RCT, ("randomized", "rct", "randomised")),
    (StudyDesign.META_ANALYSIS, ("meta-analysis", "systematic review")),
    (StudyDesign.OBSERVATIONAL, ("observational", "cohort", "case-control")),
    (StudyDesign.CASE_STUDY, ("case series", "case report")),
]

OPENALEX_ID_PREFIX = "https://openalex.org/"


def match_study_design(text: str) -> StudyDesign | None:
    """First design whose keywords occur in text (case-folded), else None."""
    lower = (text or "").lower()
    for design, keywords in STUDY_TYPE_KEYWORDS:
        if any(k in lower for k in keywords):
            return design
    return None


def infer_study_type(text: str) -> str:
    """Study type label for a title/abstract, "Other" when nothing matches."""
    design = match_study_design(text)
    return design.value if design else StudyDesign.OTHER.value


def rebuild_inverted_abstract(inverted: dict[str, list[int]] | None) -> str:
    """Rebuild plain text from an OpenAlex abstract_inverted_index."""
    if not inverted:
        return ""
    positions = [(index, word) for word, indices in inverted.items() for index in indices]
    positions.sort(key=lambda pair: pair[0])
    return " ".join(word for _, word in positions)


def normalize_openalex_work(work: dict[str, Any]) -> NormalizedPaper:
    """Map one OpenAlex /works result onto NormalizedPaper."""
    raw_id = work.get("id") or ""
    work_id = raw_id.replace(OPENALEX_ID_PREFIX, "") or "unknown"
    title = work.get("title") or "No title"
    if work.get("abstract_inverted_index"):
        abstract = rebuild_inverted_abstract(work["abstract_inverted_index"])
    else:
        abstract = work.get("abstract") or ""

    year = work.get("publication_year")
    location = (work.get("primary_location") or {}).get("source") or {}
    journal = location.get("display_name")

    doi = work.get("doi")
    if doi and not doi.startswith("http"):
        doi = f"https://doi.org/{doi}"

    return NormalizedPaper(
        id=f"openalex-{work_id}",
        title=title,
        abstract=abstract,
        year=int(year) if year else None,
        journal=journal,
        study_type=infer_study_type(f"{title} {abstract}"),
        source=PaperSourceName.OPENALEX,
        doi=doi,
        url=raw_id or None,
    )


def deduplicate_papers(
    papers: Iterable[NormalizedPaper], key_length: int | None = None, limit: int | None = None
) -> list[NormalizedPaper]:
    """
    Drop near-duplicate titles, keeping the first occurrence.

    The key is the stripped, case-folded title truncated to key_length.
    At most `limit` papers are returned.
    """
    settings = get_settings().pipeline
    key_length = key_length or settings.dedup_title_chars
    limit = limit or settings.max_papers

    seen: set[str] = set()
    unique: list[NormalizedPaper] = []
    for paper in papers:
        key = paper.title.strip().lower()[:key_length]
        if key in seen:
            continue
        seen.add(key)
        unique.append(paper)
    return unique[:limit]


@runtime_checkable
class PaperSource(Protocol):
    """
    Paper source collaborator.

    fetch_papers returns normalized, deduplicated papers (possibly none).
    Failures raise RetrievalError.
    """

    async def fetch_papers(self, query: str) -> list[NormalizedPaper]:
        ...


class StaticPaperSource:
    """In-memory source returning a fixed paper list for every query."""

    def __init__(self, papers: Iterable[NormalizedPaper] = (), name: str = "static") -> None:
        self._papers = list(papers)
        self.name = name

    async def fetch_papers(self, query: str) -> list[NormalizedPaper]:
        return deduplicate_papers(self._papers)


class CompositePaperSource:
    """
    Queries several sources concurrently.

    Results are concatenated in source order, then deduplicated, so the
    first source wins ties on near-identical titles.
    """

    def __init__(self, sources: list[PaperSource]) -> None:
        self._sources = list(sources)

    async def fetch_papers(self, query: str) -> list[NormalizedPaper]:
        results = await asyncio.gather(*(s.fetch_papers(query) for s in self._sources))
        combined = [paper for batch in results for paper in batch]
        logger.debug("Fetched %d papers from %d sources", len(combined), len(self._sources))
        return deduplicate_papers(combined)


async def fetch_with(source: PaperSource, query: str) -> list[NormalizedPaper]:
    """Call a source, wrapping unexpected failures in RetrievalError."""
    try:
        return list(await source.fetch_papers(query))
    except RetrievalError:
        raise
    except Exception as e:
        raise RetrievalError(f"Paper source failed: {e}", source=type(source).__name__) from e
