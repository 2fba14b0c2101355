"""
Statistical Strength Assessor

Asks the judgment collaborator for a plain-language read of effect sizes and
confidence intervals across the top-ranked abstracts.
"""

from typing import Any, Sequence

from pydantic import ValidationError as PydanticValidationError

from medsight.config import get_settings
from medsight.core.exceptions import JudgmentError
from medsight.core.schemas import NormalizedPaper, OutcomeComparison, StatisticsOutput
from medsight.llm.judge import JudgmentRequest, StructuredJudge, record_fallback, request_judgment
from medsight.observability import get_tracer

STAGE = "statistics"

FALLBACK_EXPLANATION = "Unable to extract statistical summary from the provided abstracts."
FALLBACK_STRENGTH = 0.5

STATISTICS_SYSTEM_PROMPT = (
    "You are a medical statistics expert. Ignore narrative conclusions. Focus on effect sizes, "
    "confidence intervals, and whether results are clinically meaningful, not just statistically "
    "significant. Output only valid JSON."
)

STATISTICS_USER_PROMPT = """Query: {query}

Abstracts:
{abstracts}

Respond with JSON: {{ "explanation": "plain-language summary of statistical evidence", "statisticalStrength": number between 0 and 1, "outcomeComparisons": [ {{ "label": "string", "value": "string e.g. 91.5%", "bar": number 0-100 }} ] }}. Include 2-4 outcome comparisons if data is present."""


def fallback_statistics() -> StatisticsOutput:
    return StatisticsOutput(
        explanation=FALLBACK_EXPLANATION,
        statistical_strength=FALLBACK_STRENGTH,
        outcome_comparisons=[],
    )


def _clamp(value: Any, low: float, high: float) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return min(high, max(low, float(value)))
    return None


def parse_outcome_comparisons(raw: Any) -> list[OutcomeComparison]:
    """Keep well-formed comparisons, clamping bars into [0, 100]."""
    if not isinstance(raw, list):
        return []
    comparisons = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        bar = _clamp(item.get("bar"), 0.0, 100.0)
        value = item.get("value")
        if bar is None or value is None:
            continue
        try:
            comparisons.append(
                OutcomeComparison(label=item.get("label"), value=str(value), bar=bar)
            )
        except PydanticValidationError:
            continue
    return comparisons


def parse_statistics_judgment(payload: dict[str, Any]) -> StatisticsOutput:
    """
    Validate a statistics payload.

    A missing explanation takes the fallback text.

    Raises:
        JudgmentError: statisticalStrength is missing or not a number; the
            stage then falls back as a whole.
    """
    explanation = payload.get("explanation")
    strength = _clamp(payload.get("statisticalStrength"), 0.0, 1.0)
    if strength is None:
        raise JudgmentError("statisticalStrength is not a number", stage=STAGE)
    return StatisticsOutput(
        explanation=explanation if isinstance(explanation, str) and explanation else FALLBACK_EXPLANATION,
        statistical_strength=strength,
        outcome_comparisons=parse_outcome_comparisons(payload.get("outcomeComparisons")),
    )


class StatisticsAssessor:
    """
    Judge statistical strength of the top-ranked evidence.

    Usage:
        assessor = StatisticsAssessor(judge)
        output, degraded = await assessor.assess(query, ranked_papers)
    """

    def __init__(self, judge: StructuredJudge | None = None) -> None:
        self._judge = judge
        self._settings = get_settings().pipeline
        self._tracer = get_tracer("medsight.statistics")

    def build_request(self, query: str, papers: Sequence[NormalizedPaper]) -> JudgmentRequest:
        top = list(papers)[: self._settings.statistics_top_n]
        combined = "\n\n".join(f"[{p.title}]\n{p.abstract}" for p in top)
        combined = combined[: self._settings.statistics_abstract_chars]
        return JudgmentRequest(
            stage=STAGE,
            system_prompt=STATISTICS_SYSTEM_PROMPT,
            user_prompt=STATISTICS_USER_PROMPT.format(query=query, abstracts=combined),
            context={"query": query, "paper_ids": [p.id for p in top]},
        )

    async def assess(
        self, query: str, papers: Sequence[NormalizedPaper]
    ) -> tuple[StatisticsOutput, bool]:
        """
        Returns:
            (StatisticsOutput, degraded). No papers yields the fallback
            without consulting the judge and is not counted as degraded.
        """
        with self._tracer.span("assess", attributes={"papers": len(papers)}) as span:
            if not papers:
                return fallback_statistics(), False

            try:
                payload = await request_judgment(self._judge, self.build_request(query, papers))
                output = parse_statistics_judgment(payload)
                degraded = False
            except Exception as e:
                record_fallback(STAGE, e)
                output, degraded = fallback_statistics(), True

            span.set_attribute("statistical_strength", output.statistical_strength)
            span.set_attribute("degraded", degraded)
            return output, degraded
