"""
MedSight command line.

Usage:
    python -m medsight "anticoagulation after stroke" --mode clinical \
        --age 70 --sex female --condition "atrial fibrillation" \
        --comorbidity "chronic kidney disease" --papers papers.json

--papers points to a JSON list of normalized papers (camelCase keys).
Without it the analysis runs on an empty literature set.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from medsight.config import configure_logging
from medsight.core.exceptions import MedSightError, RequestValidationError
from medsight.core.schemas import NormalizedPaper
from medsight.orchestration.graph import resolve_judge, run_analysis
from medsight.retrieval.sources import StaticPaperSource


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="medsight",
        description="Run one safety-gated evidence analysis and print it as JSON.",
    )
    parser.add_argument("query", help="Clinical question")
    parser.add_argument("--mode", choices=["clinical", "research"], default="research")
    parser.add_argument("--age", type=int, help="Patient age in years")
    parser.add_argument("--sex", choices=["male", "female", "other"])
    parser.add_argument("--condition", help="Primary condition")
    parser.add_argument(
        "--comorbidity", action="append", default=[], help="Comorbidity (repeatable)"
    )
    parser.add_argument(
        "--medication", action="append", default=[], help="Current medication (repeatable)"
    )
    parser.add_argument("--papers", type=Path, help="JSON file with a list of papers")
    return parser


def load_papers(path: Path) -> list[NormalizedPaper]:
    """Read a JSON list of papers."""
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of papers")
    return [NormalizedPaper.model_validate(item) for item in data]


def patient_from_args(args: argparse.Namespace) -> dict | None:
    """Patient block from CLI flags, or None when no patient flag was given."""
    patient = {
        "age": args.age,
        "sex": args.sex,
        "primaryCondition": args.condition,
        "comorbidities": args.comorbidity,
        "medications": args.medication,
    }
    if all(value is None or value == [] for value in patient.values()):
        return None
    return {key: value for key, value in patient.items() if value is not None}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        papers = load_papers(args.papers) if args.papers else []
    except (OSError, ValueError) as e:
        # pydantic ValidationError and JSONDecodeError are ValueErrors
        print(f"Cannot load papers: {e}", file=sys.stderr)
        return 2

    try:
        result = asyncio.run(
            run_analysis(
                args.query,
                args.mode,
                patient_from_args(args),
                judge=resolve_judge(),
                paper_source=StaticPaperSource(papers),
            )
        )
    except RequestValidationError as e:
        print(f"Invalid request: {e.reason}", file=sys.stderr)
        return 2
    except MedSightError as e:
        print(f"Analysis failed: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result.model_dump(by_alias=True, mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
