"""
MedSight Synthesis Layer

Evidence ledger and final recommendation.
"""

from medsight.synthesis.ledger import EvidenceLedger, build_ledger
from medsight.synthesis.synthesizer import (
    SynthesisAggregator,
    hard_veto_result,
    incomplete_veto_result,
    parse_synthesis_judgment,
)

__all__ = [
    "EvidenceLedger",
    "build_ledger",
    "SynthesisAggregator",
    "hard_veto_result",
    "incomplete_veto_result",
    "parse_synthesis_judgment",
]
