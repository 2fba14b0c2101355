"""
MedSight Veto Layer

Veto decision gate.
"""

from medsight.veto.gate import determine_veto

__all__ = ["determine_veto"]
